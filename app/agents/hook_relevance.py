"""LLM check that hooks fit the client's target segment."""

from pydantic import BaseModel, Field

from app.agents.base_agent import BaseAgent
from app.schemas.blueprint import HookRelevanceInput


class HookRelevanceDecision(BaseModel):
    hook_index: int = Field(description="0-based index of the hook")
    relevant: bool = Field(description="true if the hook fits the client segment")
    reason: str = Field(default="", description="Brief explanation")


class HookRelevanceOutput(BaseModel):
    results: list[HookRelevanceDecision] = Field(default_factory=list)


class HookRelevanceAgent(BaseAgent[HookRelevanceInput, HookRelevanceOutput]):
    """Agent that flags hooks written for a different audience."""

    model_tier = "fast"
    temperature = 0.0

    @property
    def system_prompt(self) -> str:
        return """You validate ad hooks for segment relevance.

A hook is IRRELEVANT if:
- It references a different industry segment (e.g. "pizza night" for fine dining)
- It uses language specific to a different audience
- It addresses pain points that don't exist for the client's ICP

A hook is RELEVANT if it addresses the client's pains, even when a competitor inspired it."""

    @property
    def output_type(self) -> type[HookRelevanceOutput]:
        return HookRelevanceOutput

    def _build_prompt(self, input_data: HookRelevanceInput) -> str:
        hooks = "\n".join(
            f'{idx}. "{hook.text}" [{hook.provenance}]' for idx, hook in enumerate(input_data.hooks)
        )
        return f"""CLIENT TARGET SEGMENT: {input_data.target_segment}
CLIENT ICP: {input_data.icp_description}

HOOKS TO VALIDATE:
{hooks}"""
