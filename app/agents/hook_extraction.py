"""LLM extractor for reusable hooks in competitor ads."""

from pydantic import BaseModel, Field

from app.agents.base_agent import BaseAgent
from app.schemas.blueprint import HookExtractionInput


class ExtractedHook(BaseModel):
    ad_index: int = Field(description="0-based index of the ad the hook comes from")
    text: str = Field(description="The hook as it appears in the ad, lightly trimmed")
    technique: str | None = Field(default=None, description="e.g. question, statistic, contrarian")
    awareness_level: str | None = Field(default=None, description="unaware, problem, solution, product or most")


class HookExtractionOutput(BaseModel):
    hooks: list[ExtractedHook] = Field(default_factory=list)


class HookExtractionAgent(BaseAgent[HookExtractionInput, HookExtractionOutput]):
    """Agent that pulls the opening hook out of each competitor ad."""

    model_tier = "fast"
    temperature = 0.1

    @property
    def system_prompt(self) -> str:
        return """You extract ad hooks: the first line or idea that stops the scroll.

Rules:
1. At most one hook per ad. Skip ads with no real hook.
2. Quote the ad's own words; do not improve them.
3. Do not invent ad_index values."""

    @property
    def output_type(self) -> type[HookExtractionOutput]:
        return HookExtractionOutput

    def _build_prompt(self, input_data: HookExtractionInput) -> str:
        lines = [
            f"{idx}. [{ad.platform}] {ad.headline} | {ad.body[:300]}"
            for idx, ad in enumerate(input_data.ads)
        ]
        return "Extract hooks from these competitor ads:\n" + "\n".join(lines)
