"""Phase 1 agents: industry/market research and competitor research."""

import logging

from pydantic import BaseModel, Field

from app.agents.base_agent import BaseAgent
from app.schemas.blueprint import CompetitorResearch, IndustryMarketOverview

logger = logging.getLogger(__name__)


class IndustryResearchInput(BaseModel):
    business_digest: str


class CompetitorResearchInput(BaseModel):
    business_digest: str
    full_tier_names: list[str] = Field(default_factory=list)
    summary_tier_names: list[str] = Field(default_factory=list)
    max_competitors: int = Field(default=6, ge=1, le=15)


class IndustryResearchAgent(BaseAgent[IndustryResearchInput, IndustryMarketOverview]):
    """Agent that maps the client's industry, market maturity and buyer pains."""

    model_tier = "reasoning"
    temperature = 0.3

    @property
    def system_prompt(self) -> str:
        return """You are a B2B market strategist writing the industry section of a strategic blueprint.

Rules:
1. Describe the category as buyers experience it, not as vendors pitch it.
2. Market maturity is one of: emerging, growing, mature, declining.
3. Pain points and buying behaviors must be specific to the ICP in the context.
4. Prefer concrete, observable dynamics over generic trends.
5. Never invent statistics. If you are unsure of a number, describe the direction instead."""

    @property
    def output_type(self) -> type[IndustryMarketOverview]:
        return IndustryMarketOverview

    def _build_prompt(self, input_data: IndustryResearchInput) -> str:
        return f"""{input_data.business_digest}

Write the Industry & Market Overview for this business:
- category_snapshot: 2-3 sentences
- market_maturity
- pain_points: 4-6 items
- buying_behaviors: 3-5 items
- market_dynamics: 3-5 items
- trends: 3-5 items"""


class CompetitorResearchAgent(BaseAgent[CompetitorResearchInput, CompetitorResearch]):
    """Agent that identifies and profiles the client's direct competitors."""

    model_tier = "reasoning"
    temperature = 0.3

    @property
    def system_prompt(self) -> str:
        return """You are a competitive intelligence analyst.

Rules:
1. Only list companies whose PRIMARY product matches the client's market segment.
2. Always include every competitor the client named, spelled as given.
3. Give the official website for each competitor when you know it; otherwise leave it empty.
4. Positioning is one sentence in the competitor's own framing.
5. Strengths and weaknesses are 2-4 short items each, from a buyer's perspective.
6. market_patterns lists what most competitors do alike; white_space lists what nobody owns."""

    @property
    def output_type(self) -> type[CompetitorResearch]:
        return CompetitorResearch

    def _build_prompt(self, input_data: CompetitorResearchInput) -> str:
        named = [*input_data.full_tier_names, *input_data.summary_tier_names]
        logger.debug("Building competitor research prompt", extra={"named_competitors": len(named)})
        named_text = "\n".join(f"- {name}" for name in named) if named else "- none"
        return f"""{input_data.business_digest}

Competitors named by the client:
{named_text}

Profile up to {input_data.max_competitors} direct competitors in total."""
