"""Phase 3 agent: cross-analysis synthesis."""

import logging

from pydantic import BaseModel

from app.agents.base_agent import BaseAgent
from app.schemas.blueprint import (
    CrossAnalysisSynthesis,
    DeepAnalysisOutput,
    DiscoveryOutput,
    SynthesisInputs,
)

logger = logging.getLogger(__name__)

MAX_ADS_PER_COMPETITOR_IN_PROMPT = 3
MAX_KEYWORDS_IN_PROMPT = 10


class CrossAnalysisInput(BaseModel):
    business_digest: str
    discovery: DiscoveryOutput
    analysis: DeepAnalysisOutput
    inputs: SynthesisInputs


class CrossAnalysisAgent(BaseAgent[CrossAnalysisInput, CrossAnalysisSynthesis]):
    """Agent that turns all prior findings into positioning, angles and hooks."""

    model_tier = "reasoning"
    temperature = 0.5

    @property
    def system_prompt(self) -> str:
        return """You are the lead strategist assembling a strategic blueprint.

Combine the industry, competitor, ICP and offer findings into:
- key_insights: 4-6 non-obvious conclusions that only follow from combining the sections
- positioning_strategy: one paragraph
- messaging_angles: 3-5 angles
- hooks: 8-12 ad hooks, each with a technique and awareness level
- next_steps: 3-5 concrete actions

Hooks:
1. When a hook adapts a specific competitor ad, set inspired_by to that competitor's name.
2. Original hooks leave inspired_by empty.
3. Never copy a competitor headline verbatim.
4. Every hook must make sense for the client's ICP."""

    @property
    def output_type(self) -> type[CrossAnalysisSynthesis]:
        return CrossAnalysisSynthesis

    def _build_prompt(self, input_data: CrossAnalysisInput) -> str:
        discovery = input_data.discovery
        analysis = input_data.analysis
        inputs = input_data.inputs

        competitors = (
            inputs.enriched_competitors.competitors
            if inputs.enriched_competitors is not None
            else discovery.competitors
        )
        competitor_lines: list[str] = []
        for competitor in competitors:
            competitor_lines.append(f"- {competitor.name}: {competitor.positioning}")
            for ad in [a for a in competitor.ads if a.has_text][:MAX_ADS_PER_COMPETITOR_IN_PROMPT]:
                competitor_lines.append(f"  * ad: {ad.headline} | {ad.body[:200]}")
            if competitor.pricing:
                prices = ", ".join(f"{tier.name} {tier.price}" for tier in competitor.pricing[:4])
                competitor_lines.append(f"  * pricing: {prices}")
            if competitor.reviews and competitor.reviews.rating is not None:
                reviews = competitor.reviews
                count = f" from {reviews.review_count} reviews" if reviews.review_count else ""
                competitor_lines.append(f"  * reviews: {reviews.rating}/5{count}")
                for complaint in reviews.highlights:
                    competitor_lines.append(f"  * complaint: {complaint[:200]}")

        sections = [
            input_data.business_digest,
            "## INDUSTRY",
            discovery.industry_market.category_snapshot,
            "## COMPETITORS",
            "\n".join(competitor_lines) or "- none",
            "## ICP",
            f"{analysis.icp_analysis.validation_status}: {analysis.icp_analysis.summary}",
            "## OFFER",
            f"score {analysis.offer_analysis.overall_score}/10: {analysis.offer_analysis.summary}",
        ]

        if inputs.keyword_intelligence is not None:
            wins = inputs.keyword_intelligence.quick_wins[:MAX_KEYWORDS_IN_PROMPT]
            sections.append("## KEYWORD QUICK WINS")
            sections.append(
                "\n".join(f"- {k.keyword} ({k.search_volume}/mo, difficulty {k.difficulty})" for k in wins)
                or "- none"
            )
        if inputs.seo_audit is not None:
            sections.append("## CLIENT SITE SEO")
            sections.append(f"Overall score {inputs.seo_audit.overall_score}/100")

        logger.debug(
            "Built cross-analysis prompt",
            extra={
                "competitors": len(competitors),
                "has_keywords": inputs.keyword_intelligence is not None,
                "has_seo": inputs.seo_audit is not None,
            },
        )
        return "\n\n".join(sections)
