"""Phase 2 agents: ICP validation and offer viability."""

from pydantic import BaseModel

from app.agents.base_agent import BaseAgent
from app.schemas.blueprint import DiscoveryOutput, ICPAnalysis, OfferAnalysis


class DeepAnalysisInput(BaseModel):
    business_digest: str
    discovery: DiscoveryOutput


def _discovery_brief(discovery: DiscoveryOutput) -> str:
    market = discovery.industry_market
    competitors = "\n".join(
        f"- {c.name} ({c.tier}): {c.positioning or 'positioning unknown'}"
        for c in discovery.competitors
    ) or "- none found"
    pains = "\n".join(f"- {pain}" for pain in market.pain_points) or "- none"
    return f"""## DISCOVERY FINDINGS
Category: {market.category_snapshot}
Maturity: {market.market_maturity}

Market pain points:
{pains}

Competitors:
{competitors}"""


class ICPValidationAgent(BaseAgent[DeepAnalysisInput, ICPAnalysis]):
    """Agent that stress-tests the client's ideal customer profile."""

    temperature = 0.3

    @property
    def system_prompt(self) -> str:
        return """You validate ideal customer profiles for paid acquisition.

validation_status:
- validated: the ICP is reachable, has budget and an urgent pain the offer solves.
- workable: viable with caveats you list under risks.
- invalid: the ICP cannot be reached or will not pay; explain why in summary.

Be direct. Objections must be phrased the way a buyer would say them."""

    @property
    def output_type(self) -> type[ICPAnalysis]:
        return ICPAnalysis

    def _build_prompt(self, input_data: DeepAnalysisInput) -> str:
        return f"""{input_data.business_digest}

{_discovery_brief(input_data.discovery)}

Validate the ICP. Return validation_status, summary, pain_points, buying_triggers, objections and risks."""


class OfferAnalysisAgent(BaseAgent[DeepAnalysisInput, OfferAnalysis]):
    """Agent that scores the offer's viability against the market."""

    temperature = 0.3

    @property
    def system_prompt(self) -> str:
        return """You evaluate offers for cold paid traffic.

Score overall_score from 0 to 10, where 5 means "sells only with strong proof" and 8+
means "sells on the promise alone". Judge pricing against the competitors listed.
Recommendations must be concrete changes to the offer, not marketing advice."""

    @property
    def output_type(self) -> type[OfferAnalysis]:
        return OfferAnalysis

    def _build_prompt(self, input_data: DeepAnalysisInput) -> str:
        return f"""{input_data.business_digest}

{_discovery_brief(input_data.discovery)}

Analyze offer viability. Return overall_score, summary, strengths, weaknesses and recommendations."""
