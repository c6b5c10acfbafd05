"""Unit tests for the agent-backed phase runner and the base agent."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import pytest

from app.agents.base_agent import AgentRun, estimate_cost
from app.agents.cross_analysis import CrossAnalysisAgent, CrossAnalysisInput
from app.agents.discovery import IndustryResearchAgent, IndustryResearchInput
from app.core.circuit_breaker import get_circuit_breaker, reset_circuit_breakers
from app.core.exceptions import CircuitOpenError
from app.schemas.blueprint import (
    AdCreative,
    CompetitorRecord,
    CompetitorResearch,
    CompetitorSnapshot,
    CrossAnalysisSynthesis,
    DeepAnalysisOutput,
    DiscoveryOutput,
    EnrichmentResult,
    GenerationContext,
    ICPAnalysis,
    IndustryMarketOverview,
    InternalProgressEvent,
    OfferAnalysis,
    PricingTier,
    ReviewSummary,
    SynthesisHook,
    SynthesisInputs,
)
from app.services.blueprint.phases import AgentPhaseRunner


@pytest.fixture(autouse=True)
def _fresh_breakers() -> Iterator[None]:
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()


class FakeAgent:
    def __init__(self, output: Any, cost: float, model: str = "test:model") -> None:
        self.output = output
        self.cost = cost
        self.model = model
        self.inputs: list[Any] = []

    async def run_with_usage(self, input_data: Any) -> AgentRun:
        self.inputs.append(input_data)
        return AgentRun(output=self.output, model=self.model, input_tokens=10, output_tokens=5, cost=self.cost, elapsed_ms=3)


class FailingAgent:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def run_with_usage(self, input_data: Any) -> AgentRun:
        await asyncio.sleep(0)
        raise self.error


class HangingAgent:
    """Never finishes on its own; records whether it was cancelled."""

    def __init__(self) -> None:
        self.started = False
        self.cancelled = False

    async def run_with_usage(self, input_data: Any) -> AgentRun:
        self.started = True
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


@dataclass
class FakeUsage:
    input_tokens: int
    output_tokens: int


class FakeResult:
    def __init__(self, output: Any) -> None:
        self.output = output

    def usage(self) -> FakeUsage:
        return FakeUsage(input_tokens=2000, output_tokens=1000)


class FakePydanticAgent:
    """Stands in for ``pydantic_ai.Agent``; raises ``error`` when set."""

    def __init__(self, output: Any = None, error: Exception | None = None) -> None:
        self.output = output
        self.error = error
        self.prompts: list[str] = []

    async def run(self, prompt: str) -> FakeResult:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return FakeResult(self.output)


def _discovery() -> DiscoveryOutput:
    return DiscoveryOutput(
        industry_market=IndustryMarketOverview(category_snapshot="Finance automation"),
        competitor_research=CompetitorResearch(competitors=[CompetitorSnapshot(name="Alpha")]),
    )


def _analysis() -> DeepAnalysisOutput:
    return DeepAnalysisOutput(icp_analysis=ICPAnalysis(summary="CFOs"), offer_analysis=OfferAnalysis(overall_score=7))


def _runner() -> tuple[AgentPhaseRunner, dict[str, FakeAgent]]:
    agents = {
        "industry": FakeAgent(IndustryMarketOverview(category_snapshot="Finance automation"), 0.01, "test:industry"),
        "competitor": FakeAgent(CompetitorResearch(competitors=[CompetitorSnapshot(name="Alpha")]), 0.02),
        "icp": FakeAgent(ICPAnalysis(summary="CFOs"), 0.03, "test:icp"),
        "offer": FakeAgent(OfferAnalysis(overall_score=6), 0.04),
        "synthesis": FakeAgent(CrossAnalysisSynthesis(hooks=[SynthesisHook(text="Close in two days")]), 0.05),
    }
    runner = AgentPhaseRunner(
        industry_agent=agents["industry"],  # type: ignore[arg-type]
        competitor_agent=agents["competitor"],  # type: ignore[arg-type]
        icp_agent=agents["icp"],  # type: ignore[arg-type]
        offer_agent=agents["offer"],  # type: ignore[arg-type]
        cross_analysis_agent=agents["synthesis"],  # type: ignore[arg-type]
    )
    return runner, agents


@pytest.mark.asyncio
async def test_discover_runs_both_sections_and_sums_cost(generation_context: GenerationContext) -> None:
    runner, agents = _runner()
    events: list[InternalProgressEvent] = []

    result = await runner.discover(generation_context, events.append)

    assert result.phase == "discovery"
    assert result.cost == pytest.approx(0.03)
    assert result.model == "test:industry"
    assert result.data.industry_market.category_snapshot == "Finance automation"
    assert [c.name for c in result.data.competitor_research.competitors] == ["Alpha"]
    assert {(e.job_id, e.status) for e in events} == {
        ("industryMarket", "starting"),
        ("industryMarket", "complete"),
        ("competitorResearch", "starting"),
        ("competitorResearch", "complete"),
    }
    competitor_input = agents["competitor"].inputs[0]
    assert competitor_input.full_tier_names == list(generation_context.full_tier_names)


@pytest.mark.asyncio
async def test_complete_events_carry_section_cost(generation_context: GenerationContext) -> None:
    runner, _ = _runner()
    events: list[InternalProgressEvent] = []

    await runner.analyze(generation_context, _discovery(), events.append)

    completed = {e.job_id: e.cost for e in events if e.status == "complete"}
    assert completed == {"icpValidation": 0.03, "offerAnalysis": 0.04}


@pytest.mark.asyncio
async def test_discover_failure_cancels_sibling_section(generation_context: GenerationContext) -> None:
    hanging = HangingAgent()
    runner = AgentPhaseRunner(
        industry_agent=FailingAgent(CircuitOpenError("llm:standard", 30)),  # type: ignore[arg-type]
        competitor_agent=hanging,  # type: ignore[arg-type]
    )
    events: list[InternalProgressEvent] = []

    with pytest.raises(CircuitOpenError):
        await runner.discover(generation_context, events.append)

    assert hanging.started
    assert hanging.cancelled
    assert ("competitorResearch", "complete") not in {(e.job_id, e.status) for e in events}


@pytest.mark.asyncio
async def test_analyze_failure_cancels_sibling_section(generation_context: GenerationContext) -> None:
    hanging = HangingAgent()
    runner = AgentPhaseRunner(
        icp_agent=hanging,  # type: ignore[arg-type]
        offer_agent=FailingAgent(ValueError("bad output")),  # type: ignore[arg-type]
    )

    with pytest.raises(ValueError, match="bad output"):
        await runner.analyze(generation_context, _discovery(), lambda _event: None)

    assert hanging.cancelled


@pytest.mark.asyncio
async def test_synthesize_passes_enrichment_inputs(generation_context: GenerationContext) -> None:
    runner, agents = _runner()
    events: list[InternalProgressEvent] = []
    inputs = SynthesisInputs(enriched_competitors=EnrichmentResult(competitors=[], cost=0.0))

    result = await runner.synthesize(generation_context, _discovery(), _analysis(), inputs, events.append)

    assert result.phase == "synthesis"
    assert result.data.hooks[0].text == "Close in two days"
    assert result.cost == 0.05
    assert agents["synthesis"].inputs[0].inputs is inputs
    assert [e.status for e in events] == ["starting", "complete"]


def test_cross_analysis_prompt_prefers_enriched_competitors() -> None:
    enriched = CompetitorRecord(
        id="alpha",
        name="Alpha",
        positioning="Close faster",
        ads=[AdCreative(headline="Two-day close", body="Try it", source_competitor_id="alpha")],
        pricing=[PricingTier(name="Starter", price="$29/mo")],
        reviews=ReviewSummary(rating=2.9, review_count=340, highlights=["Support never answers billing tickets"]),
    )
    agent = CrossAnalysisAgent(model_override="test")

    prompt = agent._build_prompt(
        CrossAnalysisInput(
            business_digest="Ledgerly digest",
            discovery=_discovery(),
            analysis=_analysis(),
            inputs=SynthesisInputs(enriched_competitors=EnrichmentResult(competitors=[enriched], cost=0.0)),
        )
    )

    assert prompt.startswith("Ledgerly digest")
    assert "- Alpha: Close faster" in prompt
    assert "* ad: Two-day close | Try it" in prompt
    assert "* pricing: Starter $29/mo" in prompt
    assert "* reviews: 2.9/5 from 340 reviews" in prompt
    assert "* complaint: Support never answers billing tickets" in prompt
    assert "## KEYWORD QUICK WINS" not in prompt
    assert "score 7.0/10" in prompt


@pytest.mark.asyncio
async def test_run_with_usage_reports_tokens_and_cost() -> None:
    agent = IndustryResearchAgent(model_override="test")
    fake = FakePydanticAgent(output=IndustryMarketOverview(category_snapshot="Finance automation"))
    agent._agent = fake  # type: ignore[assignment]

    run = await agent.run_with_usage(IndustryResearchInput(business_digest="Ledgerly digest"))

    assert run.output.category_snapshot == "Finance automation"
    assert run.model == "test"
    assert (run.input_tokens, run.output_tokens) == (2000, 1000)
    assert run.cost == estimate_cost(2000, 1000)
    assert "Ledgerly digest" in fake.prompts[0]


@pytest.mark.asyncio
async def test_repeated_failures_open_the_tier_circuit() -> None:
    agent = IndustryResearchAgent(model_override="test")
    fake = FakePydanticAgent(error=RuntimeError("provider down"))
    agent._agent = fake  # type: ignore[assignment]
    input_data = IndustryResearchInput(business_digest="Ledgerly digest")

    for _ in range(3):
        with pytest.raises(RuntimeError):
            await agent.run(input_data)

    with pytest.raises(CircuitOpenError):
        await agent.run(input_data)

    assert len(fake.prompts) == 3
    assert get_circuit_breaker(f"llm:{agent.model_tier}").state == "OPEN"
