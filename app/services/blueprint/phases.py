"""Generation phases backed by pydantic-ai agents."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel

from app.agents.base_agent import AgentRun
from app.agents.cross_analysis import CrossAnalysisAgent, CrossAnalysisInput
from app.agents.deep_analysis import DeepAnalysisInput, ICPValidationAgent, OfferAnalysisAgent
from app.agents.discovery import (
    CompetitorResearchAgent,
    CompetitorResearchInput,
    IndustryResearchAgent,
    IndustryResearchInput,
)
from app.schemas.blueprint import (
    CrossAnalysisSynthesis,
    DeepAnalysisOutput,
    DiscoveryOutput,
    GenerationContext,
    InternalProgressEvent,
    PhaseResult,
    SynthesisInputs,
)

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)
FirstT = TypeVar("FirstT")
SecondT = TypeVar("SecondT")

ProgressCallback = Callable[[InternalProgressEvent], None]


class AgentPhaseRunner:
    """Runs the three generation phases with one agent per section."""

    def __init__(
        self,
        industry_agent: IndustryResearchAgent | None = None,
        competitor_agent: CompetitorResearchAgent | None = None,
        icp_agent: ICPValidationAgent | None = None,
        offer_agent: OfferAnalysisAgent | None = None,
        cross_analysis_agent: CrossAnalysisAgent | None = None,
    ) -> None:
        self._industry_agent = industry_agent or IndustryResearchAgent()
        self._competitor_agent = competitor_agent or CompetitorResearchAgent()
        self._icp_agent = icp_agent or ICPValidationAgent()
        self._offer_agent = offer_agent or OfferAnalysisAgent()
        self._cross_analysis_agent = cross_analysis_agent or CrossAnalysisAgent()

    async def discover(
        self,
        context: GenerationContext,
        on_progress: ProgressCallback,
    ) -> PhaseResult[DiscoveryOutput]:
        started = time.perf_counter()
        industry, competitors = await _run_pair(
            _tracked(
                "industryMarket",
                lambda: self._industry_agent.run_with_usage(
                    IndustryResearchInput(business_digest=context.business_digest)
                ),
                on_progress,
            ),
            _tracked(
                "competitorResearch",
                lambda: self._competitor_agent.run_with_usage(
                    CompetitorResearchInput(
                        business_digest=context.business_digest,
                        full_tier_names=list(context.full_tier_names),
                        summary_tier_names=list(context.summary_tier_names),
                    )
                ),
                on_progress,
            ),
        )
        return PhaseResult[DiscoveryOutput](
            phase="discovery",
            data=DiscoveryOutput(
                industry_market=industry.output,
                competitor_research=competitors.output,
            ),
            cost=industry.cost + competitors.cost,
            elapsed_ms=_elapsed_ms(started),
            model=industry.model,
        )

    async def analyze(
        self,
        context: GenerationContext,
        discovery: DiscoveryOutput,
        on_progress: ProgressCallback,
    ) -> PhaseResult[DeepAnalysisOutput]:
        started = time.perf_counter()
        analysis_input = DeepAnalysisInput(business_digest=context.business_digest, discovery=discovery)
        icp, offer = await _run_pair(
            _tracked("icpValidation", lambda: self._icp_agent.run_with_usage(analysis_input), on_progress),
            _tracked("offerAnalysis", lambda: self._offer_agent.run_with_usage(analysis_input), on_progress),
        )
        return PhaseResult[DeepAnalysisOutput](
            phase="deep_analysis",
            data=DeepAnalysisOutput(icp_analysis=icp.output, offer_analysis=offer.output),
            cost=icp.cost + offer.cost,
            elapsed_ms=_elapsed_ms(started),
            model=icp.model,
        )

    async def synthesize(
        self,
        context: GenerationContext,
        discovery: DiscoveryOutput,
        analysis: DeepAnalysisOutput,
        inputs: SynthesisInputs,
        on_progress: ProgressCallback,
    ) -> PhaseResult[CrossAnalysisSynthesis]:
        started = time.perf_counter()
        synthesis = await _tracked(
            "crossAnalysis",
            lambda: self._cross_analysis_agent.run_with_usage(
                CrossAnalysisInput(
                    business_digest=context.business_digest,
                    discovery=discovery,
                    analysis=analysis,
                    inputs=inputs,
                )
            ),
            on_progress,
        )
        return PhaseResult[CrossAnalysisSynthesis](
            phase="synthesis",
            data=synthesis.output,
            cost=synthesis.cost,
            elapsed_ms=_elapsed_ms(started),
            model=synthesis.model,
        )


async def _run_pair(first: Awaitable[FirstT], second: Awaitable[SecondT]) -> tuple[FirstT, SecondT]:
    """Await two sections concurrently.

    The first failure cancels the other section and is re-raised unchanged.
    """
    tasks = (asyncio.ensure_future(first), asyncio.ensure_future(second))
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    for task in tasks:
        if not task.cancelled() and (error := task.exception()) is not None:
            raise error
    return tasks[0].result(), tasks[1].result()


async def _tracked(
    job_id: str,
    call: Callable[[], Awaitable[AgentRun[OutputT]]],
    on_progress: ProgressCallback,
) -> AgentRun[OutputT]:
    on_progress(InternalProgressEvent(job_id=job_id, status="starting"))
    run = await call()
    on_progress(
        InternalProgressEvent(
            job_id=job_id,
            status="complete",
            elapsed_ms=run.elapsed_ms,
            cost=run.cost,
        )
    )
    return run


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
