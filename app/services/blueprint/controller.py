"""Three-phase blueprint generation pipeline.

Phase 1 (discovery) runs industry and competitor research, Phase 2 (deep
analysis) runs ICP and offer analysis, Phase 3 synthesizes. Before Phase 3
the controller asks the injected enrichment providers for data, bounded by
one shared deadline. Providers that miss the deadline keep running; the
controller holds no reference to them.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

from app.core.deadline import Deadline, race_with_deadline
from app.core.exceptions import PhaseValidationError, classify_exception
from app.schemas.blueprint import (
    BlueprintDraft,
    CompetitorAnalysis,
    CompetitorRecord,
    CompetitorSnapshot,
    CrossAnalysisSynthesis,
    DeepAnalysisOutput,
    DiscoveryOutput,
    DiscoveryPayload,
    EnrichmentResult,
    GenerationContext,
    InternalProgressEvent,
    KeywordIntelligenceResult,
    PhaseResult,
    PipelineResult,
    SEOAuditResult,
    SynthesisInputs,
)
from app.services.blueprint.context import slugify

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[InternalProgressEvent], None]


class PhaseRunner(Protocol):
    """Runs the LLM-backed generation phases."""

    async def discover(
        self,
        context: GenerationContext,
        on_progress: ProgressCallback,
    ) -> PhaseResult[DiscoveryOutput]: ...

    async def analyze(
        self,
        context: GenerationContext,
        discovery: DiscoveryOutput,
        on_progress: ProgressCallback,
    ) -> PhaseResult[DeepAnalysisOutput]: ...

    async def synthesize(
        self,
        context: GenerationContext,
        discovery: DiscoveryOutput,
        analysis: DeepAnalysisOutput,
        inputs: SynthesisInputs,
        on_progress: ProgressCallback,
    ) -> PhaseResult[CrossAnalysisSynthesis]: ...


@dataclass(slots=True)
class ControllerHooks:
    """Callbacks the controller uses to talk to its caller."""

    on_progress: ProgressCallback
    get_enriched_competitors: Callable[[], Awaitable[EnrichmentResult | None]]
    get_keyword_intelligence: Callable[[], Awaitable[KeywordIntelligenceResult | None]]
    get_seo_audit: Callable[[], Awaitable[SEOAuditResult | None]]
    enrichment_deadline_ms: int


def tier_competitors(
    snapshots: list[CompetitorSnapshot],
    context: GenerationContext,
    full_tier_limit: int,
) -> list[CompetitorRecord]:
    """Turn discovered competitors into tiered records.

    Names the client listed keep the tier they were given. The remaining
    discovered competitors fill the full tier up to ``full_tier_limit`` in
    discovery order; the rest are summary tier. Client-listed competitors the
    research did not surface are appended so they are always enriched.
    """
    full_names = {name.lower() for name in context.full_tier_names}
    summary_names = {name.lower() for name in context.summary_tier_names}

    by_id: dict[str, CompetitorSnapshot] = {}
    for snapshot in snapshots:
        by_id.setdefault(slugify(snapshot.name), snapshot)
    for name in (*context.full_tier_names, *context.summary_tier_names):
        by_id.setdefault(slugify(name), CompetitorSnapshot(name=name))

    full_slots = max(0, full_tier_limit - len(full_names))
    records: list[CompetitorRecord] = []
    for competitor_id, snapshot in by_id.items():
        key = snapshot.name.lower()
        if key in full_names:
            tier = "full"
        elif key in summary_names:
            tier = "summary"
        elif full_slots > 0:
            tier = "full"
            full_slots -= 1
        else:
            tier = "summary"
        records.append(
            CompetitorRecord(
                id=competitor_id,
                name=snapshot.name,
                tier=tier,
                website=snapshot.website,
                positioning=snapshot.positioning,
                strengths=snapshot.strengths,
                weaknesses=snapshot.weaknesses,
            )
        )
    return records


class PipelineController:
    """Runs the generation phases strictly in order."""

    def __init__(self, runner: PhaseRunner, full_tier_limit: int = 3) -> None:
        self._runner = runner
        self._full_tier_limit = full_tier_limit

    async def run(self, context: GenerationContext, hooks: ControllerHooks) -> PipelineResult:
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        phase = "discovery"
        try:
            discovery = await self._runner.discover(context, hooks.on_progress)
            competitors = tier_competitors(
                discovery.data.competitor_research.competitors,
                context,
                self._full_tier_limit,
            )
            if not competitors:
                raise PhaseValidationError("discovery", "no competitors identified")
            discovery_data = discovery.data.model_copy(update={"competitors": competitors})
            hooks.on_progress(
                InternalProgressEvent(
                    job_id="phase1",
                    status="complete",
                    message="Discovery complete",
                    elapsed_ms=elapsed_ms(),
                    cost=discovery.cost,
                    payload=DiscoveryPayload(
                        competitors=competitors,
                        client_domain=context.client_domain,
                    ),
                )
            )

            phase = "deep_analysis"
            analysis = await self._runner.analyze(context, discovery_data, hooks.on_progress)
            hooks.on_progress(
                InternalProgressEvent(
                    job_id="phase2",
                    status="complete",
                    message="Deep analysis complete",
                    elapsed_ms=elapsed_ms(),
                    cost=analysis.cost,
                )
            )

            inputs = await self._collect_enrichment(hooks)

            phase = "synthesis"
            synthesis = await self._runner.synthesize(
                context,
                discovery_data,
                analysis.data,
                inputs,
                hooks.on_progress,
            )
            hooks.on_progress(
                InternalProgressEvent(
                    job_id="phase3",
                    status="complete",
                    message="Synthesis complete",
                    elapsed_ms=elapsed_ms(),
                    cost=synthesis.cost,
                )
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            code = classify_exception(exc)
            logger.warning(
                "Blueprint pipeline failed",
                extra={"phase": phase, "error_code": code.value, "elapsed_ms": elapsed_ms()},
                exc_info=True,
            )
            hooks.on_progress(
                InternalProgressEvent(
                    job_id=phase,
                    status="error",
                    message=str(exc) or type(exc).__name__,
                    elapsed_ms=elapsed_ms(),
                )
            )
            return PipelineResult(
                success=False,
                error=f"{phase} phase failed: {exc}",
                error_code=code.value,
            )

        enriched = inputs.enriched_competitors
        draft = BlueprintDraft(
            industry_market_overview=discovery_data.industry_market,
            icp_analysis_validation=analysis.data.icp_analysis,
            offer_analysis_viability=analysis.data.offer_analysis,
            competitor_analysis=CompetitorAnalysis(
                competitors=enriched.competitors if enriched is not None else competitors,
                market_patterns=discovery_data.competitor_research.market_patterns,
                white_space=discovery_data.competitor_research.white_space,
            ),
            cross_analysis_synthesis=synthesis.data,
            keyword_intelligence=inputs.keyword_intelligence,
            seo_audit=inputs.seo_audit,
            enrichment_status={
                "competitors": enriched is not None,
                "keywords": inputs.keyword_intelligence is not None,
                "seo": inputs.seo_audit is not None,
            },
            phase_costs={
                "discovery": discovery.cost,
                "deep_analysis": analysis.cost,
                "synthesis": synthesis.cost,
            },
            models_used=sorted({r.model for r in (discovery, analysis, synthesis) if r.model}),
        )
        logger.info(
            "Blueprint pipeline completed",
            extra={"elapsed_ms": elapsed_ms(), "enrichment_status": draft.enrichment_status},
        )
        return PipelineResult(success=True, result=draft)

    async def _collect_enrichment(self, hooks: ControllerHooks) -> SynthesisInputs:
        deadline = Deadline(hooks.enrichment_deadline_ms)
        competitors, keywords, seo = await asyncio.gather(
            self._within_deadline("competitors", hooks.get_enriched_competitors, deadline),
            self._within_deadline("keywords", hooks.get_keyword_intelligence, deadline),
            self._within_deadline("seo", hooks.get_seo_audit, deadline),
        )
        return SynthesisInputs(
            enriched_competitors=competitors,
            keyword_intelligence=keywords,
            seo_audit=seo,
        )

    async def _within_deadline(
        self,
        name: str,
        provider: Callable[[], Awaitable[T | None]],
        deadline: Deadline,
    ) -> T | None:
        try:
            outcome = await race_with_deadline(provider(), deadline.remaining_ms())
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Enrichment provider failed", extra={"provider": name}, exc_info=True)
            return None

        if not outcome.available:
            logger.info(
                "Enrichment missed synthesis deadline",
                extra={"provider": name, "deadline_ms": deadline.duration_ms},
            )
            return None
        if outcome.value is None:
            logger.info("Enrichment unavailable for synthesis", extra={"provider": name})
        return outcome.value
