"""Late reconciliation of enrichment jobs into the final blueprint."""

import logging
import time
from typing import Any

from app.schemas.blueprint import (
    BlueprintDraft,
    BlueprintMetadata,
    CompetitorRecord,
    EnrichmentResult,
    EnrichmentTiming,
    HookCandidate,
    HookExtractionResult,
    KeywordIntelligenceResult,
    SegmentValidationResult,
    SEOAuditResult,
    StrategicBlueprint,
)
from app.services.blueprint.context import slugify
from app.services.blueprint.enrichment import (
    JOB_COMPETITORS,
    JOB_HOOKS,
    JOB_KEYWORDS,
    JOB_SEGMENT,
    JOB_SEO,
    EnrichmentCoordinator,
)
from app.services.blueprint.hook_diversity import HookDiversityValidator
from app.services.blueprint.ledger import CostLedger

logger = logging.getLogger(__name__)


class ResultReconciler:
    """Awaits stragglers once the pipeline returns and assembles the final blueprint."""

    def __init__(
        self,
        coordinator: EnrichmentCoordinator,
        ledger: CostLedger,
        validator: HookDiversityValidator,
        started_at: float,
    ) -> None:
        self._coordinator = coordinator
        self._ledger = ledger
        self._validator = validator
        self._started_at = started_at

    async def reconcile(self, draft: BlueprintDraft) -> StrategicBlueprint:
        enriched: EnrichmentResult | None = await self._await_job(JOB_COMPETITORS)
        keywords: KeywordIntelligenceResult | None = await self._await_job(JOB_KEYWORDS)
        seo: SEOAuditResult | None = await self._await_job(JOB_SEO)

        self._coordinator.ensure_hook_extraction()
        extraction: HookExtractionResult | None = await self._await_job(JOB_HOOKS)
        self._coordinator.ensure_segment_validation()
        segment: SegmentValidationResult | None = await self._await_job(JOB_SEGMENT)

        competitor_analysis = draft.competitor_analysis
        if enriched is not None and not draft.enrichment_status.get("competitors"):
            competitor_analysis = competitor_analysis.model_copy(
                update={"competitors": enriched.competitors}
            )

        hooks = self._curate_hooks(
            draft,
            competitor_analysis.competitors,
            extraction,
            segment,
        )

        for phase, cost in draft.phase_costs.items():
            self._ledger.record(phase, cost)

        metadata = BlueprintMetadata(
            total_time_ms=int((time.perf_counter() - self._started_at) * 1000),
            total_cost=self._ledger.total,
            job_costs=self._ledger.breakdown(),
            enrichment_status={
                "competitors": _timing(draft.enrichment_status.get("competitors", False), enriched),
                "keywords": _timing(draft.enrichment_status.get("keywords", False), keywords),
                "seo": _timing(draft.enrichment_status.get("seo", False), seo),
            },
            models_used=draft.models_used,
        )
        logger.info(
            "Blueprint reconciled",
            extra={
                "total_cost": metadata.total_cost,
                "total_time_ms": metadata.total_time_ms,
                "enrichment_status": metadata.enrichment_status,
                "hooks": len(hooks),
            },
        )

        return StrategicBlueprint(
            industry_market_overview=draft.industry_market_overview,
            icp_analysis_validation=draft.icp_analysis_validation,
            offer_analysis_viability=draft.offer_analysis_viability,
            competitor_analysis=competitor_analysis,
            cross_analysis_synthesis=draft.cross_analysis_synthesis,
            keyword_intelligence=draft.keyword_intelligence or keywords,
            seo_audit=draft.seo_audit or seo,
            hooks=hooks,
            metadata=metadata,
        )

    async def _await_job(self, job_id: str) -> Any:
        handle = self._coordinator.handle(job_id)
        if handle is None:
            return None
        value = await handle.wait()
        self._ledger.record(job_id, getattr(value, "cost", 0.0))
        self._coordinator.consume(job_id)
        return value

    def _curate_hooks(
        self,
        draft: BlueprintDraft,
        competitors: list[CompetitorRecord],
        extraction: HookExtractionResult | None,
        segment: SegmentValidationResult | None,
    ) -> list[HookCandidate]:
        ids_by_name = {c.name.lower(): c.id for c in competitors}
        inspired: list[HookCandidate] = []
        generated: list[HookCandidate] = []
        for hook in draft.cross_analysis_synthesis.hooks:
            if hook.inspired_by:
                competitor_id = ids_by_name.get(hook.inspired_by.lower(), slugify(hook.inspired_by))
                inspired.append(
                    HookCandidate(
                        text=hook.text,
                        provenance="inspired",
                        source_competitor_id=competitor_id,
                        technique=hook.technique,
                        awareness_level=hook.awareness_level,
                    )
                )
            else:
                generated.append(
                    HookCandidate(
                        text=hook.text,
                        provenance="generated",
                        technique=hook.technique,
                        awareness_level=hook.awareness_level,
                    )
                )

        quota = self._validator.compute_distribution(competitors)
        return self._validator.curate(
            extracted=extraction.hooks if extraction else [],
            inspired=inspired,
            generated=generated,
            quota=quota,
            flagged=segment.flagged_texts if segment else frozenset(),
        )


def _timing(inline: bool, value: object | None) -> EnrichmentTiming:
    if inline:
        return "inline"
    return "late" if value is not None else "unavailable"
