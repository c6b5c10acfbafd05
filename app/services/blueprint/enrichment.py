"""Spawning and chaining of the per-request enrichment jobs."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from app.core.deadline import JobHandle
from app.schemas.blueprint import (
    CompetitorRecord,
    DiscoveryPayload,
    EnrichmentResult,
    GenerationContext,
    HookExtractionInput,
    HookExtractionResult,
    HookRelevanceInput,
    InternalProgressEvent,
    KeywordIntelligenceInput,
    KeywordIntelligenceResult,
    SegmentValidationResult,
    SEOAuditResult,
)
from app.services.blueprint.context import resolve_client_domain

logger = logging.getLogger(__name__)

JOB_COMPETITORS = "competitorEnrichment"
JOB_KEYWORDS = "keywordIntelligence"
JOB_SEO = "seoAudit"
JOB_HOOKS = "hookExtraction"
JOB_SEGMENT = "segmentValidation"

InputT = TypeVar("InputT", contravariant=True)
ResultT = TypeVar("ResultT", covariant=True)

JobProgress = Callable[[str], None]


class EnrichmentProvider(Protocol[InputT, ResultT]):
    """A variable-latency data source. Returns None on soft failure."""

    async def run(self, input_data: InputT, on_progress: JobProgress | None = None) -> ResultT | None: ...


@dataclass(slots=True)
class EnrichmentProviders:
    competitors: EnrichmentProvider[list[CompetitorRecord], EnrichmentResult]
    keywords: EnrichmentProvider[KeywordIntelligenceInput, KeywordIntelligenceResult]
    seo: EnrichmentProvider[str, SEOAuditResult]
    hook_extraction: EnrichmentProvider[HookExtractionInput, HookExtractionResult]
    hook_relevance: EnrichmentProvider[HookRelevanceInput, SegmentValidationResult]


class EnrichmentCoordinator:
    """Owns the enrichment jobs of one request.

    Every job starts at most once. Hook extraction is chained off competitor
    enrichment settling and segment validation off hook extraction settling.
    """

    def __init__(
        self,
        context: GenerationContext,
        providers: EnrichmentProviders,
        on_progress: Callable[[InternalProgressEvent], None],
        on_settled: Callable[[JobHandle[Any]], None],
        on_consumed: Callable[[str], None],
        keyword_intelligence_enabled: bool,
        max_extraction_ads: int = 20,
    ) -> None:
        self._context = context
        self._providers = providers
        self._on_progress = on_progress
        self._on_settled = on_settled
        self._on_consumed = on_consumed
        self._keyword_intelligence_enabled = keyword_intelligence_enabled
        self._max_extraction_ads = max_extraction_ads
        self.handles: dict[str, JobHandle[Any]] = {}
        self._started = False
        self._hook_extraction_started = False
        self._segment_validation_started = False
        self._cancelled = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self, payload: DiscoveryPayload) -> bool:
        """Spawn the independent jobs. Returns False if already started."""
        if self._started or self._cancelled:
            return False
        self._started = True

        competitors = self._spawn(
            JOB_COMPETITORS,
            lambda progress: self._providers.competitors.run(payload.competitors, on_progress=progress),
        )
        competitors.add_done_callback(lambda _handle: self.ensure_hook_extraction())

        client_domain = payload.client_domain
        if client_domain and self._keyword_intelligence_enabled:
            keyword_input = KeywordIntelligenceInput(
                client_domain=client_domain,
                competitor_domains=_competitor_domains(payload.competitors, client_domain),
            )
            self._spawn(
                JOB_KEYWORDS,
                lambda progress: self._providers.keywords.run(keyword_input, on_progress=progress),
            )
        if client_domain:
            self._spawn(
                JOB_SEO,
                lambda progress: self._providers.seo.run(client_domain, on_progress=progress),
            )

        logger.info(
            "Enrichment started",
            extra={
                "jobs": sorted(self.handles),
                "competitors": len(payload.competitors),
                "client_domain": client_domain,
            },
        )
        return True

    def ensure_hook_extraction(self) -> JobHandle[Any] | None:
        """Start hook extraction once competitor enrichment has settled."""
        if self._hook_extraction_started:
            return self.handles.get(JOB_HOOKS)
        competitors = self.handles.get(JOB_COMPETITORS)
        if competitors is None or not competitors.done or self._cancelled:
            return None
        self._hook_extraction_started = True

        enriched: EnrichmentResult | None = competitors.result()
        ads = [
            ad
            for competitor in (enriched.competitors if enriched else [])
            for ad in competitor.ads
            if ad.has_text
        ]
        if not ads:
            logger.info("Hook extraction skipped, no ads with text")
            return None

        extraction_input = HookExtractionInput(
            company_name=self._context.company_name,
            ads=ads[: self._max_extraction_ads],
        )
        handle = self._spawn(
            JOB_HOOKS,
            lambda progress: self._providers.hook_extraction.run(extraction_input, on_progress=progress),
        )
        if self._context.target_segment.strip():
            handle.add_done_callback(lambda _handle: self.ensure_segment_validation())
        return handle

    def ensure_segment_validation(self) -> JobHandle[Any] | None:
        """Start segment validation once hook extraction has settled."""
        if self._segment_validation_started:
            return self.handles.get(JOB_SEGMENT)
        extraction = self.handles.get(JOB_HOOKS)
        if extraction is None or not extraction.done or self._cancelled:
            return None
        if not self._context.target_segment.strip():
            return None
        self._segment_validation_started = True

        result: HookExtractionResult | None = extraction.result()
        if result is None or not result.hooks:
            return None
        relevance_input = HookRelevanceInput(
            hooks=result.hooks,
            target_segment=self._context.target_segment,
            icp_description=self._context.icp_description,
        )
        return self._spawn(
            JOB_SEGMENT,
            lambda progress: self._providers.hook_relevance.run(relevance_input, on_progress=progress),
        )

    def handle(self, job_id: str) -> JobHandle[Any] | None:
        return self.handles.get(job_id)

    def consume(self, job_id: str) -> bool:
        """Mark a settled job as read, notifying the owner on the first read only."""
        handle = self.handles.get(job_id)
        if handle is None or not handle.done or not handle.mark_consumed():
            return False
        self._on_consumed(job_id)
        return True

    async def get_enriched_competitors(self) -> EnrichmentResult | None:
        return await self._read(JOB_COMPETITORS)

    async def get_keyword_intelligence(self) -> KeywordIntelligenceResult | None:
        return await self._read(JOB_KEYWORDS)

    async def get_seo_audit(self) -> SEOAuditResult | None:
        return await self._read(JOB_SEO)

    def cancel(self) -> int:
        """Cancel in-flight jobs and stop further chaining. Returns jobs cancelled."""
        self._cancelled = True
        cancelled = sum(1 for handle in self.handles.values() if not handle.done and handle.cancel())
        if cancelled:
            logger.info("Enrichment jobs cancelled", extra={"cancelled": cancelled})
        return cancelled

    async def _read(self, job_id: str) -> Any:
        handle = self.handles.get(job_id)
        if handle is None:
            return None
        value = await handle.wait()
        self.consume(job_id)
        return value

    def _spawn(self, job_id: str, factory: Callable[[JobProgress], Any]) -> JobHandle[Any]:
        progress = self._job_progress(job_id)
        progress("")
        handle: JobHandle[Any] = JobHandle(job_id, factory(progress), on_settled=self._on_settled)
        self.handles[job_id] = handle
        return handle

    def _job_progress(self, job_id: str) -> JobProgress:
        def report(message: str) -> None:
            if self._cancelled:
                return
            self._on_progress(InternalProgressEvent(job_id=job_id, status="starting", message=message))

        return report


def _competitor_domains(competitors: list[CompetitorRecord], client_domain: str) -> list[str]:
    domains: list[str] = []
    for competitor in competitors:
        domain = resolve_client_domain(competitor.website)
        if domain and domain != client_domain and domain not in domains:
            domains.append(domain)
    return domains
