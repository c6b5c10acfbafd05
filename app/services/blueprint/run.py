"""Per-request blueprint orchestration.

``BlueprintRun`` owns everything that lives for one request: the cost ledger,
the progress translator, the enrichment coordinator and its jobs. Nothing is
shared between requests.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from app.config import Settings, settings
from app.core.deadline import JobHandle
from app.core.exceptions import ErrorCode, classify_exception
from app.core.logging import bind_run_id
from app.schemas.blueprint import (
    DiscoveryPayload,
    GenerationContext,
    InternalProgressEvent,
    SectionId,
    StrategicBlueprint,
)
from app.schemas.events import ClientEvent, DoneEvent, DoneMetadata, ErrorEvent, format_sse
from app.services.blueprint.controller import ControllerHooks, PhaseRunner, PipelineController
from app.services.blueprint.enrichment import EnrichmentCoordinator, EnrichmentProviders
from app.services.blueprint.hook_diversity import HookDiversityValidator
from app.services.blueprint.ledger import CostLedger
from app.services.blueprint.progress import ALL_SECTIONS, SECTION_ROUTES, ProgressTranslator
from app.services.blueprint.reconciler import ResultReconciler

logger = logging.getLogger(__name__)

PHASE_COST_KEYS = {"phase1": "discovery", "phase2": "deep_analysis", "phase3": "synthesis"}


class QueueEventSink:
    """Event sink backed by an ``asyncio.Queue`` and drained as SSE frames."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ClientEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ClientEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[str]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield format_sse(event)


class CollectingEventSink:
    """Event sink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[ClientEvent] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ClientEvent) -> None:
        if not self._closed:
            self.events.append(event)

    def close(self) -> None:
        self._closed = True


@dataclass(slots=True)
class BlueprintOutcome:
    success: bool
    blueprint: StrategicBlueprint | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    completed_sections: list[SectionId] = field(default_factory=list)
    elapsed_ms: int = 0
    total_cost: float = 0.0

    def metadata(self) -> dict[str, Any]:
        return {
            "totalTime": self.elapsed_ms,
            "totalCost": self.total_cost,
            "completedSections": self.completed_sections,
        }


class BlueprintRun:
    """Runs one blueprint request end to end and streams its progress."""

    def __init__(
        self,
        context: GenerationContext,
        sink: QueueEventSink | CollectingEventSink,
        runner: PhaseRunner,
        providers: EnrichmentProviders,
        config: Settings = settings,
        run_id: str | None = None,
    ) -> None:
        self.context = context
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.started_at = time.perf_counter()
        self._sink = sink
        self._config = config
        self._finished = False

        keyword_enabled = bool(context.client_domain) and config.keyword_intelligence_enabled
        sections = tuple(
            section
            for section in ALL_SECTIONS
            if keyword_enabled or section != "keywordIntelligence"
        )

        self.ledger = CostLedger()
        self.translator = ProgressTranslator(
            sink,
            sections,
            cost_fn=lambda: self.ledger.total,
            started_at=self.started_at,
        )
        self.coordinator = EnrichmentCoordinator(
            context,
            providers,
            on_progress=self._on_progress,
            on_settled=self._on_job_settled,
            on_consumed=self._on_job_consumed,
            keyword_intelligence_enabled=keyword_enabled,
            max_extraction_ads=config.hook_extraction_max_ads,
        )
        self.controller = PipelineController(runner, full_tier_limit=config.full_tier_competitor_limit)
        self.reconciler = ResultReconciler(
            self.coordinator,
            self.ledger,
            HookDiversityValidator(
                cap=config.hook_cap,
                hard_ceiling=config.hook_max_per_competitor,
                slack=config.hook_quota_slack,
            ),
            started_at=self.started_at,
        )

    @property
    def finished(self) -> bool:
        return self._finished

    def _elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started_at) * 1000)

    def _on_progress(self, event: InternalProgressEvent) -> None:
        if event.status == "complete" and event.job_id in PHASE_COST_KEYS:
            self.ledger.record(PHASE_COST_KEYS[event.job_id], event.cost)
        if (
            event.job_id == "phase1"
            and event.status == "complete"
            and isinstance(event.payload, DiscoveryPayload)
        ):
            self.coordinator.start(event.payload)
        self.translator.handle(event)

    def _on_job_settled(self, handle: JobHandle[Any]) -> None:
        self.ledger.record(handle.job_id, getattr(handle.result(), "cost", 0.0))

    def _on_job_consumed(self, job_id: str) -> None:
        route = SECTION_ROUTES.get(job_id)
        label = route.label if route is not None else job_id
        self.translator.handle(
            InternalProgressEvent(
                job_id=job_id,
                status="complete",
                message=f"{label}: done",
                elapsed_ms=self._elapsed_ms(),
            )
        )

    def cancel(self) -> None:
        """Stop in-flight enrichment, e.g. after the client disconnected."""
        cancelled = self.coordinator.cancel()
        logger.info("Blueprint run cancelled", extra={"jobs_cancelled": cancelled})

    async def execute(self) -> BlueprintOutcome:
        """Run the pipeline, reconcile stragglers and emit the terminal event."""
        with bind_run_id(self.run_id):
            logger.info(
                "Blueprint run started",
                extra={
                    "company": self.context.company_name,
                    "client_domain": self.context.client_domain,
                    "sections": list(self.translator.sections),
                },
            )
            try:
                return await self._execute()
            except asyncio.CancelledError:
                self.coordinator.cancel()
                raise
            except Exception as exc:
                code = classify_exception(exc)
                logger.exception("Blueprint run crashed", extra={"error_code": code.value})
                return self._fail(code, f"Blueprint generation failed: {exc}")
            finally:
                self._finished = True
                self._sink.close()

    async def _execute(self) -> BlueprintOutcome:
        hooks = ControllerHooks(
            on_progress=self._on_progress,
            get_enriched_competitors=self.coordinator.get_enriched_competitors,
            get_keyword_intelligence=self.coordinator.get_keyword_intelligence,
            get_seo_audit=self.coordinator.get_seo_audit,
            enrichment_deadline_ms=self._config.enrichment_deadline_ms,
        )
        pipeline = await self.controller.run(self.context, hooks)
        if not pipeline.success or pipeline.result is None:
            self.coordinator.cancel()
            code = ErrorCode(pipeline.error_code) if pipeline.error_code else ErrorCode.INTERNAL_ERROR
            return self._fail(code, pipeline.error or "Blueprint generation failed")

        blueprint = await self.reconciler.reconcile(pipeline.result)
        self.translator.progress("Strategic blueprint complete")

        outcome = BlueprintOutcome(
            success=True,
            blueprint=blueprint,
            completed_sections=sorted(self.translator.completed_sections),
            elapsed_ms=blueprint.metadata.total_time_ms,
            total_cost=blueprint.metadata.total_cost,
        )
        self._emit(
            DoneEvent(
                result=blueprint.model_dump(mode="json", by_alias=True),
                metadata=DoneMetadata(total_time=outcome.elapsed_ms, total_cost=outcome.total_cost),
            )
        )
        logger.info(
            "Blueprint run completed",
            extra={"elapsed_ms": outcome.elapsed_ms, "total_cost": outcome.total_cost},
        )
        return outcome

    def _fail(self, code: ErrorCode, message: str) -> BlueprintOutcome:
        self._emit(ErrorEvent(message=message, code=code.value))
        return BlueprintOutcome(
            success=False,
            error=message,
            error_code=code,
            completed_sections=sorted(self.translator.completed_sections),
            elapsed_ms=self._elapsed_ms(),
            total_cost=self.ledger.total,
        )

    def _emit(self, event: ClientEvent) -> None:
        if not self._sink.closed:
            self._sink.emit(event)

