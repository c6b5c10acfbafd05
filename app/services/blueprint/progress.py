"""Translation of internal progress into client stream events.

Internal job ids are routed through ``SECTION_ROUTES``. Ids that are not in
the table (``phase1``, ``phase2`` and anything unknown) never reach the client.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from app.schemas.blueprint import InternalProgressEvent, SectionId
from app.schemas.events import (
    ClientEvent,
    MetadataEvent,
    ProgressEvent,
    SectionCompleteEvent,
    SectionStartEvent,
)

logger = logging.getLogger(__name__)

SECTION_LABELS: dict[SectionId, str] = {
    "industryMarketOverview": "Industry & Market Overview",
    "icpAnalysisValidation": "ICP Analysis & Validation",
    "offerAnalysisViability": "Offer Analysis & Viability",
    "competitorAnalysis": "Competitor Analysis",
    "crossAnalysisSynthesis": "Cross-Analysis Synthesis",
    "keywordIntelligence": "Keyword Intelligence",
}

ALL_SECTIONS: tuple[SectionId, ...] = tuple(SECTION_LABELS)


@dataclass(frozen=True, slots=True)
class SectionRoute:
    section: SectionId | None
    label: str
    opens: bool = False
    closes: bool = False


SECTION_ROUTES: dict[str, SectionRoute] = {
    "industryMarket": SectionRoute(
        "industryMarketOverview", "Researching industry & market", opens=True, closes=True
    ),
    "competitorResearch": SectionRoute(
        "competitorAnalysis", "Researching competitors", opens=True
    ),
    "competitorEnrichment": SectionRoute(
        "competitorAnalysis", "Enriching competitor data", closes=True
    ),
    "icpValidation": SectionRoute(
        "icpAnalysisValidation", "Validating ICP", opens=True, closes=True
    ),
    "offerAnalysis": SectionRoute(
        "offerAnalysisViability", "Analyzing offer viability", opens=True, closes=True
    ),
    "crossAnalysis": SectionRoute(
        "crossAnalysisSynthesis", "Synthesizing strategy", opens=True, closes=True
    ),
    "keywordIntelligence": SectionRoute(
        "keywordIntelligence", "Gathering keyword intelligence", opens=True, closes=True
    ),
    "seoAudit": SectionRoute(None, "Auditing client website"),
    "hookExtraction": SectionRoute("crossAnalysisSynthesis", "Extracting ad hooks"),
    "segmentValidation": SectionRoute("crossAnalysisSynthesis", "Validating hook relevance"),
}


class EventSink(Protocol):
    """Destination of client events for one request."""

    @property
    def closed(self) -> bool: ...

    def emit(self, event: ClientEvent) -> None: ...


class ProgressTranslator:
    """Maps internal progress to client events and owns section completion state."""

    def __init__(
        self,
        sink: EventSink,
        sections: tuple[SectionId, ...] = ALL_SECTIONS,
        cost_fn: Callable[[], float] = lambda: 0.0,
        started_at: float | None = None,
    ) -> None:
        self._sink = sink
        self.sections = sections
        self._cost_fn = cost_fn
        self._started_at = started_at if started_at is not None else time.perf_counter()
        self._started: set[SectionId] = set()
        self._completed: set[SectionId] = set()

    @property
    def completed_sections(self) -> frozenset[SectionId]:
        return frozenset(self._completed)

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def percentage(self) -> int:
        if not self.sections:
            return 100
        return min(100, round(100 * len(self._completed) / len(self.sections)))

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._started_at) * 1000)

    def handle(self, event: InternalProgressEvent) -> None:
        """Translate one internal progress event."""
        route = SECTION_ROUTES.get(event.job_id)
        if route is None:
            return

        if route.section is not None and route.section not in self.sections:
            return

        if event.status == "starting" and route.opens and route.section is not None:
            self.start_section(route.section)

        message = event.message or route.label
        if event.status == "complete" and route.closes and route.section is not None:
            self.complete_section(route.section)
        self.progress(message)

    def progress(self, message: str) -> None:
        self._emit(ProgressEvent(percentage=self.percentage, message=message))

    def start_section(self, section: SectionId) -> bool:
        if section not in self.sections or section in self._started:
            return False
        self._started.add(section)
        self._emit(SectionStartEvent(section=section, label=SECTION_LABELS[section]))
        return True

    def complete_section(self, section: SectionId) -> bool:
        """Mark ``section`` complete. Emits only on the first call per section."""
        if section not in self.sections or section in self._completed:
            return False
        self._started.add(section)
        self._completed.add(section)
        self._emit(SectionCompleteEvent(section=section, label=SECTION_LABELS[section]))
        self._emit(self.metadata_event())
        logger.info(
            "Section completed",
            extra={"section": section, "completed": len(self._completed), "total": self.total_sections},
        )
        return True

    def metadata_event(self) -> MetadataEvent:
        return MetadataEvent(
            elapsed_time=self.elapsed_ms,
            estimated_cost=round(self._cost_fn(), 6),
            completed_sections=len(self._completed),
            total_sections=self.total_sections,
        )

    def _emit(self, event: ClientEvent) -> None:
        if self._sink.closed:
            return
        self._sink.emit(event)
