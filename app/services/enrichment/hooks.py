"""LLM-backed hook extraction and segment-relevance checks."""

import logging
from collections.abc import Callable

from app.agents.hook_extraction import HookExtractionAgent
from app.agents.hook_relevance import HookRelevanceAgent
from app.schemas.blueprint import (
    HookCandidate,
    HookExtractionInput,
    HookExtractionResult,
    HookRelevance,
    HookRelevanceInput,
    SegmentValidationResult,
)

logger = logging.getLogger(__name__)

Progress = Callable[[str], None]


class HookExtractionService:
    """Turns competitor ads into attributed hook candidates."""

    def __init__(self, agent: HookExtractionAgent | None = None) -> None:
        self._agent = agent or HookExtractionAgent()

    async def run(
        self,
        input_data: HookExtractionInput,
        on_progress: Progress | None = None,
    ) -> HookExtractionResult | None:
        if not input_data.ads:
            return HookExtractionResult()
        if on_progress:
            on_progress(f"Extracting hooks from {len(input_data.ads)} competitor ads...")

        run = await self._agent.run_with_usage(input_data)

        hooks: list[HookCandidate] = []
        seen: set[str] = set()
        for extracted in run.output.hooks:
            if not 0 <= extracted.ad_index < len(input_data.ads):
                logger.debug("Dropping hook with unknown ad index", extra={"ad_index": extracted.ad_index})
                continue
            candidate = HookCandidate(
                text=extracted.text,
                provenance="extracted",
                source_competitor_id=input_data.ads[extracted.ad_index].source_competitor_id,
                technique=extracted.technique,
                awareness_level=extracted.awareness_level,
            )
            if not candidate.text or candidate.normalized_text in seen:
                continue
            seen.add(candidate.normalized_text)
            hooks.append(candidate)

        logger.info(
            "Hook extraction complete",
            extra={"ads": len(input_data.ads), "hooks": len(hooks), "cost": run.cost},
        )
        return HookExtractionResult(hooks=hooks, cost=run.cost)


class HookRelevanceService:
    """Flags hooks written for a different segment than the client's.

    When the check itself fails every hook is treated as relevant.
    """

    def __init__(self, agent: HookRelevanceAgent | None = None) -> None:
        self._agent = agent or HookRelevanceAgent()

    async def run(
        self,
        input_data: HookRelevanceInput,
        on_progress: Progress | None = None,
    ) -> SegmentValidationResult | None:
        if not input_data.hooks:
            return SegmentValidationResult()
        if on_progress:
            on_progress(f"Validating {len(input_data.hooks)} hooks against {input_data.target_segment}...")

        try:
            run = await self._agent.run_with_usage(input_data)
        except Exception:
            logger.warning(
                "Segment validation failed, keeping all hooks",
                extra={"hooks": len(input_data.hooks)},
                exc_info=True,
            )
            return SegmentValidationResult(results=_all_relevant(input_data.hooks))

        decisions = {decision.hook_index: decision for decision in run.output.results}
        results = []
        for idx, hook in enumerate(input_data.hooks):
            decision = decisions.get(idx)
            results.append(
                HookRelevance(
                    hook_index=idx,
                    hook=hook.text,
                    relevant=decision.relevant if decision else True,
                    reason=decision.reason if decision else "",
                )
            )

        flagged = sum(1 for result in results if not result.relevant)
        logger.info(
            "Segment validation complete",
            extra={"hooks": len(results), "flagged": flagged, "cost": run.cost},
        )
        return SegmentValidationResult(results=results, cost=run.cost)


def _all_relevant(hooks: list[HookCandidate]) -> list[HookRelevance]:
    return [HookRelevance(hook_index=idx, hook=hook.text, relevant=True) for idx, hook in enumerate(hooks)]
