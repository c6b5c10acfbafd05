"""Deterministic hook diversity quotas and remediation.

Quota per competitor is proportional to its share of ads with text:

    quota_c = clamp(floor(cap * ads_c / total_ads) + slack, 1, hard_ceiling)

Competitors with no ads, and ids that are not in the distribution at all,
get the default quota of 1. Generated hooks have no source competitor and are
never limited by a quota.
"""

import logging
import math
from collections.abc import Iterable

from app.config import settings
from app.schemas.blueprint import CompetitorRecord, HookCandidate, HookQuota, Violation

logger = logging.getLogger(__name__)


class HookDiversityValidator:
    """Keeps the curated hook list from being dominated by one competitor."""

    def __init__(
        self,
        cap: int | None = None,
        hard_ceiling: int | None = None,
        slack: int | None = None,
    ) -> None:
        self.cap = cap if cap is not None else settings.hook_cap
        self.hard_ceiling = hard_ceiling if hard_ceiling is not None else settings.hook_max_per_competitor
        self.slack = slack if slack is not None else settings.hook_quota_slack

    def compute_distribution(self, competitors: Iterable[CompetitorRecord]) -> HookQuota:
        counts = {c.id: sum(1 for ad in c.ads if ad.has_text) for c in competitors}
        total = sum(counts.values())

        per_competitor: dict[str, int] = {}
        for competitor_id, ads in counts.items():
            if total == 0 or ads == 0:
                per_competitor[competitor_id] = 1
                continue
            proportional = math.floor(self.cap * ads / total) + self.slack
            per_competitor[competitor_id] = max(1, min(self.hard_ceiling, proportional))

        return HookQuota(
            per_competitor=per_competitor,
            default_quota=1,
            hard_ceiling=self.hard_ceiling,
            cap=self.cap,
        )

    def validate(self, hooks: list[HookCandidate], quota: HookQuota) -> list[Violation]:
        counts = _count_by_competitor(hooks)
        return [
            Violation(competitor_id=competitor_id, excess=count - quota.quota_for(competitor_id))
            for competitor_id, count in counts.items()
            if count > quota.quota_for(competitor_id)
        ]

    def remediate(
        self,
        hooks: list[HookCandidate],
        violations: list[Violation],
        fallback_pool: list[HookCandidate],
        quota: HookQuota,
        target: int | None = None,
    ) -> list[HookCandidate]:
        """Drop excess hooks from offending competitors, then backfill.

        The earliest hooks of each offending competitor are kept. Backfill
        stops at ``min(cap, len(hooks))`` or when the pool runs out.
        """
        if target is None:
            target = min(quota.cap, len(hooks))
        offending = {v.competitor_id for v in violations}

        kept: list[HookCandidate] = []
        counts: dict[str, int] = {}
        seen: set[str] = set()
        for hook in hooks:
            if hook.normalized_text in seen:
                continue
            competitor_id = hook.source_competitor_id
            if competitor_id is not None:
                if competitor_id in offending and counts.get(competitor_id, 0) >= quota.quota_for(competitor_id):
                    continue
                counts[competitor_id] = counts.get(competitor_id, 0) + 1
            seen.add(hook.normalized_text)
            kept.append(hook)

        dropped = len(hooks) - len(kept)
        result = self._backfill(kept, fallback_pool, quota, target)
        if dropped:
            logger.info(
                "Hook diversity remediated",
                extra={
                    "dropped": dropped,
                    "backfilled": len(result) - len(kept),
                    "offending": sorted(offending),
                },
            )
        return result

    def swap_off_segment(
        self,
        hooks: list[HookCandidate],
        flagged: set[str] | frozenset[str],
        fallback_pool: list[HookCandidate],
        quota: HookQuota,
        target: int | None = None,
    ) -> list[HookCandidate]:
        """Replace hooks flagged as off-segment (by normalized text)."""
        if target is None:
            target = min(quota.cap, len(hooks))
        if not flagged:
            return hooks[:target]
        kept = [hook for hook in hooks if hook.normalized_text not in flagged]
        pool = [hook for hook in fallback_pool if hook.normalized_text not in flagged]
        return self._backfill(kept, pool, quota, target)

    def curate(
        self,
        extracted: list[HookCandidate],
        inspired: list[HookCandidate],
        generated: list[HookCandidate],
        quota: HookQuota,
        flagged: set[str] | frozenset[str] = frozenset(),
    ) -> list[HookCandidate]:
        """Select the final hook list.

        Priority is extracted, then inspired, then generated. The result never
        exceeds any competitor quota and has length
        ``min(cap, distinct hooks available after filters)``.
        """
        pool = _distinct([*extracted, *inspired, *generated])
        selected = pool[: quota.cap]
        rest = pool[quota.cap :]

        violations = self.validate(selected, quota)
        if violations:
            selected = self.remediate(selected, violations, rest, quota, target=quota.cap)

        if flagged:
            chosen = {hook.normalized_text for hook in selected}
            unselected = [hook for hook in pool if hook.normalized_text not in chosen]
            selected = self.swap_off_segment(selected, flagged, unselected, quota, target=quota.cap)

        return selected[: quota.cap]

    def _backfill(
        self,
        kept: list[HookCandidate],
        pool: list[HookCandidate],
        quota: HookQuota,
        target: int,
    ) -> list[HookCandidate]:
        result = list(kept)
        counts = _count_by_competitor(result)
        seen = {hook.normalized_text for hook in result}
        for hook in pool:
            if len(result) >= target:
                break
            if hook.normalized_text in seen:
                continue
            competitor_id = hook.source_competitor_id
            if competitor_id is not None:
                if counts.get(competitor_id, 0) >= quota.quota_for(competitor_id):
                    continue
                counts[competitor_id] = counts.get(competitor_id, 0) + 1
            seen.add(hook.normalized_text)
            result.append(hook)
        return result


def _count_by_competitor(hooks: Iterable[HookCandidate]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for hook in hooks:
        if hook.source_competitor_id is not None:
            counts[hook.source_competitor_id] = counts.get(hook.source_competitor_id, 0) + 1
    return counts


def _distinct(hooks: Iterable[HookCandidate]) -> list[HookCandidate]:
    seen: set[str] = set()
    result: list[HookCandidate] = []
    for hook in hooks:
        key = hook.normalized_text
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(hook)
    return result
