"""Per-request cost accounting."""

import logging

logger = logging.getLogger(__name__)


class CostLedger:
    """Records each phase or job cost exactly once, keyed by its id."""

    def __init__(self) -> None:
        self._entries: dict[str, float] = {}

    def record(self, key: str, cost: float | None) -> bool:
        """Record ``cost`` under ``key``. Returns False if ``key`` was already recorded."""
        if key in self._entries:
            logger.debug("Duplicate cost entry ignored", extra={"cost_key": key})
            return False
        self._entries[key] = max(0.0, float(cost or 0.0))
        return True

    def has(self, key: str) -> bool:
        return key in self._entries

    @property
    def total(self) -> float:
        return round(sum(self._entries.values()), 6)

    def breakdown(self) -> dict[str, float]:
        return {key: round(cost, 6) for key, cost in self._entries.items()}
