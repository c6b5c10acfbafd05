"""Circuit breaker for upstream model providers.

States:
- CLOSED: calls pass through; consecutive failures are counted.
- OPEN: calls are rejected with ``CircuitOpenError`` until the reset timeout elapses.
- HALF_OPEN: one trial call is let through; success closes, failure re-opens.

Breakers are process-scoped (one per upstream model tier) and shared by all
requests. They track upstream health only and never hold request state.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Literal, TypeVar

from app.config import settings
from app.core.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CircuitState = Literal["CLOSED", "OPEN", "HALF_OPEN"]


class CircuitBreaker:
    """Consecutive-failure circuit breaker around async calls."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        reset_timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.reset_timeout_seconds = reset_timeout_seconds
        self._clock = clock
        self._state: CircuitState = "CLOSED"
        self._failure_count = 0
        self._last_failure_at = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` under breaker protection.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling down.
        """
        if self._state == "OPEN":
            elapsed = self._clock() - self._last_failure_at
            if elapsed < self.reset_timeout_seconds:
                raise CircuitOpenError(self.name, self.reset_timeout_seconds - elapsed)
            self._transition("HALF_OPEN")

        try:
            result = await fn()
        except Exception:
            self._record_failure()
            raise

        if self._state == "HALF_OPEN":
            self._transition("CLOSED")
        self._failure_count = 0
        return result

    def reset(self) -> None:
        """Force the circuit back to CLOSED."""
        if self._state != "CLOSED":
            self._transition("CLOSED")
        self._failure_count = 0
        self._last_failure_at = 0.0

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_at = self._clock()
        if self._state == "HALF_OPEN" or (
            self._state == "CLOSED" and self._failure_count >= self.failure_threshold
        ):
            self._transition("OPEN")

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        log = logger.warning if new_state == "OPEN" else logger.info
        log(
            "Circuit breaker state changed",
            extra={
                "circuit": self.name,
                "from_state": old_state,
                "to_state": new_state,
                "failure_count": self._failure_count,
            },
        )


_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(name: str) -> CircuitBreaker:
    """Return the shared breaker for ``name``, creating it on first use."""
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = CircuitBreaker(
            name,
            failure_threshold=settings.circuit_breaker_failure_threshold,
            reset_timeout_seconds=settings.circuit_breaker_reset_seconds,
        )
        _breakers[name] = breaker
    return breaker


def reset_circuit_breakers() -> None:
    """Drop all registered breakers."""
    _breakers.clear()
