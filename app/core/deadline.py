"""Deadline races and memoized background jobs.

``race_with_deadline`` decides whether a caller waits for some work *now*; it
never cancels that work. ``JobHandle`` wraps one background job so it can be
raced inline and awaited again later, always yielding the same settled value.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RaceOutcome(Generic[T]):
    """Result of racing work against a deadline."""

    available: bool
    value: T | None = None


class Deadline:
    """A single absolute deadline shared by several races."""

    def __init__(self, duration_ms: int) -> None:
        self.duration_ms = duration_ms
        self._expires_at = time.monotonic() + duration_ms / 1000

    def remaining_ms(self) -> float:
        return (self._expires_at - time.monotonic()) * 1000

    @property
    def expired(self) -> bool:
        return self.remaining_ms() <= 0


def _log_orphaned_failure(future: asyncio.Future[Any]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.debug("Work that missed its deadline later failed", extra={"error": str(exc)})


async def race_with_deadline(
    work: Awaitable[T],
    duration_ms: float,
) -> RaceOutcome[T]:
    """Wait up to ``duration_ms`` for ``work`` without cancelling it.

    A zero or negative duration still reports work that has already settled.
    If the work fails within the window its exception is raised here.
    """
    future = asyncio.ensure_future(work)
    if not future.done() and duration_ms > 0:
        await asyncio.wait({future}, timeout=duration_ms / 1000)

    if not future.done():
        future.add_done_callback(_log_orphaned_failure)
        return RaceOutcome(available=False)
    return RaceOutcome(available=True, value=future.result())


class JobHandle(Generic[T]):
    """Settle once, read many wrapper around a background job.

    Failures inside the job are logged and settle the handle with ``None``.
    ``wait()`` shields the job, so a cancelled reader never cancels the work.
    """

    def __init__(
        self,
        job_id: str,
        coro: Coroutine[Any, Any, T | None],
        on_settled: Callable[["JobHandle[T]"], None] | None = None,
    ) -> None:
        self.job_id = job_id
        self.started_at = time.perf_counter()
        self.settled_at: float | None = None
        self._on_settled = on_settled
        self._consumed = False
        self._task: asyncio.Task[T | None] = asyncio.create_task(
            self._run(coro),
            name=f"blueprint-job:{job_id}",
        )
        self._task.add_done_callback(self._handle_done)

    async def _run(self, coro: Coroutine[Any, Any, T | None]) -> T | None:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning(
                "Background job failed",
                extra={"job_id": self.job_id},
                exc_info=True,
            )
            return None

    def _handle_done(self, task: asyncio.Task[T | None]) -> None:
        self.settled_at = time.perf_counter()
        logger.info(
            "Background job settled",
            extra={
                "job_id": self.job_id,
                "cancelled": task.cancelled(),
                "has_value": self.result() is not None,
                "elapsed_ms": self.elapsed_ms,
            },
        )
        if self._on_settled is not None:
            self._on_settled(self)

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def elapsed_ms(self) -> int:
        end = self.settled_at if self.settled_at is not None else time.perf_counter()
        return int((end - self.started_at) * 1000)

    def result(self) -> T | None:
        """Settled value, or ``None`` if pending, failed or cancelled."""
        if not self._task.done() or self._task.cancelled():
            return None
        return self._task.result()

    async def wait(self) -> T | None:
        """Wait for the job and return its cached value."""
        if not self._task.done():
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
        return self.result()

    def add_done_callback(self, fn: Callable[["JobHandle[T]"], None]) -> None:
        """Call ``fn(handle)`` once the job settles."""
        self._task.add_done_callback(lambda _task: fn(self))

    def mark_consumed(self) -> bool:
        """Flag the value as read. Returns True only on the first call."""
        if self._consumed:
            return False
        self._consumed = True
        return True

    def cancel(self) -> bool:
        return self._task.cancel()
