"""Centralized logging configuration with JSON-formatted extras.

Every record emitted while a blueprint request is in flight carries that
request's ``run_id`` so interleaved jobs from concurrent requests can be told
apart in the log stream.
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_current_run_id: ContextVar[str | None] = ContextVar("blueprint_run_id", default=None)


@contextmanager
def bind_run_id(run_id: str) -> Iterator[None]:
    """Bind ``run_id`` for the duration of the block (inherited by child tasks)."""
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


class RunContextFilter(logging.Filter):
    """Stamp the bound run id onto records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        run_id = _current_run_id.get()
        if run_id is not None and not hasattr(record, "run_id"):
            record.run_id = run_id
        return True


class JSONExtrasFormatter(logging.Formatter):
    """Formatter that outputs a readable log line with extras as JSON.

    Output format:
        2024-01-15 10:30:45 | INFO | app.services.blueprint.run | Job settled {"run_id": "...", "job_id": "seoAudit"}
    """

    RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        timestamp = self.formatTime(record, self.datefmt)
        base = f"{timestamp} | {record.levelname:<8} | {record.name} | {record.message}"

        extras = {key: value for key, value in vars(record).items() if key not in self.RESERVED_ATTRS and key[0] != "_"}
        if extras:
            try:
                base += " " + json.dumps(extras, default=str, ensure_ascii=False)
            except (TypeError, ValueError):
                base += f" {extras!r}"

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            base = f"{base}\n{record.exc_text}"

        return base


def setup_logging(level: int = logging.INFO) -> None:
    """Configure the 'app' logger with console output, run ids and JSON extras."""
    logger = logging.getLogger("app")
    logger.setLevel(level)

    if logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RunContextFilter())
    handler.setFormatter(JSONExtrasFormatter(datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(handler)
    logger.propagate = False
