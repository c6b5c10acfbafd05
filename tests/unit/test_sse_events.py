"""Unit tests for client stream event framing."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.schemas.events import (
    DoneEvent,
    DoneMetadata,
    ErrorEvent,
    MetadataEvent,
    ProgressEvent,
    SectionStartEvent,
    format_sse,
    parse_sse,
)


def test_format_sse_frames_event_name_and_json() -> None:
    frame = format_sse(ProgressEvent(percentage=40, message="Validating ICP"))

    assert frame == (
        'event: progress\ndata: {"type": "progress", "percentage": 40, "message": "Validating ICP"}\n\n'
    )


def test_metadata_event_uses_camel_case_keys() -> None:
    frame = format_sse(MetadataEvent(elapsed_time=1200, estimated_cost=0.05, completed_sections=2, total_sections=6))

    assert '"elapsedTime": 1200' in frame
    assert '"completedSections": 2' in frame
    assert '"totalSections": 6' in frame


def test_error_event_omits_missing_code() -> None:
    frame = format_sse(ErrorEvent(message="boom"))

    assert frame == 'event: error\ndata: {"type": "error", "message": "boom"}\n\n'


def test_parse_sse_reads_back_event_sequence() -> None:
    events = [
        SectionStartEvent(section="industryMarketOverview", label="Industry & Market Overview"),
        ProgressEvent(percentage=17, message="Researching"),
        DoneEvent(result={"ok": True}, metadata=DoneMetadata(total_time=10, total_cost=0.2)),
    ]
    body = "".join(format_sse(event) for event in events) + ": keep-alive\n\n"

    parsed = parse_sse(body)

    assert [event.type for event in parsed] == ["section-start", "progress", "done"]
    assert parsed[2].metadata.total_cost == 0.2


def test_progress_percentage_is_bounded() -> None:
    with pytest.raises(ValidationError):
        ProgressEvent(percentage=101, message="too far")
