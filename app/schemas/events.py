"""Client-facing stream events."""

import json
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from app.schemas.blueprint import CamelModel, SectionId


class SectionStartEvent(CamelModel):
    type: Literal["section-start"] = "section-start"
    section: SectionId
    label: str


class ProgressEvent(CamelModel):
    type: Literal["progress"] = "progress"
    percentage: int = Field(ge=0, le=100)
    message: str


class SectionCompleteEvent(CamelModel):
    type: Literal["section-complete"] = "section-complete"
    section: SectionId
    label: str
    data: None = None


class MetadataEvent(CamelModel):
    type: Literal["metadata"] = "metadata"
    elapsed_time: int
    estimated_cost: float
    completed_sections: int
    total_sections: int


class DoneMetadata(CamelModel):
    total_time: int
    total_cost: float


class DoneEvent(CamelModel):
    type: Literal["done"] = "done"
    success: Literal[True] = True
    result: dict[str, Any]
    metadata: DoneMetadata


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    message: str
    code: str | None = None


ClientEvent = Annotated[
    SectionStartEvent
    | ProgressEvent
    | SectionCompleteEvent
    | MetadataEvent
    | DoneEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)


def format_sse(event: ClientEvent) -> str:
    """Frame an event as ``event: <type>\\ndata: <json>\\n\\n``."""
    payload = event.model_dump(mode="json", by_alias=True, exclude_none=event.type == "error")
    return f"event: {event.type}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


def parse_sse(raw: str) -> list[ClientEvent]:
    """Parse a stream body back into validated events."""
    events: list[ClientEvent] = []
    for block in raw.split("\n\n"):
        data_lines = [line[len("data: "):] for line in block.splitlines() if line.startswith("data: ")]
        if not data_lines:
            continue
        events.append(client_event_adapter.validate_json("\n".join(data_lines)))
    return events
