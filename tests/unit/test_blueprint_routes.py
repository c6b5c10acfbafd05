"""Unit tests for the strategic blueprint HTTP endpoints."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app.api.v1.blueprint.routes import _stream_run
from app.api.v1.dependencies import get_enrichment_providers, get_phase_runner
from app.config import settings
from app.main import create_app
from app.schemas.events import ProgressEvent, parse_sse
from app.services.blueprint.run import QueueEventSink
from tests.unit.fakes import FakeRunner, make_providers, onboarding_payload

GENERATE_URL = "/api/v1/strategic-blueprint/generate"


def _client(runner: FakeRunner | None = None) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_phase_runner] = lambda: runner or FakeRunner()
    app.dependency_overrides[get_enrichment_providers] = lambda: make_providers()
    return TestClient(app)


class SlowRun:
    """Emits one progress event, then blocks until released."""

    run_id = "run-slow"

    def __init__(self, sink: QueueEventSink) -> None:
        self.sink = sink
        self.release = asyncio.Event()
        self.cancelled = False
        self.task: asyncio.Task[None] | None = None

    async def execute(self) -> None:
        self.task = asyncio.current_task()
        self.sink.emit(ProgressEvent(percentage=10, message="Researching"))
        await self.release.wait()

    def cancel(self) -> None:
        self.cancelled = True


@pytest.fixture
def client() -> Iterator[TestClient]:
    with _client() as test_client:
        yield test_client


def test_health_reports_version(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_missing_onboarding_data_is_rejected(client: TestClient) -> None:
    response = client.post(GENERATE_URL, json={})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "INVALID_INPUT"
    assert error["message"] == "Missing required field: onboardingData"
    assert error["retryable"] is False


def test_missing_required_fields_are_listed(client: TestClient) -> None:
    payload = onboarding_payload(businessBasics={"businessName": "  "}, productOffer={})

    response = client.post(GENERATE_URL, json={"onboardingData": payload})

    assert response.status_code == 400
    details = response.json()["error"]["details"]
    assert "businessBasics.businessName" in details
    assert "productOffer.productDescription" in details


def test_invalid_json_is_rejected(client: TestClient) -> None:
    response = client.post(
        GENERATE_URL,
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Request body must be valid JSON"


def test_wrongly_typed_field_is_rejected(client: TestClient) -> None:
    payload = onboarding_payload(productOffer={"productDescription": "x", "offerPrice": "a lot"})

    response = client.post(GENERATE_URL, json={"onboardingData": payload})

    assert response.status_code == 400
    assert "onboardingData.productOffer.offerPrice" in response.json()["error"]["message"]


def test_non_streaming_success_returns_blueprint(client: TestClient) -> None:
    response = client.post(GENERATE_URL, json={"onboardingData": onboarding_payload()})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    result = body["result"]
    assert result["industryMarketOverview"]["categorySnapshot"] == "Finance automation"
    assert {c["name"] for c in result["competitorAnalysis"]["competitors"]} == {"Alpha", "Beta", "Gamma"}
    assert result["hooks"]
    assert body["metadata"]["totalCost"] > 0
    assert "crossAnalysisSynthesis" in body["metadata"]["completedSections"]


def test_non_streaming_failure_maps_error_code() -> None:
    with _client(FakeRunner(fail_phase="synthesis")) as client:
        response = client.post(GENERATE_URL, json={"onboardingData": onboarding_payload()})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "INTERNAL_ERROR"
    assert "industryMarketOverview" in body["error"]["completedSections"]
    assert body["metadata"]["totalCost"] > 0


def test_stream_ends_with_done_event(client: TestClient) -> None:
    response = client.post(GENERATE_URL, params={"stream": "true"}, json={"onboardingData": onboarding_payload()})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    events = parse_sse(response.text)
    types = [event.type for event in events]
    assert types[0] == "section-start"
    assert types.count("done") == 1
    assert types[-1] == "done"


def test_stream_failure_emits_error_without_done() -> None:
    with _client(FakeRunner(fail_phase="deep_analysis")) as client:
        response = client.post(
            GENERATE_URL,
            params={"stream": "true"},
            json={"onboardingData": onboarding_payload()},
        )

    types = [event.type for event in parse_sse(response.text)]
    assert types.count("error") == 1
    assert "done" not in types
    assert types[-1] == "error"


def test_stream_validation_error_is_plain_json(client: TestClient) -> None:
    response = client.post(GENERATE_URL, params={"stream": "true"}, json={})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/json")


@pytest.mark.asyncio
async def test_disconnect_closes_sink_when_jobs_keep_running(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "cancel_jobs_on_disconnect", False)
    sink = QueueEventSink()
    run = SlowRun(sink)
    frames = _stream_run(run, sink)  # type: ignore[arg-type]

    first = await frames.__anext__()
    await frames.aclose()

    assert parse_sse(first)[0].type == "progress"
    assert sink.closed
    assert not run.cancelled
    assert run.task is not None and not run.task.done()
    run.release.set()
    await run.task


@pytest.mark.asyncio
async def test_disconnect_cancels_jobs_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "cancel_jobs_on_disconnect", True)
    sink = QueueEventSink()
    run = SlowRun(sink)
    frames = _stream_run(run, sink)  # type: ignore[arg-type]

    await frames.__anext__()
    await frames.aclose()

    assert sink.closed
    assert run.cancelled
    assert run.task is not None
    with pytest.raises(asyncio.CancelledError):
        await run.task
