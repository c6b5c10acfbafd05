"""Strategic blueprint generation endpoints."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from app.api.v1.blueprint.constants import (
    INVALID_JSON_DETAIL,
    MISSING_ONBOARDING_DETAIL,
    SSE_HEADERS,
)
from app.api.v1.dependencies import EnrichmentProvidersDep, PhaseRunnerDep
from app.config import settings
from app.core.exceptions import (
    ErrorCode,
    InvalidInputError,
    create_error_response,
    http_status_for_code,
)
from app.schemas.blueprint import BlueprintGenerateRequest, OnboardingData
from app.services.blueprint.context import build_generation_context, validate_onboarding_data
from app.services.blueprint.run import BlueprintRun, CollectingEventSink, QueueEventSink

logger = logging.getLogger(__name__)

router = APIRouter()


def _invalid_input(error: InvalidInputError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=create_error_response(
            error.code,
            error.errors[0] if error.errors else error.message,
            details="; ".join(error.errors) or None,
        ),
    )


async def _parse_onboarding(request: Request) -> OnboardingData:
    """Parse and validate the request body.

    Raises:
        InvalidInputError: If the body is not JSON or required fields are missing.
    """
    try:
        payload: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInputError([INVALID_JSON_DETAIL]) from e

    try:
        body = BlueprintGenerateRequest.model_validate(payload)
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise InvalidInputError([f"Invalid field: {field}" for field in fields]) from e

    if body.onboarding_data is None:
        raise InvalidInputError([MISSING_ONBOARDING_DETAIL])

    errors = validate_onboarding_data(body.onboarding_data)
    if errors:
        raise InvalidInputError(errors)
    return body.onboarding_data


async def _stream_run(run: BlueprintRun, sink: QueueEventSink) -> AsyncIterator[str]:
    task = asyncio.create_task(run.execute())
    try:
        async for frame in sink.stream():
            yield frame
        await task
    finally:
        if not task.done():
            logger.info(
                "Client disconnected before completion",
                extra={"run_id": run.run_id, "cancel_jobs": settings.cancel_jobs_on_disconnect},
            )
            sink.close()
            if settings.cancel_jobs_on_disconnect:
                run.cancel()
                task.cancel()


@router.post(
    "/generate",
    summary="Generate strategic blueprint",
    description=(
        "Run the three generation phases with concurrent enrichment. With `stream=true` "
        "the response is a `text/event-stream` of section and progress events ending in "
        "exactly one `done` or `error` event."
    ),
    response_model=None,
)
async def generate_blueprint(
    request: Request,
    runner: PhaseRunnerDep,
    providers: EnrichmentProvidersDep,
    stream: bool = Query(False, description="Stream progress as server-sent events"),
) -> StreamingResponse | JSONResponse:
    try:
        onboarding = await _parse_onboarding(request)
    except InvalidInputError as e:
        logger.info("Blueprint request rejected", extra={"errors": e.errors})
        return _invalid_input(e)

    context = build_generation_context(onboarding)
    logger.info(
        "Blueprint generation requested",
        extra={
            "company": context.company_name,
            "client_domain": context.client_domain,
            "stream": stream,
        },
    )

    if stream:
        sink = QueueEventSink()
        run = BlueprintRun(context, sink, runner, providers)
        return StreamingResponse(
            _stream_run(run, sink),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    run = BlueprintRun(context, CollectingEventSink(), runner, providers)
    outcome = await run.execute()
    if outcome.success and outcome.blueprint is not None:
        return JSONResponse(
            content={
                "success": True,
                "result": outcome.blueprint.model_dump(mode="json", by_alias=True),
                "metadata": outcome.metadata(),
            }
        )

    code = outcome.error_code or ErrorCode.INTERNAL_ERROR
    return JSONResponse(
        status_code=http_status_for_code(code),
        content=create_error_response(
            code,
            outcome.error or "Blueprint generation failed",
            completed_sections=list(outcome.completed_sections),
            metadata=outcome.metadata(),
        ),
    )
