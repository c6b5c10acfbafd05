"""ASGI entry point for the blueprint service."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.config import settings
from app.core.circuit_breaker import reset_circuit_breakers
from app.core.exceptions import BlueprintError, ErrorCode, create_error_response, http_status_for_code
from app.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(logging.DEBUG if settings.debug else logging.INFO)
    logger.info(
        "Blueprint service starting",
        extra={
            "environment": settings.environment,
            "version": settings.app_version,
            "models": {tier: settings.get_model(tier) for tier in ("reasoning", "standard", "fast")},
            "enrichment_deadline_ms": settings.enrichment_deadline_ms,
            "keyword_intelligence": settings.keyword_intelligence_enabled,
        },
    )
    yield
    reset_circuit_breakers()
    logger.info("Blueprint service stopped")


async def blueprint_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, BlueprintError)
    return JSONResponse(
        status_code=http_status_for_code(exc.code),
        content=create_error_response(exc.code, exc.message),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content=create_error_response(ErrorCode.INTERNAL_ERROR, "Internal server error"),
    )


def create_app() -> FastAPI:
    """Build the FastAPI application with CORS, error handlers and the v1 API."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Strategic blueprint generation: three LLM phases with concurrent, "
            "deadline-bounded enrichment streamed as server-sent events"
        ),
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.add_middleware(
        cast(Any, CORSMiddleware),
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BlueprintError, blueprint_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health", summary="Health check")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
