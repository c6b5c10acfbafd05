"""Custom exception classes and error codes for the application."""

import asyncio
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior


class ErrorCode(str, Enum):
    """Error codes surfaced to API clients."""

    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    PARSE_ERROR = "PARSE_ERROR"
    API_ERROR = "API_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


RETRYABLE_CODES = frozenset({ErrorCode.TIMEOUT, ErrorCode.RATE_LIMITED, ErrorCode.CIRCUIT_OPEN})

_HTTP_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.TIMEOUT: 503,
    ErrorCode.RATE_LIMITED: 503,
    ErrorCode.CIRCUIT_OPEN: 503,
    ErrorCode.VALIDATION_FAILED: 502,
    ErrorCode.PARSE_ERROR: 502,
    ErrorCode.API_ERROR: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


class BlueprintError(Exception):
    """Base exception for all application errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(BlueprintError):
    """Request payload is missing required fields or is malformed."""

    code = ErrorCode.INVALID_INPUT

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors) or "Invalid input", {"errors": errors})


class CircuitOpenError(BlueprintError):
    """Upstream circuit breaker is open; calls are rejected until it cools down."""

    code = ErrorCode.CIRCUIT_OPEN

    def __init__(self, circuit_name: str, retry_in_seconds: float) -> None:
        self.circuit_name = circuit_name
        self.retry_in_seconds = max(0.0, retry_in_seconds)
        super().__init__(
            f"Circuit breaker '{circuit_name}' is open. Retry in {self.retry_in_seconds:.0f}s",
        )


class PhaseValidationError(BlueprintError):
    """Generation phase output failed schema checks."""

    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, phase: str, message: str) -> None:
        self.phase = phase
        super().__init__(f"Phase '{phase}' output failed validation: {message}")


# External API Errors
class ExternalAPIError(BlueprintError):
    """Error calling external API."""

    code = ErrorCode.API_ERROR

    def __init__(self, api_name: str, message: str) -> None:
        self.api_name = api_name
        super().__init__(f"{api_name} API error: {message}")


class RateLimitExceededError(ExternalAPIError):
    """Rate limit exceeded for external API."""

    code = ErrorCode.RATE_LIMITED

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "Rate limit exceeded")


class APIKeyMissingError(ExternalAPIError):
    """API key not configured."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "API key not configured")


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map an exception raised during generation to an ``ErrorCode``."""
    if isinstance(exc, BlueprintError):
        return exc.code
    if isinstance(exc, asyncio.TimeoutError | httpx.TimeoutException):
        return ErrorCode.TIMEOUT
    if isinstance(exc, ModelHTTPError):
        return ErrorCode.RATE_LIMITED if exc.status_code == 429 else ErrorCode.API_ERROR
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 429:
            return ErrorCode.RATE_LIMITED
        return ErrorCode.API_ERROR
    if isinstance(exc, httpx.HTTPError):
        return ErrorCode.API_ERROR
    if isinstance(exc, UnexpectedModelBehavior):
        return ErrorCode.PARSE_ERROR
    if isinstance(exc, PydanticValidationError):
        return ErrorCode.VALIDATION_FAILED
    return ErrorCode.INTERNAL_ERROR


def http_status_for_code(code: ErrorCode) -> int:
    """Return the HTTP status used for an ``ErrorCode``."""
    return _HTTP_STATUS_BY_CODE.get(code, 500)


def create_error_response(
    code: ErrorCode,
    message: str,
    *,
    details: str | None = None,
    section: str | None = None,
    completed_sections: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the structured error body returned by API endpoints."""
    error: dict[str, Any] = {
        "code": code.value,
        "message": message,
        "retryable": code in RETRYABLE_CODES,
    }
    if details:
        error["details"] = details
    if section:
        error["section"] = section
    if completed_sections:
        error["completedSections"] = completed_sections

    body: dict[str, Any] = {"success": False, "error": error}
    if metadata:
        body["metadata"] = metadata
    return body
