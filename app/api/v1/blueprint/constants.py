"""Blueprint route constants."""

INVALID_JSON_DETAIL = "Request body must be valid JSON"
MISSING_ONBOARDING_DETAIL = "Missing required field: onboardingData"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
