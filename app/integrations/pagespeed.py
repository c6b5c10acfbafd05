"""Google PageSpeed Insights integration."""

import logging
from typing import Any, Literal

import httpx

from app.config import settings
from app.schemas.blueprint import PerformanceMetrics

logger = logging.getLogger(__name__)

Strategy = Literal["mobile", "desktop"]


def extract_metrics(data: dict[str, Any]) -> PerformanceMetrics | None:
    """Pull the performance score and core vitals out of a Lighthouse payload."""
    lighthouse = data.get("lighthouseResult") or {}
    categories = lighthouse.get("categories") or {}
    audits = lighthouse.get("audits") or {}
    if not categories or not audits:
        return None

    def numeric(audit_id: str) -> float | None:
        value = (audits.get(audit_id) or {}).get("numericValue")
        return float(value) if value is not None else None

    score = (categories.get("performance") or {}).get("score")
    cls = numeric("cumulative-layout-shift")
    return PerformanceMetrics(
        score=round(score * 100) if score is not None else None,
        largest_contentful_paint_ms=numeric("largest-contentful-paint"),
        cumulative_layout_shift=round(cls, 3) if cls is not None else None,
        total_blocking_time_ms=numeric("total-blocking-time"),
    )


class PageSpeedClient:
    """Client for the PageSpeed Insights v5 API (the key is optional)."""

    BASE_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.pagespeed_api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PageSpeedClient":
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def get_metrics(self, url: str, strategy: Strategy = "mobile") -> PerformanceMetrics | None:
        params: dict[str, Any] = {"url": url, "strategy": strategy, "category": "performance"}
        if self.api_key:
            params["key"] = self.api_key
        try:
            response = await self.client.get(self.BASE_URL, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "PageSpeed request failed",
                extra={"url": url, "strategy": strategy, "error": str(e)},
            )
            return None
        return extract_metrics(payload)
