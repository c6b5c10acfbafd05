"""Ad library integration (LinkedIn, Meta and Google) via SearchAPI.io."""

import asyncio
import logging
from typing import Any, Literal

import httpx

from app.config import settings
from app.core.exceptions import APIKeyMissingError, ExternalAPIError, RateLimitExceededError
from app.schemas.blueprint import AdCreative

logger = logging.getLogger(__name__)

AdPlatform = Literal["linkedin", "meta", "google"]

SEARCHAPI_COST_PER_QUERY = 0.004


def normalize_ad(platform: AdPlatform, raw: dict[str, Any], competitor_id: str) -> AdCreative:
    """Map a platform-specific ad payload to ``AdCreative``."""
    if platform == "linkedin":
        content = raw.get("content") or {}
        return AdCreative(
            headline=content.get("headline") or "",
            body=content.get("body") or "",
            platform=platform,
            source_competitor_id=competitor_id,
            image_url=content.get("image"),
            link_url=raw.get("link"),
        )
    if platform == "meta":
        snapshot = raw.get("snapshot") or {}
        body = snapshot.get("body") or {}
        images = snapshot.get("images") or []
        image = images[0] if images else None
        if isinstance(image, dict):
            image = image.get("url") or image.get("original_image_url")
        return AdCreative(
            headline=snapshot.get("title") or "",
            body=(body.get("text") if isinstance(body, dict) else str(body)) or "",
            platform=platform,
            source_competitor_id=competitor_id,
            image_url=image,
            link_url=snapshot.get("link_url"),
        )
    return AdCreative(
        headline=raw.get("headline") or raw.get("title") or "",
        body=raw.get("description") or "",
        platform=platform,
        source_competitor_id=competitor_id,
        image_url=raw.get("image"),
        link_url=raw.get("link"),
    )


class AdLibraryClient:
    """Client for SearchAPI.io ad library engines."""

    BASE_URL = "https://www.searchapi.io/api/v1/search"

    ENGINES: dict[AdPlatform, str] = {
        "linkedin": "linkedin_ad_library",
        "meta": "meta_ad_library",
        "google": "google_ads_transparency_center",
    }

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.searchapi_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.queries = 0
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            raise APIKeyMissingError("SearchAPI")

    async def __aenter__(self) -> "AdLibraryClient":
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

    @property
    def estimated_cost(self) -> float:
        return round(self.queries * SEARCHAPI_COST_PER_QUERY, 6)

    async def fetch_platform_ads(
        self,
        platform: AdPlatform,
        competitor_id: str,
        query: str,
        domain: str | None = None,
        limit: int = 50,
    ) -> list[AdCreative]:
        """Fetch up to ``limit`` ads for one competitor from one platform."""
        params: dict[str, Any] = {"engine": self.ENGINES[platform], "api_key": self.api_key}
        if platform == "google":
            if not domain:
                return []
            params["domain"] = domain
        else:
            params["q"] = query
        if platform == "meta":
            params["country"] = "US"

        self.queries += 1
        try:
            response = await self.client.get(self.BASE_URL, params=params)
            if response.status_code == 429:
                raise RateLimitExceededError("SearchAPI")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning(
                "Ad library HTTP error",
                extra={"platform": platform, "competitor_id": competitor_id, "error": str(e)},
            )
            raise ExternalAPIError("SearchAPI", str(e)) from e

        if data.get("error"):
            raise ExternalAPIError("SearchAPI", str(data["error"]))

        raw_ads = data.get("ad_creatives" if platform == "google" else "ads") or []
        return [normalize_ad(platform, ad, competitor_id) for ad in raw_ads[:limit] if isinstance(ad, dict)]

    async def fetch_competitor_ads(
        self,
        competitor_id: str,
        name: str,
        domain: str | None = None,
        limit: int = 50,
        platforms: tuple[AdPlatform, ...] = ("linkedin", "meta", "google"),
    ) -> list[AdCreative]:
        """Fetch ads across platforms; a failing platform is skipped."""
        results = await asyncio.gather(
            *(
                self.fetch_platform_ads(platform, competitor_id, name, domain=domain, limit=limit)
                for platform in platforms
            ),
            return_exceptions=True,
        )
        ads: list[AdCreative] = []
        for platform, result in zip(platforms, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "Ad library platform failed",
                    extra={"platform": platform, "competitor_id": competitor_id, "error": str(result)},
                )
                continue
            ads.extend(result)
        return ads[:limit]
