"""SpyFu API integration for domain stats and competitive keyword gaps."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from app.config import settings
from app.core.exceptions import APIKeyMissingError, ExternalAPIError, RateLimitExceededError

logger = logging.getLogger(__name__)

# Informational/navigational terms excluded server-side from keyword lookups
EXCLUDE_TERMS = (
    "jobs,job,salary,salaries,career,careers,hiring,internship,course,courses,"
    "certification,tutorial,near me,reddit,quora,agency,agencies,consultant,freelancer"
)
MIN_SEARCH_VOLUME = 50

_MOJIBAKE_MAP = [
    ("Ã§", "ç"), ("Ã©", "é"), ("Ã¨", "è"), ("Ã¼", "ü"), ("Ã¶", "ö"),
    ("Ã¤", "ä"), ("Ã±", "ñ"), ("Ã¡", "á"), ("Ã­", "í"), ("Ã³", "ó"),
    ("Ãº", "ú"), ("Ã¢", "â"), ("Ã®", "î"), ("Ã´", "ô"), ("Ã»", "û"),
    ("Ã«", "ë"), ("Ã¯", "ï"), ("Â", ""),
]


def sanitize_mojibake(text: str) -> str:
    """Repair common UTF-8 read as Latin-1 artifacts."""
    if "Ã" not in text and "Â" not in text:
        return text
    for bad, good in _MOJIBAKE_MAP:
        text = text.replace(bad, good)
    return text


def normalize_keyword_item(raw: dict[str, Any]) -> dict[str, Any]:
    """Map a raw SpyFu keyword row to a flat dict with stable field names."""

    def first(*keys: str, default: Any = 0) -> Any:
        for key in keys:
            value = raw.get(key)
            if value is not None:
                return value
        return default

    return {
        "keyword": sanitize_mojibake(str(first("keyword", "term", default=""))),
        "search_volume": int(first("searchVolume", "liveSearchVolume", "exactLocalMonthlySearchVolume")),
        "cpc": float(
            first("broadCostPerClick", "exactCostPerClick", "phraseCostPerClick", "costPerClick", "cpc")
        ),
        "difficulty": int(first("rankingDifficulty", "keywordDifficulty")),
        "rank": first("position", "rankPosition", "rank", default=None),
    }


class SpyFuClient:
    """Client for the SpyFu REST API (v2).

    Requests retry on 429 and transient errors with exponential backoff,
    honouring ``Retry-After`` when the server sends it.
    """

    BASE_URL = "https://api.spyfu.com/apis"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int = 2,
        retry_delay_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.spyfu_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.rows_used = 0
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            raise APIKeyMissingError("SpyFu")

    async def __aenter__(self) -> "SpyFuClient":
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=self.timeout,
            headers={"Accept": "application/json", "Accept-Charset": "utf-8"},
            transport=self._transport,
        )
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
        return round(self.rows_used * settings.spyfu_cost_per_row, 6)

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        query = {"api_key": self.api_key, **{k: str(v).lower() if isinstance(v, bool) else v for k, v in params.items()}}
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            delay = self.retry_delay_seconds * (2**attempt)
            try:
                response = await self.client.get(endpoint, params=query)
                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After", "")
                    if retry_after.isdigit():
                        delay = float(retry_after)
                    logger.warning(
                        "SpyFu rate limit hit",
                        extra={"endpoint": endpoint, "attempt": attempt + 1, "retry_in_s": delay},
                    )
                    last_error = RateLimitExceededError("SpyFu")
                else:
                    response.raise_for_status()
                    data = response.json()
                    self.rows_used += len(data.get("results") or []) or 1
                    return data
            except httpx.HTTPError as e:
                logger.warning(
                    "SpyFu HTTP error",
                    extra={"endpoint": endpoint, "attempt": attempt + 1, "error": str(e)},
                )
                last_error = ExternalAPIError("SpyFu", str(e))

            if attempt < self.max_retries:
                await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error

    async def get_domain_stats(self, domain: str) -> dict[str, Any]:
        """Return organic/paid overview stats, trying this month then last month."""
        now = datetime.now(UTC)
        previous = (now.year - 1, 12) if now.month == 1 else (now.year, now.month - 1)

        for year, month in ((now.year, now.month), previous):
            try:
                raw = await self._get(
                    "/domain_stats_api/v2/getDomainStatsForExactDate",
                    {"domain": domain, "year": year, "month": month},
                )
            except ExternalAPIError as e:
                logger.warning(
                    "SpyFu domain stats lookup failed",
                    extra={"domain": domain, "year": year, "month": month, "error": e.message},
                )
                continue

            latest = (raw.get("results") or [None])[0]
            if not latest:
                continue
            return {
                "domain": domain,
                "organic_keywords": latest.get("totalOrganicResults") or 0,
                "monthly_organic_clicks": latest.get("monthlyOrganicClicks") or 0,
                "monthly_paid_clicks": latest.get("monthlyPaidClicks") or 0,
                "monthly_budget": latest.get("monthlyBudget") or 0,
            }

        logger.info("No SpyFu domain stats found", extra={"domain": domain})
        return {"domain": domain}

    async def get_seo_keyword_gaps(
        self,
        client_domain: str,
        competitor_domains: list[str],
        max_results: int = 100,
    ) -> list[dict[str, Any]]:
        """Organic keywords competitors rank for and the client does not."""
        if not competitor_domains:
            return []
        raw = await self._get(
            "/keyword_api/v2/kombat/getCompetingSeoKeywords",
            {
                "includeDomainsCsv": ",".join(competitor_domains),
                "excludeDomainsCsv": client_domain,
                "isIntersection": False,
                "pageSize": max_results,
            },
        )
        return [normalize_keyword_item(item) for item in raw.get("results") or []]

    async def get_most_valuable_keywords(self, domain: str, max_results: int = 50) -> list[dict[str, Any]]:
        raw = await self._get(
            "/serp_api/v2/seo/getMostValuableKeywords",
            {
                "query": domain,
                "pageSize": max_results,
                "excludeTerms": EXCLUDE_TERMS,
                "searchVolume.min": MIN_SEARCH_VOLUME,
            },
        )
        return [normalize_keyword_item(item) for item in raw.get("results") or []]
