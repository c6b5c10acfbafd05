"""Trustpilot review mining for competitor analysis."""

import json
import logging
import re
from collections import deque
from collections.abc import Iterator
from typing import Any

import httpx
from bs4 import BeautifulSoup

from app.config import settings
from app.schemas.blueprint import CustomerReview, ReviewSummary

logger = logging.getLogger(__name__)

TRUSTPILOT_REVIEW_URL = "https://www.trustpilot.com/review/{domain}"
MAX_REVIEWS = 10
MAX_REVIEW_CHARS = 500
MIN_REVIEW_CHARS = 30

# Reviews about working at the company rather than using its product
EMPLOYMENT_SIGNALS = (
    "applying for a job",
    "job application",
    "job interview",
    "hiring process",
    "interview process",
    "as an employee",
    "working there",
    "work environment",
    "got hired",
    "got fired",
    "applied for",
)
PRODUCT_SIGNALS = (
    "software",
    "tool",
    "platform",
    "dashboard",
    "data",
    "integration",
    "report",
    "analytics",
    "feature",
    "api",
    "subscription",
    "billing",
    "pricing",
    "support ticket",
    "bug",
    "app",
    "product",
)

_TRUSTSCORE_RE = re.compile(r"TrustScore\s*(\d(?:\.\d)?)", re.IGNORECASE)
_REVIEW_COUNT_RE = re.compile(r"([\d,]+)\s+(?:total\s+)?reviews\b", re.IGNORECASE)


def is_product_review(text: str) -> bool:
    """False for reviews that only talk about employment at the company."""
    lower = text.lower()
    if not any(signal in lower for signal in EMPLOYMENT_SIGNALS):
        return True
    return any(signal in lower for signal in PRODUCT_SIGNALS)


def _json_ld_nodes(soup: BeautifulSoup) -> Iterator[dict[str, Any]]:
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except json.JSONDecodeError:
            continue
        pending: deque[Any] = deque([data])
        while pending:
            node = pending.popleft()
            if isinstance(node, list):
                pending.extend(node)
            elif isinstance(node, dict):
                yield node
                pending.extend(v for v in node.values() if isinstance(v, dict | list))


def _as_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> int | None:
    try:
        return int(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None


def parse_trustpilot_page(html: str, url: str | None = None) -> ReviewSummary | None:
    """Aggregate rating and product reviews from a Trustpilot company page.

    Structured data is preferred; the visible text is used for the score and
    review count when the page carries none. Returns ``None`` when the page
    has neither a rating nor any reviews.
    """
    soup = BeautifulSoup(html, "lxml")
    rating: float | None = None
    review_count: int | None = None
    reviews: list[CustomerReview] = []
    seen: set[str] = set()

    for node in _json_ld_nodes(soup):
        aggregate = node.get("aggregateRating")
        if isinstance(aggregate, dict) and rating is None:
            rating = _as_float(aggregate.get("ratingValue"))
            review_count = _as_int(aggregate.get("reviewCount") or aggregate.get("ratingCount"))

        if node.get("@type") != "Review":
            continue
        text = " ".join(str(node.get("reviewBody") or "").split())
        review_rating = node.get("reviewRating")
        stars = _as_int(review_rating.get("ratingValue")) if isinstance(review_rating, dict) else None
        if stars is None or len(text) < MIN_REVIEW_CHARS or text in seen:
            continue
        seen.add(text)
        if not is_product_review(text):
            logger.debug("Skipping non-product review", extra={"url": url, "text": text[:80]})
            continue
        reviews.append(CustomerReview(rating=stars, text=text[:MAX_REVIEW_CHARS], date=node.get("datePublished")))

    if rating is None or review_count is None:
        page_text = soup.get_text(" ", strip=True)
        if rating is None and (match := _TRUSTSCORE_RE.search(page_text)):
            rating = float(match.group(1))
        if review_count is None and (match := _REVIEW_COUNT_RE.search(page_text)):
            review_count = _as_int(match.group(1))

    if rating is None and not reviews:
        return None

    reviews = reviews[:MAX_REVIEWS]
    complaints = [review.text for review in sorted(reviews, key=lambda r: r.rating) if review.rating <= 2]
    return ReviewSummary(
        source="trustpilot",
        url=url,
        rating=rating,
        review_count=review_count,
        highlights=complaints[:3],
        reviews=reviews,
    )


class ReviewScraper:
    """Fetches competitor review pages; one page per competitor domain."""

    def __init__(
        self,
        timeout: float | None = None,
        cost_per_page: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout or settings.http_timeout_seconds
        self.cost_per_page = settings.review_scrape_cost_per_page if cost_per_page is None else cost_per_page
        self.pages_fetched = 0
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ReviewScraper":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": f"Mozilla/5.0 (compatible; {settings.app_name}/{settings.app_version})"},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("ReviewScraper must be used as async context manager")
        return self._client

    @property
    def estimated_cost(self) -> float:
        return round(self.pages_fetched * self.cost_per_page, 6)

    async def fetch_reviews(self, domain: str) -> ReviewSummary | None:
        """Review summary for ``domain``; ``None`` when the company is not listed.

        Raises:
            httpx.HTTPError: On transport failures and non-404 error statuses.
        """
        url = TRUSTPILOT_REVIEW_URL.format(domain=domain)
        response = await self.client.get(url)
        self.pages_fetched += 1
        if response.status_code == 404:
            logger.info("No review page for competitor", extra={"domain": domain})
            return None
        response.raise_for_status()

        summary = parse_trustpilot_page(response.text, url=url)
        logger.info(
            "Reviews mined",
            extra={
                "domain": domain,
                "rating": summary.rating if summary else None,
                "reviews": len(summary.reviews) if summary else 0,
            },
        )
        return summary
