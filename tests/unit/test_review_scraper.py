"""Unit tests for competitor review mining."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from app.integrations.reviews import ReviewScraper, is_product_review, parse_trustpilot_page


def _review(stars: int, body: str, date: str = "2026-03-01") -> dict[str, Any]:
    return {
        "@type": "Review",
        "reviewBody": body,
        "reviewRating": {"@type": "Rating", "ratingValue": str(stars)},
        "datePublished": date,
    }


def _page(*reviews: dict[str, Any], aggregate: dict[str, Any] | None = None) -> str:
    data: dict[str, Any] = {"@context": "https://schema.org", "@type": "Organization", "name": "Alpha"}
    if aggregate is not None:
        data["aggregateRating"] = aggregate
    data["review"] = list(reviews)
    return (
        "<html><head>"
        f'<script type="application/ld+json">{json.dumps(data)}</script>'
        "</head><body><h1>Alpha</h1></body></html>"
    )


def test_parse_reads_aggregate_rating_and_reviews_in_page_order() -> None:
    html = _page(
        _review(5, "The reporting dashboard saves our team hours every single week."),
        _review(1, "Support ignored my billing ticket for three weeks straight, awful."),
        _review(2, "The integration with our CRM breaks every time they ship an update."),
        aggregate={"@type": "AggregateRating", "ratingValue": "3.9", "reviewCount": "1,204"},
    )

    summary = parse_trustpilot_page(html, url="https://www.trustpilot.com/review/alpha.example.com")

    assert summary is not None
    assert summary.rating == 3.9
    assert summary.review_count == 1204
    assert summary.url == "https://www.trustpilot.com/review/alpha.example.com"
    assert [review.rating for review in summary.reviews] == [5, 1, 2]
    assert summary.reviews[0].date == "2026-03-01"
    assert summary.highlights == [
        "Support ignored my billing ticket for three weeks straight, awful.",
        "The integration with our CRM breaks every time they ship an update.",
    ]


def test_parse_skips_employment_short_and_duplicate_reviews() -> None:
    repeated = "Great analytics product, the weekly reports are exactly what we need."
    html = _page(
        _review(1, "Terrible hiring process, nobody replied after my job interview with them."),
        _review(4, "Too short."),
        _review(5, repeated),
        _review(5, repeated),
        aggregate={"ratingValue": 4.2, "ratingCount": 88},
    )

    summary = parse_trustpilot_page(html)

    assert summary is not None
    assert [review.text for review in summary.reviews] == [repeated]
    assert summary.review_count == 88
    assert summary.highlights == []


def test_parse_falls_back_to_visible_text() -> None:
    html = "<html><body><p>TrustScore 4.3</p><p>2,310 reviews</p></body></html>"

    summary = parse_trustpilot_page(html)

    assert summary is not None
    assert summary.rating == 4.3
    assert summary.review_count == 2310
    assert summary.reviews == []


def test_parse_returns_none_without_rating_or_reviews() -> None:
    assert parse_trustpilot_page("<html><body><p>Company not found</p></body></html>") is None


def test_product_review_filter_keeps_mixed_reviews() -> None:
    assert is_product_review("Onboarding was smooth and the app is fast.") is True
    assert is_product_review("The interview process took two months.") is False
    assert is_product_review("Applied for a role, but I also use their platform daily.") is True


@pytest.mark.asyncio
async def test_fetch_reviews_requests_company_page_and_counts_cost() -> None:
    requested: list[str] = []
    html = _page(
        _review(2, "Pricing jumped forty percent at renewal with no warning at all."),
        aggregate={"ratingValue": "2.8", "reviewCount": "57"},
    )

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, html=html)

    async with ReviewScraper(cost_per_page=0.004, transport=httpx.MockTransport(handler)) as scraper:
        summary = await scraper.fetch_reviews("alpha.example.com")

    assert requested == ["https://www.trustpilot.com/review/alpha.example.com"]
    assert summary is not None
    assert summary.rating == 2.8
    assert summary.highlights == ["Pricing jumped forty percent at renewal with no warning at all."]
    assert scraper.estimated_cost == 0.004


@pytest.mark.asyncio
async def test_fetch_reviews_returns_none_for_unlisted_company() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    async with ReviewScraper(cost_per_page=0.0, transport=transport) as scraper:
        assert await scraper.fetch_reviews("unknown.example.com") is None
    assert scraper.pages_fetched == 1


@pytest.mark.asyncio
async def test_fetch_reviews_raises_on_server_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    async with ReviewScraper(cost_per_page=0.0, transport=transport) as scraper:
        with pytest.raises(httpx.HTTPStatusError):
            await scraper.fetch_reviews("alpha.example.com")


def test_review_scraper_requires_context_manager() -> None:
    with pytest.raises(RuntimeError):
        _ = ReviewScraper().client
