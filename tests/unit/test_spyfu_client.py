"""Unit tests for the SpyFu client."""

from __future__ import annotations

import httpx
import pytest

from app.config import settings
from app.core.exceptions import APIKeyMissingError, ExternalAPIError, RateLimitExceededError
from app.integrations.spyfu import SpyFuClient, normalize_keyword_item, sanitize_mojibake


def _client(handler: httpx.MockTransport | None = None, **kwargs: object) -> SpyFuClient:
    return SpyFuClient(api_key="test-key", retry_delay_seconds=0, transport=handler, **kwargs)  # type: ignore[arg-type]


def test_sanitize_mojibake_repairs_latin1_artifacts() -> None:
    assert sanitize_mojibake("logiciel de comptabilitÃ©") == "logiciel de comptabilité"
    assert sanitize_mojibake("plain") == "plain"


def test_normalize_keyword_item_maps_alternate_field_names() -> None:
    item = normalize_keyword_item(
        {
            "term": "close software",
            "liveSearchVolume": 320,
            "exactCostPerClick": 7.5,
            "keywordDifficulty": 33,
            "rankPosition": 6,
        }
    )

    assert item == {
        "keyword": "close software",
        "search_volume": 320,
        "cpc": 7.5,
        "difficulty": 33,
        "rank": 6,
    }


def test_missing_api_key_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "spyfu_api_key", None)

    with pytest.raises(APIKeyMissingError):
        SpyFuClient()


@pytest.mark.asyncio
async def test_rate_limited_request_is_retried() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"results": [{"keyword": "close software", "searchVolume": 500}]})

    async with _client(httpx.MockTransport(handler)) as client:
        gaps = await client.get_seo_keyword_gaps("ledgerly.io", ["alpha.com", "beta.com"])

    assert len(calls) == 2
    assert calls[1].url.params["includeDomainsCsv"] == "alpha.com,beta.com"
    assert calls[1].url.params["excludeDomainsCsv"] == "ledgerly.io"
    assert calls[1].url.params["isIntersection"] == "false"
    assert gaps[0]["keyword"] == "close software"
    assert client.rows_used == 1
    assert client.estimated_cost == round(settings.spyfu_cost_per_row, 6)


@pytest.mark.asyncio
async def test_persistent_rate_limit_raises_after_retries() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429)

    async with _client(httpx.MockTransport(handler), max_retries=2) as client:
        with pytest.raises(RateLimitExceededError):
            await client.get_seo_keyword_gaps("ledgerly.io", ["alpha.com"])

    assert calls == 3


@pytest.mark.asyncio
async def test_server_error_raises_external_api_error() -> None:
    async with _client(httpx.MockTransport(lambda request: httpx.Response(500)), max_retries=1) as client:
        with pytest.raises(ExternalAPIError):
            await client.get_most_valuable_keywords("ledgerly.io")


@pytest.mark.asyncio
async def test_domain_stats_falls_back_to_previous_month() -> None:
    months: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        months.append(request.url.params["month"])
        if len(months) == 1:
            return httpx.Response(200, json={"results": []})
        return httpx.Response(
            200,
            json={"results": [{"totalOrganicResults": 1200, "monthlyOrganicClicks": 3400.5, "monthlyBudget": 900}]},
        )

    async with _client(httpx.MockTransport(handler)) as client:
        stats = await client.get_domain_stats("ledgerly.io")

    assert len(months) == 2
    assert months[0] != months[1]
    assert stats == {
        "domain": "ledgerly.io",
        "organic_keywords": 1200,
        "monthly_organic_clicks": 3400.5,
        "monthly_paid_clicks": 0,
        "monthly_budget": 900,
    }


@pytest.mark.asyncio
async def test_domain_stats_without_data_returns_bare_domain() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"results": []}))

    async with _client(transport) as client:
        assert await client.get_domain_stats("ledgerly.io") == {"domain": "ledgerly.io"}


@pytest.mark.asyncio
async def test_keyword_gaps_without_competitors_skips_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(httpx.MockTransport(handler)) as client:
        assert await client.get_seo_keyword_gaps("ledgerly.io", []) == []
