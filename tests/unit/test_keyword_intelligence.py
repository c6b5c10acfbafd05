"""Unit tests for keyword opportunity filtering and the keyword intelligence service."""

from __future__ import annotations

from typing import Any

import pytest

from app.core.exceptions import APIKeyMissingError, ExternalAPIError
from app.schemas.blueprint import KeywordIntelligenceInput, KeywordOpportunity
from app.services.enrichment.keywords import (
    KeywordIntelligenceService,
    filter_opportunities,
    rejection_reason,
    select_quick_wins,
)


@pytest.mark.parametrize(
    ("keyword", "volume", "cpc", "reason"),
    [
        ("", 0, 0.0, "empty"),
        ("best month end close software for small saas teams", 10, 1.0, "too_long"),
        ("accounting software jobs", 900, 2.0, "job_career"),
        ("bookkeeping course online", 900, 2.0, "educational"),
        ("accounting agency", 900, 2.0, "service_provider"),
        ("bookkeeping near me", 900, 2.0, "non_buyer_phrase"),
        ("what is accrual accounting", 900, 2.0, "educational_prefix"),
        ("quickbooks", 60_000, 0.5, "consumer_navigational"),
        ("month end close software", 500, 12.0, None),
    ],
)
def test_rejection_reason(keyword: str, volume: int, cpc: float, reason: str | None) -> None:
    assert rejection_reason(keyword, volume, cpc) == reason


def test_filter_opportunities_drops_rejected_and_duplicates() -> None:
    kept = filter_opportunities(
        [
            KeywordOpportunity(keyword="Close Automation", search_volume=300),
            KeywordOpportunity(keyword="close automation ", search_volume=900),
            KeywordOpportunity(keyword="controller salary", search_volume=5000),
            KeywordOpportunity(keyword="reconciliation software", search_volume=700),
        ]
    )

    assert [item.keyword for item in kept] == ["Close Automation", "reconciliation software"]
    assert kept[0].search_volume == 300


def test_select_quick_wins_orders_by_volume() -> None:
    opportunities = [
        KeywordOpportunity(keyword="a", search_volume=150, difficulty=20),
        KeywordOpportunity(keyword="b", search_volume=900, difficulty=40),
        KeywordOpportunity(keyword="c", search_volume=5000, difficulty=41),
        KeywordOpportunity(keyword="d", search_volume=99, difficulty=5),
    ]

    assert [item.keyword for item in select_quick_wins(opportunities)] == ["b", "a"]


class FakeSpyFu:
    def __init__(self, gaps: list[dict[str, Any]] | None = None, gaps_error: Exception | None = None) -> None:
        self.gaps = gaps or []
        self.gaps_error = gaps_error
        self.stats_domains: list[str] = []
        self.gap_args: tuple[str, list[str]] | None = None
        self.estimated_cost = 0.0125

    async def __aenter__(self) -> FakeSpyFu:
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None

    async def get_domain_stats(self, domain: str) -> dict[str, Any]:
        self.stats_domains.append(domain)
        return {"domain": domain, "organic_keywords": 120}

    async def get_seo_keyword_gaps(
        self,
        client_domain: str,
        competitor_domains: list[str],
        max_results: int = 100,
    ) -> list[dict[str, Any]]:
        self.gap_args = (client_domain, competitor_domains)
        if self.gaps_error is not None:
            raise self.gaps_error
        return self.gaps


def _gap(keyword: str, volume: int, difficulty: int, cpc: float = 3.0) -> dict[str, Any]:
    return {"keyword": keyword, "search_volume": volume, "cpc": cpc, "difficulty": difficulty, "rank": 4}


@pytest.mark.asyncio
async def test_service_builds_gaps_and_marks_quick_wins() -> None:
    client = FakeSpyFu(
        gaps=[
            _gap("close automation", 800, 25),
            _gap("finance jobs", 5000, 10),
            _gap("reconciliation software", 300, 70),
        ]
    )
    service = KeywordIntelligenceService(client_factory=lambda: client)
    progress: list[str] = []

    result = await service.run(
        KeywordIntelligenceInput(
            client_domain="ledgerly.io",
            competitor_domains=[f"c{idx}.com" for idx in range(7)],
        ),
        on_progress=progress.append,
    )

    assert result is not None
    assert client.stats_domains == ["ledgerly.io", "c0.com", "c1.com", "c2.com", "c3.com", "c4.com"]
    assert client.gap_args == ("ledgerly.io", ["c0.com", "c1.com", "c2.com", "c3.com", "c4.com"])
    assert [gap.keyword for gap in result.keyword_gaps] == ["close automation", "reconciliation software"]
    assert [gap.quick_win for gap in result.keyword_gaps] == [True, False]
    assert [win.keyword for win in result.quick_wins] == ["close automation"]
    assert result.keyword_gaps[0].competitor_rank == 4
    assert result.cost == 0.0125
    assert result.status == "success"
    assert progress


@pytest.mark.asyncio
async def test_service_degrades_to_partial_when_gap_lookup_fails() -> None:
    client = FakeSpyFu(gaps_error=ExternalAPIError("SpyFu", "HTTP 500"))
    service = KeywordIntelligenceService(client_factory=lambda: client)

    result = await service.run(KeywordIntelligenceInput(client_domain="ledgerly.io", competitor_domains=["a.com"]))

    assert result is not None
    assert result.status == "partial"
    assert result.keyword_gaps == []
    assert len(result.domain_stats) == 2


@pytest.mark.asyncio
async def test_service_returns_none_without_credentials() -> None:
    def missing_key() -> FakeSpyFu:
        raise APIKeyMissingError("SpyFu")

    service = KeywordIntelligenceService(client_factory=missing_key)  # type: ignore[arg-type]

    assert await service.run(KeywordIntelligenceInput(client_domain="ledgerly.io")) is None
