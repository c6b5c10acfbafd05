"""Keyword intelligence: domain stats, organic keyword gaps and quick wins."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from app.core.exceptions import APIKeyMissingError, ExternalAPIError
from app.integrations.spyfu import SpyFuClient
from app.schemas.blueprint import (
    DomainStats,
    KeywordIntelligenceInput,
    KeywordIntelligenceResult,
    KeywordOpportunity,
)

logger = logging.getLogger(__name__)

MAX_KEYWORD_WORDS = 6
NAVIGATIONAL_VOLUME_FLOOR = 50_000
NAVIGATIONAL_CPC_CEILING = 1.0
QUICK_WIN_MAX_DIFFICULTY = 40
QUICK_WIN_MIN_VOLUME = 100
QUICK_WIN_LIMIT = 20
MAX_COMPETITOR_DOMAINS = 5

NON_BUYER_INTENT_TERMS: dict[str, frozenset[str]] = {
    "job_career": frozenset(
        {
            "jobs", "job", "careers", "career", "hiring", "salary", "salaries",
            "internship", "internships", "resume", "resumes", "employment",
            "recruiting", "recruitment", "recruiter", "vacancy", "vacancies",
            "staffing", "apprenticeship",
        }
    ),
    "educational": frozenset(
        {
            "course", "courses", "certification", "certifications", "tutorial",
            "tutorials", "degree", "degrees", "curriculum", "syllabus", "textbook",
            "homework", "college", "university", "student", "students",
        }
    ),
    "free_diy": frozenset(
        {"freeware", "printable", "diy", "homemade", "cheap", "cheapest", "coupon", "coupons"}
    ),
    "service_provider": frozenset(
        {"agency", "agencies", "consultant", "consultants", "consulting", "contractor", "contractors"}
    ),
}
NON_BUYER_INTENT_PHRASES = (
    "near me", "nearby", "in my area", "entry level", "part time", "full time", "work from home",
)
NON_BUYER_INTENT_PREFIXES = (
    "what is ", "what are ", "define ", "meaning of ",
    "how to become ", "how to learn ", "how to start ",
)

Progress = Callable[[str], None]


def rejection_reason(keyword: str, search_volume: int = 0, cpc: float = 0.0) -> str | None:
    """Why a keyword is not worth pursuing, or ``None`` if it is."""
    lowered = keyword.lower().strip()
    words = lowered.split()
    if not words:
        return "empty"
    if len(words) > MAX_KEYWORD_WORDS:
        return "too_long"
    for category, terms in NON_BUYER_INTENT_TERMS.items():
        if any(word in terms for word in words):
            return category
    if any(phrase in lowered for phrase in NON_BUYER_INTENT_PHRASES):
        return "non_buyer_phrase"
    if lowered.startswith(NON_BUYER_INTENT_PREFIXES):
        return "educational_prefix"
    if search_volume > NAVIGATIONAL_VOLUME_FLOOR and cpc < NAVIGATIONAL_CPC_CEILING:
        return "consumer_navigational"
    return None


def filter_opportunities(opportunities: Iterable[KeywordOpportunity]) -> list[KeywordOpportunity]:
    """Drop rejected keywords and duplicates, keeping the first occurrence."""
    kept: list[KeywordOpportunity] = []
    seen: set[str] = set()
    for opportunity in opportunities:
        key = opportunity.keyword.lower().strip()
        if key in seen:
            continue
        if rejection_reason(opportunity.keyword, opportunity.search_volume, opportunity.cpc):
            continue
        seen.add(key)
        kept.append(opportunity)
    return kept


def is_quick_win(opportunity: KeywordOpportunity) -> bool:
    return opportunity.difficulty <= QUICK_WIN_MAX_DIFFICULTY and opportunity.search_volume >= QUICK_WIN_MIN_VOLUME


def select_quick_wins(opportunities: list[KeywordOpportunity]) -> list[KeywordOpportunity]:
    wins = [item for item in opportunities if is_quick_win(item)]
    wins.sort(key=lambda item: item.search_volume, reverse=True)
    return wins[:QUICK_WIN_LIMIT]


def _opportunity(item: dict[str, Any], competitor_domain: str | None) -> KeywordOpportunity:
    rank = item.get("rank")
    return KeywordOpportunity(
        keyword=item["keyword"],
        search_volume=item.get("search_volume") or 0,
        cpc=item.get("cpc") or 0.0,
        difficulty=item.get("difficulty") or 0,
        competitor_domain=competitor_domain,
        competitor_rank=int(rank) if isinstance(rank, (int, float)) else None,
    )


class KeywordIntelligenceService:
    """Builds keyword intelligence for the client domain from SpyFu."""

    def __init__(
        self,
        client_factory: Callable[[], SpyFuClient] | None = None,
        max_gap_results: int = 100,
    ) -> None:
        self._client_factory = client_factory or SpyFuClient
        self.max_gap_results = max_gap_results

    async def run(
        self,
        input_data: KeywordIntelligenceInput,
        on_progress: Progress | None = None,
    ) -> KeywordIntelligenceResult | None:
        report = on_progress or (lambda _message: None)
        try:
            client = self._client_factory()
        except APIKeyMissingError:
            logger.info("Keyword intelligence skipped, SpyFu not configured")
            return None

        competitors = input_data.competitor_domains[:MAX_COMPETITOR_DOMAINS]
        domains = [input_data.client_domain, *competitors]
        async with client:
            report(f"Fetching domain stats for {len(domains)} domains...")
            stats = await asyncio.gather(*(client.get_domain_stats(domain) for domain in domains))

            report("Finding organic keyword gaps...")
            try:
                gaps_raw = await client.get_seo_keyword_gaps(
                    input_data.client_domain, competitors, max_results=self.max_gap_results
                )
                status = "success"
            except ExternalAPIError as e:
                logger.warning(
                    "Keyword gap lookup failed",
                    extra={"client_domain": input_data.client_domain, "error": e.message},
                )
                gaps_raw = []
                status = "partial"
            cost = client.estimated_cost

        gap_domain = competitors[0] if len(competitors) == 1 else None
        gaps = filter_opportunities(_opportunity(item, gap_domain) for item in gaps_raw)
        quick_wins = select_quick_wins(gaps)
        quick_win_keys = {item.keyword for item in quick_wins}
        gaps = [item.model_copy(update={"quick_win": item.keyword in quick_win_keys}) for item in gaps]

        logger.info(
            "Keyword intelligence complete",
            extra={
                "client_domain": input_data.client_domain,
                "raw_gaps": len(gaps_raw),
                "kept_gaps": len(gaps),
                "quick_wins": len(quick_wins),
                "cost": cost,
            },
        )
        report(f"Found {len(gaps)} keyword gaps, {len(quick_wins)} quick wins")
        return KeywordIntelligenceResult(
            client_domain=input_data.client_domain,
            domain_stats=[DomainStats(**item) for item in stats],
            keyword_gaps=gaps,
            quick_wins=[item.model_copy(update={"quick_win": True}) for item in quick_wins],
            cost=cost,
            status=status,
        )
