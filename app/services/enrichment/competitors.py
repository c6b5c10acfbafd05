"""Competitor enrichment: ad creatives for every competitor, pricing and reviews for the full tier."""

import asyncio
import logging
from collections.abc import Callable

from app.config import settings
from app.core.exceptions import APIKeyMissingError
from app.integrations.ad_library import AdLibraryClient
from app.integrations.reviews import ReviewScraper
from app.integrations.scraper import WebsiteScraper
from app.schemas.blueprint import AdCreative, CompetitorRecord, EnrichmentResult, PricingTier, ReviewSummary
from app.services.blueprint.context import resolve_client_domain
from app.services.enrichment.pricing import extract_pricing_tiers

logger = logging.getLogger(__name__)

Progress = Callable[[str], None]

AdClientFactory = Callable[[], AdLibraryClient]
ScraperFactory = Callable[[], WebsiteScraper]
ReviewScraperFactory = Callable[[], ReviewScraper]


class CompetitorEnrichmentService:
    """Adds ads (both tiers) plus scraped pricing and reviews (full tier only) to competitor records.

    Failures for one competitor or one source never fail the job; the
    competitor is returned with whatever could be collected.
    """

    def __init__(
        self,
        ad_client_factory: AdClientFactory | None = None,
        scraper_factory: ScraperFactory | None = None,
        review_scraper_factory: ReviewScraperFactory | None = None,
        full_tier_ad_limit: int | None = None,
        summary_tier_ad_limit: int | None = None,
    ) -> None:
        self._ad_client_factory = ad_client_factory or AdLibraryClient
        self._scraper_factory = scraper_factory or WebsiteScraper
        self._review_scraper_factory = review_scraper_factory or ReviewScraper
        self.full_tier_ad_limit = full_tier_ad_limit or settings.full_tier_ad_limit
        self.summary_tier_ad_limit = summary_tier_ad_limit or settings.summary_tier_ad_limit

    async def run(
        self,
        input_data: list[CompetitorRecord],
        on_progress: Progress | None = None,
    ) -> EnrichmentResult | None:
        if not input_data:
            return EnrichmentResult(competitors=[], cost=0.0)

        report = on_progress or (lambda _message: None)
        full = sum(1 for competitor in input_data if competitor.tier == "full")
        report(f"Enriching {full} full-tier and {len(input_data) - full} summary competitors...")

        try:
            ad_client = self._ad_client_factory()
        except APIKeyMissingError:
            logger.warning("Ad library not configured, enriching pricing and reviews only")
            ad_client = None

        async with self._scraper_factory() as scraper, self._review_scraper_factory() as review_scraper:
            if ad_client is None:
                enriched = await asyncio.gather(
                    *(self._enrich_one(competitor, None, scraper, review_scraper, report) for competitor in input_data)
                )
                cost = 0.0
            else:
                async with ad_client:
                    enriched = await asyncio.gather(
                        *(
                            self._enrich_one(competitor, ad_client, scraper, review_scraper, report)
                            for competitor in input_data
                        )
                    )
                    cost = ad_client.estimated_cost
            cost = round(cost + review_scraper.estimated_cost, 6)

        with_ads = sum(1 for competitor in enriched if competitor.ads)
        with_pricing = sum(1 for competitor in enriched if competitor.pricing)
        with_reviews = sum(1 for competitor in enriched if competitor.reviews)
        logger.info(
            "Competitor enrichment complete",
            extra={
                "competitors": len(enriched),
                "with_ads": with_ads,
                "with_pricing": with_pricing,
                "with_reviews": with_reviews,
                "cost": cost,
            },
        )
        report(
            f"Enriched {len(enriched)} competitors "
            f"({with_ads} with ads, {with_pricing} with pricing, {with_reviews} with reviews)"
        )
        status = "success" if with_ads or with_pricing or with_reviews else "partial"
        return EnrichmentResult(competitors=list(enriched), cost=cost, status=status)

    async def _enrich_one(
        self,
        competitor: CompetitorRecord,
        ad_client: AdLibraryClient | None,
        scraper: WebsiteScraper,
        review_scraper: ReviewScraper,
        report: Progress,
    ) -> CompetitorRecord:
        full_tier = competitor.tier == "full"
        limit = self.full_tier_ad_limit if full_tier else self.summary_tier_ad_limit

        ads_task = self._fetch_ads(competitor, ad_client, limit, report)
        if full_tier and competitor.website:
            ads, pricing, reviews = await asyncio.gather(
                ads_task,
                self._fetch_pricing(competitor, scraper, report),
                self._fetch_reviews(competitor, review_scraper, report),
            )
        else:
            ads, pricing, reviews = await ads_task, competitor.pricing, competitor.reviews

        return competitor.model_copy(update={"ads": ads or competitor.ads, "pricing": pricing, "reviews": reviews})

    async def _fetch_ads(
        self,
        competitor: CompetitorRecord,
        ad_client: AdLibraryClient | None,
        limit: int,
        report: Progress,
    ) -> list[AdCreative]:
        if ad_client is None:
            return []
        report(f"Fetching ads for {competitor.name}...")
        domain = resolve_client_domain(competitor.website)
        try:
            return await ad_client.fetch_competitor_ads(competitor.id, competitor.name, domain=domain, limit=limit)
        except Exception:
            logger.warning("Ad fetch failed", extra={"competitor": competitor.name}, exc_info=True)
            return []

    async def _fetch_pricing(
        self,
        competitor: CompetitorRecord,
        scraper: WebsiteScraper,
        report: Progress,
    ) -> list[PricingTier] | None:
        assert competitor.website is not None
        report(f"Scraping pricing for {competitor.name}...")
        try:
            scraped = await scraper.scrape_pricing_text(competitor.website)
        except Exception:
            logger.warning("Pricing scrape failed", extra={"competitor": competitor.name}, exc_info=True)
            return competitor.pricing
        if scraped is None:
            return competitor.pricing
        url, text = scraped
        tiers = extract_pricing_tiers(text)
        logger.info("Pricing extracted", extra={"competitor": competitor.name, "url": url, "tiers": len(tiers)})
        return tiers or competitor.pricing

    async def _fetch_reviews(
        self,
        competitor: CompetitorRecord,
        review_scraper: ReviewScraper,
        report: Progress,
    ) -> ReviewSummary | None:
        domain = resolve_client_domain(competitor.website)
        if domain is None:
            return competitor.reviews
        report(f"Mining reviews for {competitor.name}...")
        try:
            summary = await review_scraper.fetch_reviews(domain)
        except Exception:
            logger.warning("Review mining failed", extra={"competitor": competitor.name}, exc_info=True)
            return competitor.reviews
        return summary or competitor.reviews
