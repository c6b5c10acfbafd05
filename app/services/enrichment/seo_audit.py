"""Deterministic technical SEO audit of the client site plus PageSpeed performance."""

import asyncio
import json
import logging
from collections.abc import Callable
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from app.integrations.pagespeed import PageSpeedClient
from app.integrations.scraper import WebsiteScraper, site_root
from app.schemas.blueprint import PageAudit, PageCheck, PerformanceMetrics, SEOAuditResult

logger = logging.getLogger(__name__)

CRAWL_PATHS = ("/about", "/pricing", "/blog", "/contact", "/features")

WEIGHTS: dict[str, int] = {
    "title": 15,
    "metaDescription": 10,
    "h1": 10,
    "canonical": 10,
    "images": 10,
    "internalLinks": 5,
    "schema": 10,
    "sitemap": 10,
    "robots": 10,
    "https": 5,
    "viewport": 5,
}
SITE_LEVEL_CHECKS = ("sitemap", "robots")
TECHNICAL_WEIGHT = 0.6
PERFORMANCE_WEIGHT = 0.4

Progress = Callable[[str], None]


def parse_page_checks(html: str, url: str) -> list[PageCheck]:
    """Run the per-page HTML checks."""
    soup = BeautifulSoup(html, "lxml")
    checks: list[PageCheck] = []

    title = soup.title.get_text(strip=True) if soup.title else ""
    checks.append(PageCheck(name="title", passed=30 <= len(title) <= 70, detail=f"{len(title)} chars"))

    meta = soup.find("meta", attrs={"name": "description"})
    description = str(meta.get("content") or "").strip() if meta else ""
    checks.append(
        PageCheck(
            name="metaDescription",
            passed=70 <= len(description) <= 170,
            detail=f"{len(description)} chars",
        )
    )

    h1_count = len(soup.find_all("h1"))
    checks.append(PageCheck(name="h1", passed=h1_count == 1, detail=f"{h1_count} found"))

    canonical = soup.find("link", rel="canonical")
    checks.append(PageCheck(name="canonical", passed=canonical is not None and bool(canonical.get("href"))))

    robots_meta = soup.find("meta", attrs={"name": "robots"})
    robots_value = str(robots_meta.get("content") or "") if robots_meta else ""
    checks.append(PageCheck(name="indexable", passed="noindex" not in robots_value.lower(), detail=robots_value))

    images = soup.find_all("img")
    with_alt = sum(1 for image in images if str(image.get("alt") or "").strip())
    coverage = round(100 * with_alt / len(images)) if images else 100
    checks.append(PageCheck(name="images", passed=coverage >= 80, detail=f"{coverage}% alt coverage"))

    host = urlparse(url).netloc
    internal = 0
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if not isinstance(href, str):
            continue
        if urlparse(urljoin(url, href)).netloc == host:
            internal += 1
    checks.append(PageCheck(name="internalLinks", passed=internal >= 3, detail=f"{internal} links"))

    schema_types = _schema_types(soup)
    checks.append(PageCheck(name="schema", passed=bool(schema_types), detail=", ".join(schema_types)))

    checks.append(PageCheck(name="viewport", passed=soup.find("meta", attrs={"name": "viewport"}) is not None))
    checks.append(PageCheck(name="https", passed=url.startswith("https://")))
    return checks


def _schema_types(soup: BeautifulSoup) -> list[str]:
    types: list[str] = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            payload = json.loads(script.string or "")
        except ValueError:
            continue
        for item in payload if isinstance(payload, list) else [payload]:
            if not isinstance(item, dict) or "@type" not in item:
                continue
            value = item["@type"]
            types.extend(value if isinstance(value, list) else [value])
    return [str(value) for value in types]


def score_page(checks: list[PageCheck]) -> float:
    """Weighted page score out of the per-page maximum (sitemap/robots excluded)."""
    by_name = {check.name: check for check in checks}
    score = 0.0
    for name, weight in WEIGHTS.items():
        if name in SITE_LEVEL_CHECKS:
            continue
        check = by_name.get(name)
        if check is None:
            continue
        if check.passed:
            score += weight
        elif name == "images" and _leading_int(check.detail) >= 50:
            score += weight * 0.5
    return score


def _leading_int(text: str) -> int:
    digits = ""
    for char in text:
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else 0


def technical_score(pages: list[PageAudit], sitemap_found: bool, robots_found: bool) -> int:
    if not pages:
        return 0
    average = sum(page.score for page in pages) / len(pages)
    total = average + (WEIGHTS["sitemap"] if sitemap_found else 0) + (WEIGHTS["robots"] if robots_found else 0)
    return round(min(100, max(0, total)))


def overall_score(technical: int, performance: PerformanceMetrics | None) -> int:
    if performance is None or performance.score is None:
        return technical
    return round(TECHNICAL_WEIGHT * technical + PERFORMANCE_WEIGHT * performance.score)


class SEOAuditService:
    """Crawls the homepage and common paths and scores them; no LLM involved."""

    def __init__(
        self,
        scraper_factory: Callable[[], WebsiteScraper] | None = None,
        pagespeed_factory: Callable[[], PageSpeedClient] | None = None,
    ) -> None:
        self._scraper_factory = scraper_factory or WebsiteScraper
        self._pagespeed_factory = pagespeed_factory or PageSpeedClient

    async def run(self, input_data: str, on_progress: Progress | None = None) -> SEOAuditResult | None:
        report = on_progress or (lambda _message: None)
        root = site_root(input_data)
        urls = [root, *(f"{root}{path}" for path in CRAWL_PATHS)]

        report("Crawling pages for technical SEO analysis...")
        async with self._scraper_factory() as scraper, self._pagespeed_factory() as pagespeed:
            fetched, sitemap_found, robots_found, performance = await asyncio.gather(
                scraper.fetch_pages(urls),
                scraper.resource_exists(f"{root}/sitemap.xml"),
                scraper.resource_exists(f"{root}/robots.txt"),
                pagespeed.get_metrics(root),
            )

        report(f"Scoring {len(fetched)} crawled pages...")
        pages: list[PageAudit] = []
        seen: set[str] = set()
        for page in fetched:
            if page.url in seen:
                continue
            seen.add(page.url)
            checks = parse_page_checks(page.html, page.url)
            pages.append(PageAudit(url=page.url, checks=checks, score=round(score_page(checks))))

        technical = technical_score(pages, sitemap_found, robots_found)
        overall = overall_score(technical, performance)
        logger.info(
            "SEO audit complete",
            extra={
                "url": root,
                "pages": len(pages),
                "technical_score": technical,
                "overall_score": overall,
                "has_performance": performance is not None,
            },
        )
        return SEOAuditResult(
            url=root,
            pages=pages,
            sitemap_found=sitemap_found,
            robots_txt_found=robots_found,
            performance=performance,
            technical_score=technical,
            overall_score=overall,
            cost=0.0,
            status="success" if pages else "partial",
        )
