"""Website scraper for pricing pages and SEO page checks."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from app.config import settings

logger = logging.getLogger(__name__)

PRICING_PATHS = ("/pricing", "/plans", "/pricing-plans")


@dataclass(slots=True)
class FetchedPage:
    url: str
    html: str
    status_code: int


def site_root(url_or_domain: str) -> str:
    """Return ``scheme://host`` for a URL or bare domain, defaulting to https."""
    candidate = url_or_domain.strip()
    if not candidate.startswith(("http://", "https://")):
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    if not parsed.netloc:
        return candidate.rstrip("/")
    return f"{parsed.scheme}://{parsed.netloc}"


def visible_text(html: str) -> str:
    """Main text of a page with scripts, styles and chrome removed."""
    soup = BeautifulSoup(html, "lxml")
    for element in soup(["script", "style", "noscript", "nav", "footer", "header"]):
        element.decompose()
    main_content = soup.find("main") or soup.find("article") or soup.body
    if main_content is None:
        return ""
    return main_content.get_text(separator="\n", strip=True)


class WebsiteScraper:
    """Scraper for fetching raw pages from websites."""

    def __init__(
        self,
        timeout: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout or settings.http_timeout_seconds
        self.user_agent = user_agent or (
            f"Mozilla/5.0 (compatible; {settings.app_name}/{settings.app_version})"
        )
        self.pages_fetched = 0
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "WebsiteScraper":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
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
            raise RuntimeError("Scraper must be used as async context manager")
        return self._client

    async def fetch_page(self, url: str) -> FetchedPage | None:
        """GET a page; ``None`` when the request fails or the status is not 2xx."""
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.info("Page fetch failed", extra={"url": url, "error": str(e)})
            return None
        self.pages_fetched += 1
        return FetchedPage(url=str(response.url), html=response.text, status_code=response.status_code)

    async def fetch_pages(self, urls: list[str]) -> list[FetchedPage]:
        results = await asyncio.gather(*(self.fetch_page(url) for url in urls))
        return [page for page in results if page is not None]

    async def resource_exists(self, url: str) -> bool:
        """HEAD a resource such as ``/sitemap.xml``; falls back to GET on 405."""
        try:
            response = await self.client.head(url)
            if response.status_code == 405:
                response = await self.client.get(url)
        except httpx.HTTPError:
            return False
        return response.is_success

    async def scrape_pricing_text(self, website: str) -> tuple[str, str] | None:
        """Return ``(url, text)`` for the first pricing page that responds."""
        root = site_root(website)
        for path in PRICING_PATHS:
            page = await self.fetch_page(f"{root}{path}")
            if page is None:
                continue
            text = visible_text(page.html)
            if text:
                logger.info("Pricing page scraped", extra={"url": page.url, "chars": len(text)})
                return page.url, text
        return None
