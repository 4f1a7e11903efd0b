"""Page fetcher and article text extractor."""

import logging
from typing import Dict, List, Optional, Tuple

import httpx
import pendulum
import trafilatura
from bs4 import BeautifulSoup, Tag

from ..models import SourceSelectors
from .models import ArticleContent, FetchResult

logger = logging.getLogger(__name__)

BROWSER_HEADERS: Dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "zh-TW,zh;q=0.9,en;q=0.8",
    "Cache-Control": "no-cache",
}

BODY_SELECTORS = ["article", ".content", ".post-content", ".entry-content", "main"]


class PageFetcher:
    """Fetch HTML pages with browser-like headers."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "Mozilla/5.0 (compatible; autopress/1.0)",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize page fetcher."""
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent, **BROWSER_HEADERS}
        self.transport = transport

    async def fetch(self, url: str) -> FetchResult:
        """Fetch one page; failures are returned, not raised."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=self.headers,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return FetchResult(
                    url=url,
                    final_url=str(response.url),
                    success=True,
                    text=response.text,
                    status_code=response.status_code,
                )
        except httpx.HTTPStatusError as e:
            error_msg = f"HTTP {e.response.status_code}"
            if e.response.status_code == 404:
                error_msg = "Page not found (404)"
            elif e.response.status_code == 403:
                error_msg = "Access forbidden (403)"
            elif e.response.status_code >= 500:
                error_msg = f"Server error ({e.response.status_code})"
            return FetchResult(url=url, final_url=url, success=False,
                               status_code=e.response.status_code, error=error_msg)
        except httpx.TimeoutException:
            return FetchResult(url=url, final_url=url, success=False, error="Request timed out")
        except httpx.HTTPError as e:
            return FetchResult(url=url, final_url=url, success=False, error=f"HTTP error: {e}")


def _first_text(soup: BeautifulSoup, selectors: List[Optional[str]]) -> Optional[str]:
    for selector in selectors:
        if not selector:
            continue
        node = soup.select_one(selector)
        if node is not None:
            text = node.get_text(" ", strip=True)
            if text:
                return text
    return None


def _meta(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    node = soup.find("meta", attrs=attrs)
    if isinstance(node, Tag):
        content = node.get("content")
        if content and content.strip():
            return content.strip()
    return None


class ArticleExtractor:
    """Pull title, body, author and metadata out of an article page."""

    def __init__(self, max_chars: int = 2000) -> None:
        self.max_chars = max_chars

    def _body(self, soup: BeautifulSoup, selectors: SourceSelectors) -> Tuple[str, int]:
        for selector in [selectors.content] + BODY_SELECTORS:
            if not selector:
                continue
            nodes = soup.select(selector)
            if not nodes:
                continue
            paragraphs = [
                p.get_text(" ", strip=True)
                for node in nodes
                for p in node.find_all("p")
            ]
            if not any(paragraphs):
                paragraphs = [node.get_text(" ", strip=True) for node in nodes]
            text = "\n\n".join(p for p in paragraphs if p)
            if len(text) >= 50:
                images = sum(len(node.find_all("img")) for node in nodes)
                return text[: self.max_chars], images
        return "", 0

    def extract(self, html: str, url: str, selectors: Optional[SourceSelectors] = None) -> ArticleContent:
        selectors = selectors or SourceSelectors()
        soup = BeautifulSoup(html, "html.parser")
        for node in soup(["script", "style", "noscript", "iframe"]):
            node.decompose()

        title = _first_text(soup, [selectors.title, "h1"])
        if not title and soup.title and soup.title.string:
            title = soup.title.string.strip()

        author = _first_text(soup, [selectors.author]) or _meta(soup, name="author") or _first_text(soup, [".author"])

        text, images = self._body(soup, selectors)
        if not text:
            extracted = trafilatura.extract(
                html,
                url=url,
                include_comments=False,
                include_tables=False,
                favor_precision=True,
            )
            if extracted:
                text = extracted[: self.max_chars]

        tags = [t.strip() for t in (_meta(soup, name="keywords") or "").split(",") if t.strip()]
        for node in soup.find_all("meta", attrs={"property": "article:tag"}):
            value = (node.get("content") or "").strip()
            if value and value not in tags:
                tags.append(value)

        published_at = None
        raw_date = _meta(soup, property="article:published_time")
        if raw_date:
            try:
                published_at = pendulum.parse(raw_date, strict=False)
            except ValueError:
                logger.debug("Unparseable publish date %r on %s", raw_date, url)

        if not title or not text:
            return ArticleContent(
                url=url,
                title=title or "",
                text=text,
                fetch_success=False,
                error="Failed to extract article content",
            )

        return ArticleContent(
            url=url,
            title=title,
            text=text,
            author=author,
            published_at=published_at,
            tags=tags[:10],
            image_count=images,
        )


class ArticleFetcher:
    """Fetch an article page and extract its content."""

    def __init__(self, fetcher: PageFetcher, extractor: Optional[ArticleExtractor] = None) -> None:
        """Initialize article fetcher."""
        self.fetcher = fetcher
        self.extractor = extractor or ArticleExtractor()

    async def fetch_article(self, url: str, selectors: Optional[SourceSelectors] = None) -> ArticleContent:
        """Fetch and extract a single article."""
        page = await self.fetcher.fetch(url)
        if not page.success:
            return ArticleContent(url=url, fetch_success=False, error=page.error)
        return self.extractor.extract(page.text, page.final_url, selectors)
