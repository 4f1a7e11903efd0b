"""Candidate article links from a source's index page."""

import re
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..models import Source
from .models import CandidateLink
from .text import host_of

GENERIC_SELECTORS = [
    "article a[href]",
    ".article-list a[href]",
    ".news-list a[href]",
    ".post-list a[href]",
    ".entry-title a[href]",
    ".post-title a[href]",
    "h2 a[href]",
    "h3 a[href]",
    ".title a[href]",
    ".headline a[href]",
]
CATCH_ALL_SELECTOR = "a[href]"

INCLUDE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"/article/",
        r"/news/",
        r"/post/",
        r"/story/",
        r"/content/",
        r"/\d{4}/\d{2}/",
        r"\d{6,}",
        r"\.html?$",
        r"/p/\d+",
        r"\?id=\d+",
    )
]

EXCLUDE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"/tag/",
        r"/tags/",
        r"/category/",
        r"/author/",
        r"/page/\d*",
        r"/search",
        r"/login",
        r"/register",
        r"\.(jpg|jpeg|png|gif|webp|svg|pdf|mp4|mp3|zip)(\?|$)",
        r"#",
        r"^javascript:",
        r"^mailto:",
    )
]

MIN_LENIENT_TEXT = 10


def is_excluded(href: str) -> bool:
    return any(p.search(href) for p in EXCLUDE_PATTERNS)


def looks_like_article(url: str) -> bool:
    return any(p.search(url) for p in INCLUDE_PATTERNS)


class LinkExtractor:
    """Prioritised selector walk over an index page."""

    def selectors_for(self, source: Source) -> List[str]:
        selectors = []
        if source.selectors.link:
            selectors.append(source.selectors.link)
        selectors.extend(GENERIC_SELECTORS)
        selectors.append(CATCH_ALL_SELECTOR)
        return selectors

    def extract(self, html: str, source: Source, base_url: Optional[str] = None) -> List[CandidateLink]:
        """
        Candidate links for ``source``, capped at its per-crawl limit.

        The first selector that yields any same-host article-looking link wins.
        When no link matches an include pattern, links with a long enough
        anchor text are accepted instead.
        """
        soup = BeautifulSoup(html, "html.parser")
        base = base_url or source.url
        host = host_of(source.url)

        lenient: List[CandidateLink] = []
        lenient_seen = set()
        for selector in self.selectors_for(source):
            strict: List[CandidateLink] = []
            seen = set()
            for anchor in soup.select(selector):
                href = (anchor.get("href") or "").strip()
                if not href or is_excluded(href):
                    continue
                url = urljoin(base, href)
                if not url.startswith(("http://", "https://")) or host_of(url) != host:
                    continue
                if url.rstrip("/") == source.url.rstrip("/") or url in seen:
                    continue
                seen.add(url)
                link = CandidateLink(url=url, text=anchor.get_text(" ", strip=True))
                if looks_like_article(url):
                    strict.append(link)
                elif len(link.text) >= MIN_LENIENT_TEXT and url not in lenient_seen:
                    lenient_seen.add(url)
                    lenient.append(link)
            if strict:
                return strict[: source.max_articles_per_crawl]

        return lenient[: source.max_articles_per_crawl]
