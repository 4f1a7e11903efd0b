"""RSS feed fetcher for sources that publish a feed."""

import calendar
from datetime import datetime, timezone
from typing import List, Optional

import feedparser

from ..models import Source
from .article_fetcher import PageFetcher
from .links import is_excluded
from .models import CandidateLink, FeedItem, FeedResult
from .text import host_of


def _entry_date(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    # feedparser normalises parsed times to UTC
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


class RSSFetcher:
    """Fetch and parse RSS feeds."""

    def __init__(self, fetcher: PageFetcher) -> None:
        """Initialize RSS fetcher."""
        self.fetcher = fetcher

    async def fetch_feed(self, source: Source) -> FeedResult:
        """Fetch and parse a single RSS feed."""
        feed_url = source.feed_url or source.url
        page = await self.fetcher.fetch(feed_url)
        if not page.success:
            return FeedResult(
                source_name=source.name,
                source_url=feed_url,
                success=False,
                error=page.error,
            )

        feed = feedparser.parse(page.text)
        if feed.bozo and not feed.entries:
            return FeedResult(
                source_name=source.name,
                source_url=feed_url,
                success=False,
                error=f"Invalid RSS feed: {feed.bozo_exception}",
            )

        items = []
        for entry in feed.entries:
            link = entry.get("link")
            if not link:
                continue
            items.append(
                FeedItem(
                    title=entry.get("title", ""),
                    link=link,
                    published=_entry_date(entry),
                    description=entry.get("summary") or entry.get("description"),
                    source_name=source.name,
                )
            )

        return FeedResult(
            source_name=source.name,
            source_url=feed_url,
            success=True,
            items=items,
        )

    def candidate_links(self, result: FeedResult, source: Source) -> List[CandidateLink]:
        """Same-host feed links, newest first, capped at the source limit."""
        host = host_of(source.url)
        items = sorted(
            result.items,
            key=lambda item: item.published or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        links = []
        seen = set()
        for item in items:
            if item.link in seen or is_excluded(item.link):
                continue
            link_host = host_of(item.link)
            if host and not (link_host == host or link_host.endswith("." + host) or host.endswith("." + link_host)):
                continue
            seen.add(item.link)
            links.append(CandidateLink(url=item.link, text=item.title))
        return links[: source.max_articles_per_crawl]
