"""Storage interfaces shared by every pipeline component.

The Postgres implementations live in :mod:`.settings`, :mod:`.sources`,
:mod:`.articles` and :mod:`.runs`. Anything else that implements these
methods (for example an in-memory store) can be passed to the schedulers.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from ..config.models import SourceConfig
from ..models import Article, CrawlRun, Source, SourceSelectors

T = TypeVar("T")

# receives the current JSON value (None when absent) and returns
# (value to store or None to leave the row untouched, result for the caller)
JsonUpdate = Callable[[Optional[Any]], Tuple[Optional[Any], T]]


class SettingsStore(ABC):
    """Key/value settings table."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def get_all(self) -> Dict[str, str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite one key."""
        pass

    @abstractmethod
    async def set_default(self, key: str, value: str) -> bool:
        """Insert ``key`` only when it is absent. Returns True if inserted."""
        pass

    @abstractmethod
    async def update_json(self, key: str, update: JsonUpdate) -> T:
        """Read-modify-write one JSON value atomically.

        No other writer, in this process or another, may change ``key``
        between the read handed to ``update`` and the write of its result.
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Round-trip to the backing store."""
        pass

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.get(key)
        if not raw:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, data: Any) -> None:
        await self.set(key, json.dumps(data, default=str))


class SourceStore(ABC):
    """Configured crawl sources."""

    @abstractmethod
    async def list_sources(self, enabled_only: bool = False) -> List[Source]:
        pass

    @abstractmethod
    async def upsert_source(self, source: Source) -> Source:
        """Insert or update by name."""
        pass

    @abstractmethod
    async def set_enabled(self, name: str, enabled: bool) -> bool:
        pass

    @abstractmethod
    async def touch_last_crawl(self, source_id: int, at: datetime) -> None:
        pass

    async def sync_sources(self, sources: List[SourceConfig]) -> Dict[str, int]:
        """
        Sync sources from the seed file into the store.

        Returns:
            Mapping of source name to ID
        """
        source_map = {}
        for config in sources:
            stored = await self.upsert_source(
                Source(
                    name=config.name,
                    url=config.url,
                    feed_url=config.feed_url,
                    enabled=config.enabled,
                    max_articles_per_crawl=config.max_articles_per_crawl,
                    crawl_interval=config.crawl_interval,
                    selectors=SourceSelectors(**config.selectors),
                )
            )
            source_map[stored.name] = stored.id
        return source_map


class ArticleStore(ABC):
    """Draft and published articles."""

    @abstractmethod
    async def find_by_url(self, url: str, normalized_url: str) -> Optional[int]:
        """Id of an article crawled from ``url`` or its normalised form."""
        pass

    @abstractmethod
    async def find_by_fingerprint(self, fingerprint: str) -> Optional[int]:
        pass

    @abstractmethod
    async def recent_articles(self, since: datetime, limit: Optional[int] = None) -> List[Article]:
        """Articles created at or after ``since``, newest first."""
        pass

    @abstractmethod
    async def insert_article(self, article: Article) -> Optional[Article]:
        """Persist ``article``.

        Returns the stored article, or None when another article already holds
        the same fingerprint.
        """
        pass

    @abstractmethod
    async def oldest_drafts(self, limit: int, include_flagged: bool = False) -> List[Article]:
        pass

    @abstractmethod
    async def mark_published(self, article_id: int, at: datetime) -> bool:
        pass

    @abstractmethod
    async def list_published(self) -> List[Article]:
        pass

    @abstractmethod
    async def count_published(self) -> int:
        pass

    @abstractmethod
    async def count_drafts(self) -> int:
        pass

    @abstractmethod
    async def count_published_between(self, start: datetime, end: datetime) -> int:
        pass

    @abstractmethod
    async def count_created_since(self, since: datetime) -> int:
        pass

    @abstractmethod
    async def delete_articles(self, article_ids: List[int]) -> int:
        pass

    @abstractmethod
    async def title_or_slug_exists(self, title: str, slug: str) -> bool:
        pass

    @abstractmethod
    async def titles_for_source_name(self, source_name: str) -> List[str]:
        pass

    @abstractmethod
    async def duplicate_published_titles(self) -> List[str]:
        pass

    @abstractmethod
    async def count_empty_published(self) -> int:
        pass


class RunStore(ABC):
    """Crawl pass statistics."""

    @abstractmethod
    async def create_run(self, started_at: datetime) -> int:
        pass

    @abstractmethod
    async def finish_run(self, run_id: int, status: str, stats: Dict[str, Any], finished_at: datetime) -> None:
        pass

    @abstractmethod
    async def recent_runs(self, limit: int = 10) -> List[CrawlRun]:
        pass
