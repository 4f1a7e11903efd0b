"""Draft publishing, scored eviction and publishing statistics."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import pendulum
from pydantic import BaseModel, Field
from rich.console import Console
from rich.table import Table

from ..config.models import ConfigModel
from ..config.settings import load_settings
from ..db.store import ArticleStore, SettingsStore
from ..logging_utils import log_event
from ..models import Article
from ..resilience.errors import ConfigError
from .eviction import select_evictions

logger = logging.getLogger(__name__)
console = Console()

SCHEDULED_BATCH = 3
MANUAL_BATCH = 5


class PublishOutcome(BaseModel):
    """Result of a publish pass."""

    published: int = 0
    status: str = Field("nothing_to_publish", description="published or nothing_to_publish")
    article_ids: List[int] = Field(default_factory=list)


class EvictionOutcome(BaseModel):
    """Result of an eviction pass."""

    before: int = 0
    deleted: int = 0
    kept: int = 0
    deleted_ids: List[int] = Field(default_factory=list)


class PublishStats(BaseModel):
    """Publishing overview for the operator."""

    today: int = 0
    yesterday: int = 0
    total_published: int = 0
    drafts: int = 0
    is_running: bool = False
    schedule_count: int = 0
    next_runs: List[datetime] = Field(default_factory=list)


class Publisher:
    """Promotes drafts to published and keeps the published set bounded."""

    def __init__(
        self,
        config: ConfigModel,
        articles: ArticleStore,
        settings_store: SettingsStore,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.articles = articles
        self.settings_store = settings_store
        self._now = now or (lambda: pendulum.now("UTC"))
        self._evict_lock = asyncio.Lock()

    def _local_day(self, offset: int = 0) -> pendulum.DateTime:
        local = pendulum.instance(self._now()).in_timezone(self.config.timezone)
        return local.start_of("day").add(days=offset)

    async def _bump_stats(self, key: str, **increments: int) -> None:
        def bump(stats: Optional[Dict[str, int]]) -> Tuple[Dict[str, int], None]:
            stats = dict(stats or {})
            for name, amount in increments.items():
                stats[name] = stats.get(name, 0) + amount
            return stats, None

        await self.settings_store.update_json(key, bump)

    async def _publish(self, drafts: List[Article]) -> List[int]:
        published = []
        for draft in drafts:
            if draft.id is None:
                continue
            if await self.articles.mark_published(draft.id, self._now()):
                published.append(draft.id)
        if published:
            await self._bump_stats(
                f"publish_stats:{self._local_day().to_date_string()}", published=len(published)
            )
        return published

    async def publish_due(self) -> PublishOutcome:
        """Scheduled publish: up to three oldest unflagged drafts, then evict."""
        settings = await load_settings(self.settings_store)
        if not settings.auto_publish:
            logger.info("Auto publish disabled; skipping scheduled publish")
            return PublishOutcome()

        drafts = await self.articles.oldest_drafts(SCHEDULED_BATCH)
        published = await self._publish(drafts)
        if not published:
            logger.info("No drafts to publish")
            return PublishOutcome()

        log_event(logger, logging.INFO, "articles_published", count=len(published), trigger="schedule")
        await self.evict(settings.max_article_count)
        return PublishOutcome(published=len(published), status="published", article_ids=published)

    async def publish_manual(self, limit: int = MANUAL_BATCH) -> PublishOutcome:
        """Publish up to ``limit`` oldest unflagged drafts immediately."""
        drafts = await self.articles.oldest_drafts(limit)
        published = await self._publish(drafts)
        if not published:
            return PublishOutcome()
        log_event(logger, logging.INFO, "articles_published", count=len(published), trigger="manual")
        return PublishOutcome(published=len(published), status="published", article_ids=published)

    async def evict(self, max_count: Optional[int] = None) -> EvictionOutcome:
        """
        Delete the lowest-scored published articles above ``max_count``.

        Raises:
            ConfigError: If ``max_count`` is below 1
        """
        settings = await load_settings(self.settings_store)
        if max_count is None:
            max_count = settings.max_article_count
        if max_count < 1:
            raise ConfigError(f"max_article_count must be at least 1, got {max_count}", component="eviction")

        async with self._evict_lock:
            published = await self.articles.list_published()
            before = len(published)
            if before <= max_count:
                return EvictionOutcome(before=before, kept=before)

            min_views = settings.min_view_count_to_keep or None
            kept, evicted = select_evictions(
                published, max_count, self._now(), self.config.eviction, min_views
            )
            deleted_ids = [a.id for a in evicted if a.id is not None]
            deleted = await self.articles.delete_articles(deleted_ids)

            await self._bump_stats(
                f"cleanup_stats:{self._local_day().to_date_string()}", runs=1, deleted=deleted
            )
            log_event(
                logger, logging.INFO, "eviction_pass",
                before=before, deleted=deleted, kept=len(kept), max_count=max_count,
            )
            return EvictionOutcome(before=before, deleted=deleted, kept=before - deleted, deleted_ids=deleted_ids)

    async def get_stats(
        self,
        is_running: bool = False,
        schedule_count: int = 0,
        next_runs: Optional[List[datetime]] = None,
    ) -> PublishStats:
        today = self._local_day()
        yesterday = self._local_day(-1)
        tomorrow = self._local_day(1)
        return PublishStats(
            today=await self.articles.count_published_between(today, tomorrow),
            yesterday=await self.articles.count_published_between(yesterday, today),
            total_published=await self.articles.count_published(),
            drafts=await self.articles.count_drafts(),
            is_running=is_running,
            schedule_count=schedule_count,
            next_runs=next_runs or [],
        )


def print_stats(stats: PublishStats, console: Console = console) -> None:
    """Print publishing statistics."""
    table = Table(title="Publishing")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Published today", str(stats.today))
    table.add_row("Published yesterday", str(stats.yesterday))
    table.add_row("Total published", str(stats.total_published))
    table.add_row("Drafts", str(stats.drafts))
    table.add_row("Scheduler", "[green]running[/green]" if stats.is_running else "[dim]stopped[/dim]")
    table.add_row("Active triggers", str(stats.schedule_count))
    for run in stats.next_runs[:5]:
        table.add_row("Next run", run.strftime("%Y-%m-%d %H:%M %Z"))
    console.print(table)
