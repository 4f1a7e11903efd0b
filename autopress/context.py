"""Scheduler context: the single owner of the running pipeline."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional

import pendulum
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from psycopg_pool import AsyncConnectionPool
from pydantic import BaseModel, Field

from .config.models import ConfigModel
from .config.settings import PipelineSettings, load_settings
from .db import ArticleStorage, RunManager, SettingsManager, SourceManager
from .db.store import ArticleStore, RunStore, SettingsStore, SourceStore
from .dispatch import DispatchScheduler, ProviderRegistry, RateLedger, default_registry
from .ingestion import PageFetcher
from .pipeline.notifier import CrawlNotifier
from .pipeline.orchestrator import CrawlOrchestrator
from .publishing import Publisher, PublishStats, SEOGenerator, TimetableRegistry
from .resilience import ErrorHandler, HealthChecker

logger = logging.getLogger(__name__)

SCHEDULE_RECOMPUTE_INTERVAL = timedelta(hours=1)
WATCH_INTERVAL_MINUTES = 1

# component name -> timetable groups
COMPONENT_GROUPS: Dict[str, List[str]] = {
    "crawl": ["crawl"],
    "seo": ["seo", "seo-interval"],
    "publish": ["publish"],
    "cleanup": ["cleanup"],
    "health": ["health"],
    "watcher": ["settings-watch"],
}


class ContextStatus(BaseModel):
    """Snapshot of the scheduler state."""

    running: bool = False
    state: str = Field("stopped", description="running, stopped or unknown")
    jobs: List[str] = Field(default_factory=list)
    trigger_count: int = 0
    started_at: Optional[datetime] = None
    next_runs: List[datetime] = Field(default_factory=list)


class SchedulerContext:
    """
    Owns the stores, the schedulers and the timer jobs of one process.

    ``start`` and ``stop`` are idempotent. Each start builds a fresh
    AsyncIOScheduler, so a stop followed by a start registers the same job
    set as a first start.
    """

    def __init__(
        self,
        config: ConfigModel,
        settings_store: SettingsStore,
        sources: SourceStore,
        articles: ArticleStore,
        runs: RunStore,
        registry: Optional[ProviderRegistry] = None,
        fetcher: Optional[PageFetcher] = None,
        notifier: Optional[CrawlNotifier] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.settings_store = settings_store
        self.sources = sources
        self.articles = articles
        self.runs = runs
        self._now = now or (lambda: pendulum.now("UTC"))

        self.ledger = RateLedger(settings_store, config.timezone, now=self._now)
        self.dispatch = DispatchScheduler(
            registry or default_registry(),
            self.ledger,
            settings_store,
            config.dispatch,
            sleep=sleep,
            now=self._now,
        )
        self.orchestrator = CrawlOrchestrator(
            config, sources, articles, runs, settings_store, self.dispatch,
            fetcher=fetcher, notifier=notifier, sleep=sleep, now=self._now,
        )
        self.publisher = Publisher(config, articles, settings_store, now=self._now)
        self.seo = SEOGenerator(config, articles, settings_store, self.dispatch, sleep=sleep, now=self._now)
        self.error_handler = ErrorHandler(
            settings_store, config.resilience, restart=self.restart, sleep=sleep, now=self._now
        )
        self.health = HealthChecker(
            settings_store,
            articles,
            self.error_handler,
            is_running=lambda: self.running,
            providers=self.dispatch.registry.names,
            now=self._now,
        )

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.timetable: Optional[TimetableRegistry] = None
        self.started_at: Optional[datetime] = None
        self._last_recompute: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_pool(cls, config: ConfigModel, pool: AsyncConnectionPool, **kwargs) -> "SchedulerContext":
        """Context backed by the Postgres stores."""
        return cls(
            config,
            SettingsManager(pool),
            SourceManager(pool),
            ArticleStorage(pool),
            RunManager(pool),
            **kwargs,
        )

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    async def _crawl_job(self) -> None:
        await self.orchestrator.perform_crawl()

    async def _seo_job(self) -> None:
        await self.seo.generate_batch()

    async def _cleanup_job(self) -> None:
        await self.publisher.evict()

    async def _health_job(self) -> None:
        await self.health.perform_health_check()

    async def _recompute_if_stale(self) -> None:
        now = self._now()
        if self._last_recompute is None or now - self._last_recompute >= SCHEDULE_RECOMPUTE_INTERVAL:
            await self.dispatch.compute_schedule()
            self._last_recompute = now

    async def sync_jobs(self, settings: Optional[PipelineSettings] = None) -> None:
        """Bring the registered jobs in line with the current settings.

        Only groups whose times or interval changed are replaced.
        """
        timetable = self.timetable
        if timetable is None:
            return
        if settings is None:
            settings = await load_settings(self.settings_store)
        await self._recompute_if_stale()
        schedule = self.dispatch.schedule
        guard = self.error_handler.guard

        if settings.crawl_enabled:
            interval = settings.crawl_interval
            if schedule is not None:
                interval = max(interval, schedule.crawl_interval)
            await timetable.set_interval("crawl", interval, guard("crawl", self._crawl_job))
        else:
            await timetable.remove("crawl")

        await timetable.set_times("publish", settings.publish_times, guard("publish", self.publisher.publish_due))

        if settings.seo_enabled and settings.seo_times:
            await timetable.remove("seo-interval")
            await timetable.set_times("seo", settings.seo_times, guard("seo", self._seo_job))
        elif settings.seo_enabled:
            await timetable.remove("seo")
            interval = settings.seo_interval_hours * 60
            if schedule is not None:
                interval = max(interval, schedule.seo_interval)
            await timetable.set_interval("seo-interval", interval, guard("seo", self._seo_job))
        else:
            await timetable.remove("seo")
            await timetable.remove("seo-interval")

        await timetable.set_interval(
            "cleanup", settings.cleanup_interval_hours * 60, guard("cleanup", self._cleanup_job)
        )
        await timetable.set_interval(
            "health", self.config.resilience.health_interval_minutes, guard("health", self._health_job)
        )
        await timetable.set_interval("settings-watch", WATCH_INTERVAL_MINUTES, guard("watcher", self.sync_jobs))

    async def start(self) -> bool:
        """Start every timer. Returns False if already running."""
        async with self._lock:
            if self.running:
                logger.info("Scheduler already running")
                return False

            scheduler = AsyncIOScheduler(timezone=self.config.timezone)
            self.timetable = TimetableRegistry(scheduler, self.config.timezone)
            self.scheduler = scheduler
            if await self.dispatch.load_schedule() is None:
                self._last_recompute = None
            else:
                self._last_recompute = self._now()
            try:
                await self.sync_jobs()
            except Exception:
                self.scheduler = None
                self.timetable = None
                raise
            scheduler.start()
            self.started_at = self._now()
            logger.info("Scheduler started with %d jobs", self.timetable.trigger_count)
            return True

    async def stop(self) -> bool:
        """Stop every timer. Safe to call when not running."""
        async with self._lock:
            scheduler = self.scheduler
            self.scheduler = None
            self.timetable = None
            self.started_at = None
            if scheduler is None:
                return False
            if scheduler.running:
                scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
            return True

    async def restart(self, component: str) -> bool:
        """Re-register the jobs of one component."""
        groups = COMPONENT_GROUPS.get(component)
        timetable = self.timetable
        if not groups or timetable is None:
            logger.debug("Nothing to restart for %s", component)
            return False
        for group in groups:
            await timetable.remove(group)
        await self.sync_jobs()
        logger.info("Restarted %s", component)
        return True

    def status(self) -> ContextStatus:
        try:
            timetable = self.timetable
            if not self.running or timetable is None:
                return ContextStatus()
            return ContextStatus(
                running=True,
                state="running",
                jobs=timetable.jobs(),
                trigger_count=timetable.trigger_count,
                started_at=self.started_at,
                next_runs=timetable.next_runs(5),
            )
        except Exception as e:
            logger.warning("Status probe failed: %s", e)
            return ContextStatus(running=False, state="unknown")

    async def stats(self) -> PublishStats:
        status = self.status()
        return await self.publisher.get_stats(
            is_running=status.running,
            schedule_count=status.trigger_count,
            next_runs=status.next_runs,
        )
