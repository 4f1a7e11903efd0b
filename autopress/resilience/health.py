"""Periodic system health checks."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import pendulum
from pydantic import BaseModel, Field
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config.settings import PROVIDER_NAMES, PipelineSettings, load_settings, validate_settings
from ..db.store import ArticleStore, SettingsStore
from ..logging_utils import log_event
from .errors import ServiceError
from .handler import ErrorHandler

logger = logging.getLogger(__name__)
console = Console()

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
DISABLED = "disabled"
UNKNOWN = "unknown"

CLEANUP_TOLERANCE = 1.2


class HealthReport(BaseModel):
    """Result of one health check."""

    healthy: bool = True
    services: Dict[str, str] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    checked_at: datetime


class HealthChecker:
    """Probes the store, the automated services and the article data.

    A probe that raises marks its service ``unknown`` instead of failing the
    whole check.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        articles: ArticleStore,
        error_handler: Optional[ErrorHandler] = None,
        is_running: Callable[[], bool] = lambda: False,
        providers: Optional[List[str]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings_store = settings_store
        self.articles = articles
        self.error_handler = error_handler
        self.is_running = is_running
        self.providers = providers or list(PROVIDER_NAMES)
        self._now = now or (lambda: pendulum.now("UTC"))
        self.last_report: Optional[HealthReport] = None

    async def _check_database(self, errors: List[str]) -> str:
        if await self.settings_store.ping():
            return HEALTHY
        errors.append("Database did not answer")
        return UNHEALTHY

    async def _check_crawler(self, settings: PipelineSettings, errors: List[str]) -> str:
        if not settings.crawl_enabled:
            return DISABLED
        if await self.articles.count_created_since(self._now() - timedelta(hours=24)) > 0:
            return HEALTHY
        errors.append("Crawler produced no articles in the last 24 hours")
        return UNHEALTHY

    async def _check_seo(self, settings: PipelineSettings, errors: List[str]) -> str:
        if not settings.seo_enabled:
            return DISABLED
        if any(settings.api_key(p) for p in self.providers):
            return HEALTHY
        errors.append("SEO generation is enabled but no provider API key is configured")
        return UNHEALTHY

    async def _check_cleanup(self, settings: PipelineSettings, errors: List[str]) -> str:
        published = await self.articles.count_published()
        if published <= settings.max_article_count * CLEANUP_TOLERANCE:
            return HEALTHY
        errors.append(f"Published articles over limit: {published}/{settings.max_article_count}")
        return UNHEALTHY

    async def _check_articles(self, errors: List[str]) -> None:
        duplicates = await self.articles.duplicate_published_titles()
        if duplicates:
            errors.append(f"{len(duplicates)} published titles appear more than once")
        empty = await self.articles.count_empty_published()
        if empty:
            errors.append(f"{empty} published articles have an empty title or body")

    async def perform_health_check(self) -> HealthReport:
        """Run every probe and push an unhealthy result into the error handler."""
        errors: List[str] = []
        services: Dict[str, str] = {}

        try:
            services["database"] = await self._check_database(errors)
        except Exception as e:
            services["database"] = UNKNOWN
            errors.append(f"Database check failed: {e}")

        settings: Optional[PipelineSettings] = None
        try:
            settings = await load_settings(self.settings_store)
        except Exception as e:
            errors.append(f"Settings could not be loaded: {e}")

        probes = {
            "crawler": self._check_crawler,
            "seo_generator": self._check_seo,
            "cleanup": self._check_cleanup,
        }
        for name, probe in probes.items():
            if settings is None:
                services[name] = UNKNOWN
                continue
            try:
                services[name] = await probe(settings, errors)
            except Exception as e:
                services[name] = UNKNOWN
                errors.append(f"{name} check failed: {e}")

        try:
            report = await validate_settings(self.settings_store)
            errors.extend(report.errors)
        except Exception as e:
            errors.append(f"Settings validation failed: {e}")

        try:
            await self._check_articles(errors)
        except Exception as e:
            errors.append(f"Article data check failed: {e}")

        if self.error_handler is not None:
            errors.extend(self.error_handler.health().issues)

        healthy = not errors and all(s in (HEALTHY, DISABLED) for s in services.values())
        result = HealthReport(healthy=healthy, services=services, errors=errors, checked_at=self._now())
        self.last_report = result

        if healthy:
            logger.info("Health check passed")
        else:
            log_event(logger, logging.WARNING, "health_check_failed", services=services, errors=errors)
            if self.error_handler is not None:
                self.error_handler.record(
                    ServiceError("Health check failed: " + "; ".join(errors[:5]), component="health"),
                )
        return result

    async def quick_status(self) -> Dict[str, object]:
        """Database reachability and the scheduler running flag only."""
        try:
            database = HEALTHY if await self.settings_store.ping() else UNHEALTHY
        except Exception as e:
            logger.warning("Quick status database probe failed: %s", e)
            database = UNKNOWN
        try:
            running = self.is_running()
        except Exception as e:
            logger.warning("Quick status running probe failed: %s", e)
            running = False
        return {"database": database, "running": running, "checked_at": self._now()}


def print_health_report(report: HealthReport, console: Console = console) -> None:
    """Print a health report."""
    table = Table(title="System Health")
    table.add_column("Service", style="cyan")
    table.add_column("Status", style="bold")
    colours = {HEALTHY: "green", DISABLED: "dim", UNHEALTHY: "red", UNKNOWN: "yellow"}
    for name, status in report.services.items():
        table.add_row(name, f"[{colours.get(status, 'white')}]{status}[/]")
    console.print(table)

    if report.healthy:
        console.print(Panel("[green]System healthy[/green]", style="green"))
    else:
        console.print(Panel(
            "\n".join(f"• {error}" for error in report.errors) or "One or more services unhealthy",
            title="Problems",
            style="red",
        ))
