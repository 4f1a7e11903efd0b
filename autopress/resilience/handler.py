"""Error queue, classified recovery and safe execution of scheduled work."""

import asyncio
import logging
from collections import Counter, deque
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple, TypeVar

import pendulum
from pydantic import BaseModel, Field

from ..config.models import ResilienceConfig
from ..config.settings import auto_repair_settings, validate_settings
from ..db.store import SettingsStore
from ..logging_utils import log_event
from .errors import ErrorType, PipelineError, StoreError, classify

logger = logging.getLogger(__name__)

T = TypeVar("T")

RestartHook = Callable[[str], Awaitable[Any]]


class ErrorEvent(BaseModel):
    """One classified error."""

    error_type: ErrorType
    component: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class HandlerHealth(BaseModel):
    """Error-rate based health."""

    healthy: bool = True
    issues: List[str] = Field(default_factory=list)


class ErrorHandler:
    """
    Records errors in a bounded, day-long window and reacts by type.

    Database errors trigger a reconnect probe, configuration errors trigger
    an auto-repair of missing settings, and service errors restart the
    failing component through ``restart``.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        config: Optional[ResilienceConfig] = None,
        restart: Optional[RestartHook] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings_store = settings_store
        self.config = config or ResilienceConfig()
        self.restart = restart
        self.sleep = sleep
        self._now = now or (lambda: pendulum.now("UTC"))
        self.events: Deque[ErrorEvent] = deque(maxlen=self.config.queue_size)
        self.database_down = False

    def _prune(self) -> None:
        cutoff = self._now() - timedelta(days=1)
        while self.events and self.events[0].timestamp < cutoff:
            self.events.popleft()

    def record(self, error: BaseException, component: Optional[str] = None) -> ErrorEvent:
        """Queue ``error`` without reacting to it."""
        if isinstance(error, PipelineError):
            event = ErrorEvent(
                error_type=error.error_type,
                component=component or error.component,
                message=error.message,
                details=error.details,
                timestamp=self._now(),
            )
        else:
            event = ErrorEvent(
                error_type=classify(error),
                component=component or "unknown",
                message=str(error) or type(error).__name__,
                details={"exception": type(error).__name__},
                timestamp=self._now(),
            )
        self.events.append(event)
        self._prune()
        return event

    async def handle(self, error: BaseException, component: Optional[str] = None) -> ErrorEvent:
        """Queue ``error`` and run the recovery for its type."""
        event = self.record(error, component)
        logger.error("[%s] %s: %s", event.error_type.value, event.component, event.message)
        try:
            if event.error_type == ErrorType.DATABASE:
                await self.reconnect()
            elif event.error_type == ErrorType.CONFIG:
                await self.repair_config()
            elif event.error_type == ErrorType.SERVICE:
                if self.restart is not None:
                    await self.restart(event.component)
            elif event.error_type == ErrorType.API:
                api_errors = self._count(timedelta(hours=1), ErrorType.API)
                if api_errors > self.config.max_errors_per_hour:
                    logger.warning("%d provider errors in the last hour; check network and API keys", api_errors)
        except Exception:
            # a failed recovery is logged, never re-handled
            logger.exception("Recovery for %s failed", event.component)
        return event

    async def reconnect(self) -> bool:
        """Probe the store until it answers or attempts run out."""
        attempts = self.config.reconnect_attempts
        for attempt in range(1, attempts + 1):
            try:
                if await self.settings_store.ping():
                    if self.database_down:
                        logger.info("Database reachable again")
                    self.database_down = False
                    return True
            except StoreError as e:
                logger.warning("Reconnect attempt %d/%d failed: %s", attempt, attempts, e.message)
            if attempt < attempts:
                await self.sleep(self.config.reconnect_delay)
        self.database_down = True
        log_event(logger, logging.CRITICAL, "database_unreachable", attempts=attempts)
        return False

    async def repair_config(self) -> List[str]:
        repaired = await auto_repair_settings(self.settings_store)
        report = await validate_settings(self.settings_store)
        if not report.valid:
            logger.error("Settings still invalid after repair: %s", "; ".join(report.errors))
        return repaired

    async def safe_execute(
        self,
        func: Callable[[], Awaitable[T]],
        component: str,
        retries: int = 3,
        delay: float = 1.0,
    ) -> Tuple[Optional[T], Optional[BaseException]]:
        """
        Run ``func`` with incremental back-off.

        Returns:
            (value, None) on success, or (None, last error) after ``retries`` failures
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, retries + 1):
            try:
                return await func(), None
            except Exception as e:
                last_error = e
                self.record(e, component)
                logger.warning("%s failed (attempt %d/%d): %s", component, attempt, retries, e)
                if attempt < retries:
                    await self.sleep(delay * attempt)
        logger.error("%s failed after %d attempts", component, retries)
        return None, last_error

    def guard(self, component: str, func: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[None]]:
        """Wrap a scheduled job so its failures are handled instead of raised."""

        async def guarded() -> None:
            try:
                await func()
            except Exception as e:
                logger.exception("Scheduled job %s failed", component)
                await self.handle(e, component)

        guarded.__name__ = f"guarded_{component}"
        return guarded

    def _window(self, span: timedelta) -> List[ErrorEvent]:
        cutoff = self._now() - span
        return [e for e in self.events if e.timestamp >= cutoff]

    def _count(self, span: timedelta, error_type: Optional[ErrorType] = None) -> int:
        return sum(1 for e in self._window(span) if error_type is None or e.error_type == error_type)

    def error_stats(self) -> Dict[str, Dict[str, Any]]:
        """Counts by type and component for the last hour and day."""
        stats = {}
        for label, span in (("hourly", timedelta(hours=1)), ("daily", timedelta(days=1))):
            events = self._window(span)
            stats[label] = {
                "total": len(events),
                "by_type": dict(Counter(e.error_type.value for e in events)),
                "by_component": dict(Counter(e.component for e in events)),
            }
        return stats

    def health(self) -> HandlerHealth:
        cfg = self.config
        issues = []
        hourly = self._count(timedelta(hours=1))
        daily = self._count(timedelta(days=1))
        db_hourly = self._count(timedelta(hours=1), ErrorType.DATABASE)
        config_hourly = self._count(timedelta(hours=1), ErrorType.CONFIG)
        if hourly > cfg.max_errors_per_hour:
            issues.append(f"{hourly} errors in the last hour")
        if daily > cfg.max_errors_per_day:
            issues.append(f"{daily} errors in the last day")
        if db_hourly > cfg.max_db_errors_per_hour:
            issues.append(f"{db_hourly} database errors in the last hour")
        if config_hourly > cfg.max_config_errors_per_hour:
            issues.append(f"{config_hourly} configuration errors in the last hour")
        if self.database_down:
            issues.append("database unreachable after reconnect attempts")
        return HandlerHealth(healthy=not issues, issues=issues)
