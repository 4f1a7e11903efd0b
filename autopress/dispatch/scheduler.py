"""AI dispatch scheduler.

Picks a provider that can legally accept a call, invokes it with retries,
records the outcome in the rate ledger, and turns the remaining headroom into
recommended polling intervals for the crawl and SEO timers.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Optional

import pendulum
from pydantic import BaseModel

from ..config.loader import env_api_key
from ..config.models import DispatchConfig
from ..config.settings import DEFAULT_LANGUAGE
from ..db.store import SettingsStore
from ..logging_utils import log_event
from ..models import SCHEDULE_CONFIG_KEY, ProviderUsageRecord, ScheduleConfig
from ..resilience.errors import ProviderError
from ..resilience.retry import retry_async
from .ledger import QuotaRemaining, RateLedger
from .prompts import rewrite_prompt, title_prompt
from .providers import AIProvider
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


class GenerationResult(BaseModel):
    """Text produced by one provider."""

    text: str
    provider: str


class RewriteResult(BaseModel):
    """Outcome of rewriting one article."""

    title: str
    content: str
    provider: Optional[str] = None
    rewritten: bool = False


class ProviderUsageReport(BaseModel):
    """Usage of one provider for display."""

    provider: str
    priority: int
    has_key: bool
    requests: int
    successes: int
    errors: int
    remaining: QuotaRemaining
    exhausted: bool

    @property
    def success_rate(self) -> float:
        finished = self.successes + self.errors
        return self.successes / finished if finished else 0.0


class DispatchScheduler:
    """Rate-limited, priority-ordered access to the AI providers."""

    def __init__(
        self,
        registry: ProviderRegistry,
        ledger: RateLedger,
        settings_store: SettingsStore,
        config: Optional[DispatchConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.settings_store = settings_store
        self.config = config or DispatchConfig()
        self.sleep = sleep
        self._now = now or (lambda: pendulum.now("UTC"))
        self.schedule: Optional[ScheduleConfig] = None
        self._schedule_lock = asyncio.Lock()

    async def api_key(self, provider: str) -> Optional[str]:
        """Key from the settings store, falling back to the environment."""
        value = await self.settings_store.get(f"{provider}_api_key")
        if value and value.strip():
            return value.strip()
        return env_api_key(provider)

    async def can_dispatch(self, provider: str) -> bool:
        """True when every quota window of ``provider`` has room."""
        found = self.registry.get(provider)
        if found is None:
            return False
        return await self.ledger.can_dispatch(found.spec)

    async def select_provider(self, candidates: Optional[Iterable[str]] = None) -> Optional[AIProvider]:
        """First provider by priority that has a key and free quota."""
        for provider in self.registry.ordered(candidates):
            if not await self.api_key(provider.name):
                continue
            if await self.ledger.can_dispatch(provider.spec):
                return provider
        return None

    async def record_outcome(self, provider: str, success: bool) -> ProviderUsageRecord:
        """Count a finished call; recompute the schedule when errors pile up."""
        record = await self.ledger.record(provider, success)
        if (
            not success
            and record.requests >= self.config.min_calls_for_error_rate
            and record.error_rate > self.config.error_rate_threshold
        ):
            log_event(
                logger, logging.WARNING, "provider_error_rate",
                provider=provider, error_rate=round(record.error_rate, 3), requests=record.requests,
            )
            await self.compute_schedule()
        return record

    async def _call(
        self,
        provider: AIProvider,
        api_key: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        timeout: float,
    ) -> str:
        if not await self.ledger.reserve(provider.spec):
            raise ProviderError("Local quota window is spent", provider=provider.name, quota_exceeded=True)
        try:
            text = await asyncio.wait_for(
                provider.dispatch(prompt, api_key, max_tokens=max_tokens, temperature=temperature, timeout=timeout),
                timeout=timeout,
            )
        except ProviderError as e:
            await self.record_outcome(provider.name, False)
            if e.quota_exceeded:
                await self.ledger.mark_exhausted(provider.name)
            raise
        except asyncio.TimeoutError as e:
            await self.record_outcome(provider.name, False)
            raise ProviderError("Request timed out", provider=provider.name) from e
        except asyncio.CancelledError:
            # the caller gave up; the reserved slot still needs an outcome
            await self.record_outcome(provider.name, False)
            raise
        await self.record_outcome(provider.name, True)
        return text

    async def generate(
        self,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: Optional[float] = None,
        candidates: Optional[Iterable[str]] = None,
    ) -> Optional[GenerationResult]:
        """Try providers in priority order; None when every provider fails."""
        timeout = timeout or self.config.rewrite_timeout
        tried = 0
        for provider in self.registry.ordered(candidates):
            api_key = await self.api_key(provider.name)
            if not api_key or not await self.ledger.can_dispatch(provider.spec):
                continue
            if tried:
                await self.sleep(self.config.provider_gap)
            tried += 1
            try:
                text = await retry_async(
                    lambda: self._call(provider, api_key, prompt, max_tokens, temperature, timeout),
                    max_retries=self.config.max_retries,
                    base_delay=self.config.base_delay,
                    max_delay=self.config.max_delay,
                    retry_on=(ProviderError,),
                    should_retry=lambda e: isinstance(e, ProviderError) and e.retryable,
                    sleep=self.sleep,
                    label=f"provider {provider.name}",
                )
            except ProviderError as e:
                logger.warning("Provider %s failed: %s", provider.name, e.message)
                continue
            return GenerationResult(text=text, provider=provider.name)

        log_event(logger, logging.WARNING, "providers_unavailable", tried=tried)
        return None

    async def _safe_generate(self, prompt: str, max_tokens: int, timeout: float) -> Optional[GenerationResult]:
        try:
            return await self.generate(prompt, max_tokens=max_tokens, timeout=timeout)
        except Exception:
            logger.exception("Rewrite failed; keeping the original text")
            return None

    async def rewrite(
        self, content: str, keywords: Optional[List[str]] = None, language: str = DEFAULT_LANGUAGE
    ) -> str:
        """Rewritten body, or ``content`` unchanged when no provider succeeds."""
        if not content or not content.strip():
            return content
        result = await self._safe_generate(
            rewrite_prompt(content, keywords or [], language), 2000, self.config.rewrite_timeout
        )
        return result.text if result else content

    async def rewrite_title(
        self, title: str, keywords: Optional[List[str]] = None, language: str = DEFAULT_LANGUAGE
    ) -> str:
        """Rewritten title, or ``title`` unchanged when no provider succeeds."""
        if not title or not title.strip():
            return title
        result = await self._safe_generate(
            title_prompt(title, keywords or [], language), 100, self.config.title_timeout
        )
        if not result:
            return title
        cleaned = result.text.strip().splitlines()[0].strip().strip('"').strip()
        return cleaned or title

    async def rewrite_article(
        self,
        title: str,
        content: str,
        keywords: Optional[List[str]] = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> RewriteResult:
        """Rewrite title and body; each falls back to its original on failure."""
        new_title = await self.rewrite_title(title, keywords, language)
        body = await self._safe_generate(
            rewrite_prompt(content, keywords or [], language), 2000, self.config.rewrite_timeout
        ) if content and content.strip() else None
        return RewriteResult(
            title=new_title,
            content=body.text if body else content,
            provider=body.provider if body else None,
            rewritten=body is not None or new_title != title,
        )

    async def compute_schedule(self) -> ScheduleConfig:
        """Derive crawl/SEO cadence from the best provider's headroom."""
        async with self._schedule_lock:
            cfg = self.config
            usable = []
            total_daily = 0
            for provider in self.registry.ordered():
                if not await self.api_key(provider.name):
                    continue
                remaining = await self.ledger.remaining(provider.spec)
                total_daily += remaining.day
                if remaining.available:
                    usable.append((provider, remaining))

            if not usable:
                schedule = ScheduleConfig(
                    crawl_interval=cfg.default_crawl_interval,
                    seo_interval=cfg.default_seo_interval,
                    seo_count=1,
                    max_article_count=10,
                    cleanup_interval=1440,
                    last_optimized=self._now(),
                )
            else:
                best, remaining = max(usable, key=lambda item: item[1].day / item[0].spec.priority)
                backups = [p.name for p, _ in usable if p is not best]
                schedule = self._derive(best.name, backups, remaining, total_daily)

            self.schedule = schedule
            await self.settings_store.set_json(SCHEDULE_CONFIG_KEY, schedule.model_dump(mode="json"))
            log_event(
                logger, logging.INFO, "schedule_computed",
                crawl_interval=schedule.crawl_interval,
                seo_interval=schedule.seo_interval,
                best_provider=schedule.best_provider,
                backups=len(schedule.backup_providers),
            )
            return schedule

    def _derive(
        self,
        best: str,
        backups: List[str],
        remaining: QuotaRemaining,
        total_daily: int,
    ) -> ScheduleConfig:
        cfg = self.config
        safe_hourly = math.floor(remaining.hour * cfg.safety_margin)
        safe_daily = math.floor(remaining.day * cfg.safety_margin)

        max_crawls = safe_hourly // cfg.calls_per_crawl
        max_seos = safe_hourly // cfg.calls_per_seo
        crawl = math.ceil(60 / max_crawls) if max_crawls > 0 else cfg.default_crawl_interval
        seo = math.ceil(60 / max_seos) if max_seos > 0 else cfg.default_seo_interval

        if len(backups) > 2:
            crawl = math.ceil(crawl * cfg.backup_speedup)
            seo = math.ceil(seo * cfg.backup_speedup)

        crawl = max(crawl, cfg.crawl_floor)
        seo = max(seo, cfg.seo_floor)

        if total_daily < cfg.low_quota_threshold:
            crawl = max(crawl, cfg.low_quota_crawl_interval)
            seo = max(seo, cfg.low_quota_seo_interval)

        crawl = min(crawl, max(cfg.crawl_ceiling, cfg.crawl_floor))
        seo = min(seo, max(cfg.seo_ceiling, cfg.seo_floor))

        return ScheduleConfig(
            crawl_interval=crawl,
            seo_interval=seo,
            seo_count=min(max(safe_hourly // 10, 1), 3),
            max_article_count=min(max(safe_daily // 5, 10), 100),
            cleanup_interval=1440,
            best_provider=best,
            backup_providers=backups,
            last_optimized=self._now(),
        )

    async def load_schedule(self) -> Optional[ScheduleConfig]:
        """Last persisted schedule, if any."""
        data = await self.settings_store.get_json(SCHEDULE_CONFIG_KEY)
        if data:
            self.schedule = ScheduleConfig(**data)
        return self.schedule

    async def usage_report(self) -> List[ProviderUsageReport]:
        reports = []
        for provider in self.registry.ordered():
            record = await self.ledger.get(provider.name)
            reports.append(
                ProviderUsageReport(
                    provider=provider.name,
                    priority=provider.spec.priority,
                    has_key=bool(await self.api_key(provider.name)),
                    requests=record.requests,
                    successes=record.successes,
                    errors=record.errors,
                    remaining=await self.ledger.remaining(provider.spec),
                    exhausted=record.exhausted,
                )
            )
        return reports
