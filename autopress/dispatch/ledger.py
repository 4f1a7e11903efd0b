"""Provider rate ledger.

Counts calls per provider in the current day, hour and minute and persists the
counts in the settings store under ``usage:{provider}:{YYYY-MM-DD}``. The store
is the only copy of the counts: every change is a single atomic
read-modify-write through :meth:`SettingsStore.update_json`, and a call slot is
reserved before the provider is called, so dispatchers sharing a store (in one
process or several) can never exceed a window's ceiling.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

import pendulum
from pydantic import BaseModel

from ..db.store import SettingsStore
from ..models import ProviderUsageRecord, usage_key
from .providers import ProviderSpec

logger = logging.getLogger(__name__)


class QuotaRemaining(BaseModel):
    """Calls left in each window."""

    day: int
    hour: int
    minute: int

    @property
    def available(self) -> bool:
        return self.day > 0 and self.hour > 0 and self.minute > 0


def _as_record(data: Optional[Any], provider: str, day: str) -> ProviderUsageRecord:
    if data:
        return ProviderUsageRecord(**data)
    return ProviderUsageRecord(provider=provider, day=day)


class RateLedger:
    """Per-provider usage counters backed by the settings store."""

    def __init__(
        self,
        store: SettingsStore,
        timezone: str = "UTC",
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.timezone = timezone
        self._now = now or (lambda: pendulum.now(timezone))

    def _buckets(self) -> Tuple[str, str, str, datetime]:
        now = pendulum.instance(self._now()).in_timezone(self.timezone)
        return (
            now.strftime("%Y-%m-%d"),
            now.strftime("%Y-%m-%dT%H"),
            now.strftime("%Y-%m-%dT%H:%M"),
            now,
        )

    async def _load(self, provider: str, day: str) -> ProviderUsageRecord:
        return _as_record(await self.store.get_json(usage_key(provider, day)), provider, day)

    async def get(self, provider: str) -> ProviderUsageRecord:
        """Today's record for ``provider``."""
        return await self._load(provider, self._buckets()[0])

    async def remaining(self, spec: ProviderSpec) -> QuotaRemaining:
        day, hour, minute, _ = self._buckets()
        record = await self._load(spec.name, day)
        return self._remaining(spec, record, hour, minute)

    @staticmethod
    def _remaining(spec: ProviderSpec, record: ProviderUsageRecord, hour: str, minute: str) -> QuotaRemaining:
        if record.exhausted:
            return QuotaRemaining(day=0, hour=0, minute=0)
        return QuotaRemaining(
            day=max(spec.daily_limit - record.requests, 0),
            hour=max(spec.hourly_limit - record.used_in_hour(hour), 0),
            minute=max(spec.minute_limit - record.used_in_minute(minute), 0),
        )

    async def can_dispatch(self, spec: ProviderSpec) -> bool:
        return (await self.remaining(spec)).available

    async def reserve(self, spec: ProviderSpec) -> bool:
        """Count one call against every window, if all windows have room."""
        day, hour, minute, now = self._buckets()

        def take_slot(data: Optional[Any]) -> Tuple[Optional[Any], bool]:
            record = _as_record(data, spec.name, day)
            if not self._remaining(spec, record, hour, minute).available:
                return None, False
            record.requests += 1
            record.hour_count = record.used_in_hour(hour) + 1
            record.hour_bucket = hour
            record.minute_count = record.used_in_minute(minute) + 1
            record.minute_bucket = minute
            record.updated_at = now
            return record.model_dump(mode="json"), True

        return await self.store.update_json(usage_key(spec.name, day), take_slot)

    async def record(self, provider: str, success: bool) -> ProviderUsageRecord:
        """Record the outcome of a reserved call."""
        day, _, _, now = self._buckets()

        def count(data: Optional[Any]) -> Tuple[Optional[Any], ProviderUsageRecord]:
            record = _as_record(data, provider, day)
            if success:
                record.successes += 1
            else:
                record.errors += 1
            record.updated_at = now
            return record.model_dump(mode="json"), record

        return await self.store.update_json(usage_key(provider, day), count)

    async def mark_exhausted(self, provider: str) -> None:
        """Treat ``provider`` as spent until the day rolls over."""
        day, _, _, now = self._buckets()

        def exhaust(data: Optional[Any]) -> Tuple[Optional[Any], bool]:
            record = _as_record(data, provider, day)
            if record.exhausted:
                return None, False
            record.exhausted = True
            record.updated_at = now
            return record.model_dump(mode="json"), True

        if await self.store.update_json(usage_key(provider, day), exhaust):
            logger.warning("Provider %s reported its quota as exhausted for %s", provider, day)
