"""
tests/test_ledger.py

Per-provider call windows: reservation, rollover, exhaustion and persistence.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from autopress.dispatch import RateLedger

from fakes import Clock, MemorySettingsStore, make_spec


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------


class TestWindows:
    async def test_reserve_counts_against_every_window(self, ledger: RateLedger) -> None:
        spec = make_spec("alpha", 1, daily=10, hourly=5, minute=3)
        assert await ledger.reserve(spec)
        remaining = await ledger.remaining(spec)
        assert (remaining.day, remaining.hour, remaining.minute) == (9, 4, 2)

    async def test_minute_window_blocks_then_rolls_over(self, ledger: RateLedger, clock: Clock) -> None:
        spec = make_spec("alpha", 1, minute=2)
        assert await ledger.reserve(spec)
        assert await ledger.reserve(spec)
        assert not await ledger.reserve(spec)
        assert not await ledger.can_dispatch(spec)

        clock.advance(minutes=1)
        assert await ledger.can_dispatch(spec)
        assert await ledger.reserve(spec)

    async def test_hour_window_rolls_over(self, ledger: RateLedger, clock: Clock) -> None:
        spec = make_spec("alpha", 1, hourly=1, minute=5)
        assert await ledger.reserve(spec)
        clock.advance(minutes=5)
        assert not await ledger.reserve(spec)
        clock.advance(hours=1)
        assert await ledger.reserve(spec)
        assert (await ledger.get("alpha")).requests == 2

    async def test_day_rollover_starts_a_fresh_record(self, ledger: RateLedger, clock: Clock) -> None:
        spec = make_spec("alpha", 1, daily=1)
        assert await ledger.reserve(spec)
        assert not await ledger.reserve(spec)

        clock.advance(days=1)
        record = await ledger.get("alpha")
        assert record.day == "2024-03-02"
        assert record.requests == 0
        assert await ledger.reserve(spec)

    async def test_concurrent_reservations_never_exceed_the_limit(self, ledger: RateLedger) -> None:
        spec = make_spec("alpha", 1, minute=5)
        granted = await asyncio.gather(*(ledger.reserve(spec) for _ in range(20)))
        assert sum(granted) == 5
        assert (await ledger.get("alpha")).requests == 5


# ---------------------------------------------------------------------------
# Outcomes and persistence
# ---------------------------------------------------------------------------


class TestOutcomes:
    async def test_record_counts_successes_and_errors(self, ledger: RateLedger) -> None:
        spec = make_spec("alpha", 1)
        await ledger.reserve(spec)
        await ledger.reserve(spec)
        await ledger.record("alpha", True)
        record = await ledger.record("alpha", False)
        assert (record.requests, record.successes, record.errors) == (2, 1, 1)
        assert record.error_rate == 0.5

    async def test_exhausted_provider_has_no_headroom_until_tomorrow(
        self, ledger: RateLedger, clock: Clock
    ) -> None:
        spec = make_spec("alpha", 1)
        await ledger.mark_exhausted("alpha")
        remaining = await ledger.remaining(spec)
        assert (remaining.day, remaining.hour, remaining.minute) == (0, 0, 0)
        assert not await ledger.reserve(spec)

        clock.advance(days=1)
        assert await ledger.can_dispatch(spec)

    async def test_records_are_persisted_per_day(
        self, ledger: RateLedger, settings_store: MemorySettingsStore
    ) -> None:
        await ledger.reserve(make_spec("alpha", 1))
        stored = await settings_store.get_json("usage:alpha:2024-03-01")
        assert stored["requests"] == 1
        assert stored["provider"] == "alpha"

    async def test_counts_survive_a_new_ledger(self, settings_store: MemorySettingsStore, clock: Clock) -> None:
        spec = make_spec("alpha", 1, daily=10)
        await RateLedger(settings_store, "UTC", now=clock).reserve(spec)
        fresh = RateLedger(settings_store, "UTC", now=clock)
        assert (await fresh.remaining(spec)).day == 9

    async def test_ledgers_sharing_a_store_see_each_others_reservations(
        self, settings_store: MemorySettingsStore, clock: Clock
    ) -> None:
        spec = make_spec("alpha", 1, minute=2)
        first = RateLedger(settings_store, "UTC", now=clock)
        second = RateLedger(settings_store, "UTC", now=clock)

        granted = [
            await first.reserve(spec),
            await second.reserve(spec),
            await first.reserve(spec),
            await second.reserve(spec),
        ]
        assert granted == [True, True, False, False]
        assert (await settings_store.get_json("usage:alpha:2024-03-01"))["requests"] == 2

    async def test_outcomes_from_two_ledgers_are_both_kept(
        self, settings_store: MemorySettingsStore, clock: Clock
    ) -> None:
        first = RateLedger(settings_store, "UTC", now=clock)
        second = RateLedger(settings_store, "UTC", now=clock)
        await first.get("alpha")
        await second.record("alpha", True)
        record = await first.record("alpha", False)
        assert (record.successes, record.errors) == (1, 1)

    async def test_day_follows_the_configured_timezone(self, settings_store: MemorySettingsStore) -> None:
        late_utc = Clock(datetime(2024, 3, 1, 17, 0, tzinfo=timezone.utc))
        ledger = RateLedger(settings_store, "Asia/Taipei", now=late_utc)
        await ledger.reserve(make_spec("alpha", 1))
        assert await settings_store.get("usage:alpha:2024-03-02") is not None
