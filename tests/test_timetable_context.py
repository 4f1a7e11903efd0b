"""
tests/test_timetable_context.py

Timer registration and the scheduler context lifecycle.
"""

from __future__ import annotations

from typing import Dict

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from autopress.config import ConfigModel
from autopress.context import SchedulerContext
from autopress.dispatch import ProviderRegistry
from autopress.publishing import TimetableRegistry

from fakes import (
    Clock,
    FakePageFetcher,
    MemoryArticleStore,
    MemoryRunStore,
    MemorySettingsStore,
    MemorySourceStore,
    RecordingSleep,
)

DEFAULT_JOBS = [
    "cleanup",
    "crawl",
    "health",
    "publish@09:00",
    "publish@15:00",
    "publish@21:00",
    "seo@10:00",
    "settings-watch",
]


async def noop() -> None:
    return None


@pytest.fixture()
def timetable() -> TimetableRegistry:
    return TimetableRegistry(AsyncIOScheduler(timezone="UTC"), "UTC")


@pytest.fixture()
async def context(
    config: ConfigModel,
    settings_store: MemorySettingsStore,
    sources: MemorySourceStore,
    articles: MemoryArticleStore,
    runs: MemoryRunStore,
    registry: ProviderRegistry,
    keys: Dict[str, str],
    sleep: RecordingSleep,
    clock: Clock,
):
    settings_store.data.update(keys)
    ctx = SchedulerContext(
        config, settings_store, sources, articles, runs,
        registry=registry, fetcher=FakePageFetcher(), sleep=sleep, now=clock,
    )
    yield ctx
    await ctx.stop()


# ---------------------------------------------------------------------------
# TimetableRegistry
# ---------------------------------------------------------------------------


class TestTimetable:
    async def test_times_register_one_job_each(self, timetable: TimetableRegistry) -> None:
        assert await timetable.set_times("publish", ["15:00", "09:00"], noop)
        assert timetable.jobs() == ["publish@09:00", "publish@15:00"]
        assert timetable.trigger_count == 2

    async def test_unchanged_times_are_not_re_registered(self, timetable: TimetableRegistry) -> None:
        await timetable.set_times("publish", ["09:00"], noop)
        assert not await timetable.set_times("publish", ["09:00"], noop)

    async def test_changed_times_replace_the_old_jobs(self, timetable: TimetableRegistry) -> None:
        await timetable.set_times("publish", ["09:00", "15:00"], noop)
        assert await timetable.set_times("publish", ["18:00"], noop)
        assert timetable.jobs() == ["publish@18:00"]

    async def test_interval_replacement(self, timetable: TimetableRegistry) -> None:
        assert await timetable.set_interval("crawl", 30, noop)
        assert not await timetable.set_interval("crawl", 30, noop)
        assert await timetable.set_interval("crawl", 45, noop)
        assert timetable.jobs() == ["crawl"]
        assert timetable.intervals == {"crawl": 45}

    async def test_switching_a_group_from_times_to_interval(self, timetable: TimetableRegistry) -> None:
        await timetable.set_times("seo", ["10:00"], noop)
        await timetable.set_interval("seo-interval", 60, noop)
        await timetable.set_interval("seo", 120, noop)
        assert timetable.jobs() == ["seo", "seo-interval"]
        assert timetable.groups() == ["seo", "seo-interval"]

    async def test_interval_must_be_positive(self, timetable: TimetableRegistry) -> None:
        with pytest.raises(ValueError):
            await timetable.set_interval("crawl", 0, noop)

    async def test_remove_and_clear(self, timetable: TimetableRegistry) -> None:
        await timetable.set_times("publish", ["09:00", "15:00"], noop)
        await timetable.set_interval("crawl", 30, noop)
        assert await timetable.remove("publish") == 2
        assert timetable.jobs() == ["crawl"]
        await timetable.clear()
        assert timetable.trigger_count == 0
        assert timetable.groups() == []


# ---------------------------------------------------------------------------
# SchedulerContext
# ---------------------------------------------------------------------------


class TestContextLifecycle:
    async def test_start_registers_every_timer(self, context: SchedulerContext) -> None:
        assert await context.start()
        status = context.status()
        assert status.running
        assert status.state == "running"
        assert status.jobs == DEFAULT_JOBS
        assert status.trigger_count == len(DEFAULT_JOBS)

    async def test_start_and_stop_are_idempotent(self, context: SchedulerContext) -> None:
        assert await context.start()
        assert not await context.start()
        assert await context.stop()
        assert not await context.stop()
        assert context.status().state == "stopped"

    async def test_restart_after_stop_registers_the_same_jobs(self, context: SchedulerContext) -> None:
        await context.start()
        first = context.status().jobs
        await context.stop()
        await context.start()
        assert context.status().jobs == first

    async def test_start_computes_and_persists_a_schedule(
        self, context: SchedulerContext, settings_store: MemorySettingsStore
    ) -> None:
        await context.start()
        assert context.dispatch.schedule is not None
        assert await settings_store.get_json("schedule_config") is not None
        # the settings interval wins over the faster computed one
        assert context.timetable.intervals["crawl"] == 60

    async def test_computed_interval_is_a_floor(
        self, context: SchedulerContext, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data["auto_crawl_interval"] = "10"
        await context.start()
        assert context.timetable.intervals["crawl"] == context.dispatch.schedule.crawl_interval

    async def test_stats_report_the_running_scheduler(self, context: SchedulerContext) -> None:
        await context.start()
        stats = await context.stats()
        assert stats.is_running
        assert stats.schedule_count == len(DEFAULT_JOBS)


class TestSettingsSync:
    async def test_disabling_components_removes_their_jobs(
        self, context: SchedulerContext, settings_store: MemorySettingsStore
    ) -> None:
        await context.start()
        settings_store.data.update({"auto_crawl_enabled": "false", "auto_seo_enabled": "false"})
        await context.sync_jobs()
        jobs = context.status().jobs
        assert "crawl" not in jobs
        assert not any(job.startswith("seo") for job in jobs)

    async def test_seo_without_times_runs_on_an_interval(
        self, context: SchedulerContext, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data["seo_generation_schedule"] = ""
        await context.start()
        assert "seo-interval" in context.status().jobs
        assert context.timetable.intervals["seo-interval"] == 6 * 60

    async def test_publish_times_follow_the_settings(
        self, context: SchedulerContext, settings_store: MemorySettingsStore
    ) -> None:
        await context.start()
        settings_store.data["publish_schedule"] = "08:00,20:00"
        await context.sync_jobs()
        assert [j for j in context.status().jobs if j.startswith("publish")] == ["publish@08:00", "publish@20:00"]

    async def test_sync_without_a_running_scheduler_is_a_no_op(self, context: SchedulerContext) -> None:
        await context.sync_jobs()
        assert context.timetable is None


class TestRestart:
    async def test_restart_re_registers_a_component(self, context: SchedulerContext) -> None:
        await context.start()
        await context.timetable.remove("crawl")
        assert await context.restart("crawl")
        assert "crawl" in context.status().jobs

    async def test_unknown_component(self, context: SchedulerContext) -> None:
        await context.start()
        assert not await context.restart("teleporter")

    async def test_restart_when_stopped(self, context: SchedulerContext) -> None:
        assert not await context.restart("crawl")

    async def test_service_error_in_a_job_restarts_its_component(self, context: SchedulerContext) -> None:
        await context.start()
        await context.timetable.remove("publish")

        async def broken() -> None:
            raise RuntimeError("publisher crashed")

        await context.error_handler.guard("publish", broken)()
        assert [j for j in context.status().jobs if j.startswith("publish")] == [
            "publish@09:00", "publish@15:00", "publish@21:00",
        ]
