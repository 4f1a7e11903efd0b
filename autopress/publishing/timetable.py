"""Registered timer jobs on top of APScheduler."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]

JOB_DEFAULTS: Dict[str, Any] = {
    "replace_existing": True,
    "coalesce": True,
    "max_instances": 1,
}


class TimetableRegistry:
    """
    Named groups of jobs on one scheduler.

    A group is either a set of daily ``HH:MM`` cron triggers or a single
    interval trigger. Replacing a group removes its old jobs before adding the
    new ones; both steps happen under one lock.
    """

    def __init__(self, scheduler: AsyncIOScheduler, timezone: str = "UTC", misfire_grace_time: int = 300) -> None:
        self.scheduler = scheduler
        self.timezone = timezone
        self.misfire_grace_time = misfire_grace_time
        self.time_sets: Dict[str, List[str]] = {}
        self.intervals: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    def _job_ids(self, group: str) -> List[str]:
        return [
            job.id for job in self.scheduler.get_jobs()
            if job.id == group or job.id.startswith(f"{group}@")
        ]

    def _cancel(self, group: str) -> int:
        ids = self._job_ids(group)
        for job_id in ids:
            self.scheduler.remove_job(job_id)
        return len(ids)

    async def set_times(self, group: str, times: List[str], func: JobFunc) -> bool:
        """Register one cron job per ``HH:MM`` in ``times``.

        Returns:
            True if the registered set changed
        """
        times = sorted(set(times))
        async with self._lock:
            if self.time_sets.get(group) == times and len(self._job_ids(group)) == len(times):
                return False
            self._cancel(group)
            for entry in times:
                hour, minute = entry.split(":")
                self.scheduler.add_job(
                    func,
                    CronTrigger(hour=int(hour), minute=int(minute), timezone=self.timezone),
                    id=f"{group}@{entry}",
                    name=f"{group} at {entry}",
                    misfire_grace_time=self.misfire_grace_time,
                    **JOB_DEFAULTS,
                )
            self.time_sets[group] = times
            self.intervals.pop(group, None)
            logger.info("Registered %s at %s", group, ", ".join(times) or "no times")
            return True

    async def set_interval(self, group: str, minutes: int, func: JobFunc) -> bool:
        """Register a single interval job every ``minutes``.

        Returns:
            True if the interval changed
        """
        if minutes < 1:
            raise ValueError(f"interval for {group} must be at least one minute")
        async with self._lock:
            if self.intervals.get(group) == minutes and self._job_ids(group):
                return False
            self._cancel(group)
            self.scheduler.add_job(
                func,
                IntervalTrigger(minutes=minutes, timezone=self.timezone),
                id=group,
                name=f"{group} every {minutes} min",
                misfire_grace_time=self.misfire_grace_time,
                **JOB_DEFAULTS,
            )
            self.intervals[group] = minutes
            self.time_sets.pop(group, None)
            logger.info("Registered %s every %d minutes", group, minutes)
            return True

    async def remove(self, group: str) -> int:
        async with self._lock:
            self.time_sets.pop(group, None)
            self.intervals.pop(group, None)
            return self._cancel(group)

    async def clear(self) -> None:
        async with self._lock:
            self.scheduler.remove_all_jobs()
            self.time_sets.clear()
            self.intervals.clear()

    def groups(self) -> List[str]:
        return sorted(set(self.time_sets) | set(self.intervals))

    def jobs(self) -> List[str]:
        return sorted(job.id for job in self.scheduler.get_jobs())

    @property
    def trigger_count(self) -> int:
        return len(self.scheduler.get_jobs())

    def next_runs(self, limit: Optional[int] = None) -> List[datetime]:
        """Upcoming fire times, soonest first."""
        runs = sorted(
            run for run in (getattr(job, "next_run_time", None) for job in self.scheduler.get_jobs())
            if run is not None
        )
        return runs[:limit] if limit else runs
