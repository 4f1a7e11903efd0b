"""Crawl run statistics in database."""

from datetime import datetime
from typing import Any, Dict, List

from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from ..models import CrawlRun
from .connection import store_connection
from .store import RunStore


class RunManager(RunStore):
    """Manage crawl runs in database."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self.pool = pool

    async def create_run(self, started_at: datetime) -> int:
        """
        Create a new run record.

        Returns:
            Run ID
        """
        async with store_connection(self.pool, "runs") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO crawl_runs (started_at, status)
                    VALUES (%s, 'running')
                    RETURNING id
                    """,
                    (started_at,),
                )
                run_id = (await cur.fetchone())["id"]
            await conn.commit()
            return run_id

    async def finish_run(self, run_id: int, status: str, stats: Dict[str, Any], finished_at: datetime) -> None:
        """Update run status and statistics."""
        async with store_connection(self.pool, "runs") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE crawl_runs
                    SET
                        status = %s,
                        finished_at = %s,
                        stats_json = %s
                    WHERE id = %s
                    """,
                    (status, finished_at, Jsonb(stats), run_id),
                )
            await conn.commit()

    async def recent_runs(self, limit: int = 10) -> List[CrawlRun]:
        """Get recent runs."""
        async with store_connection(self.pool, "runs") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT * FROM crawl_runs
                    ORDER BY started_at DESC
                    LIMIT %s
                    """,
                    (limit,),
                )
                return [CrawlRun(**row) for row in await cur.fetchall()]
