"""Source management in database."""

from datetime import datetime
from typing import List

from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from ..models import Source
from .connection import store_connection
from .store import SourceStore


class SourceManager(SourceStore):
    """Manage sources in database."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self.pool = pool

    async def list_sources(self, enabled_only: bool = False) -> List[Source]:
        """Get sources from database."""
        query = "SELECT * FROM sources"
        if enabled_only:
            query += " WHERE enabled = TRUE"
        query += " ORDER BY id"

        async with store_connection(self.pool, "sources") as conn:
            async with conn.cursor() as cur:
                await cur.execute(query)
                return [Source(**row) for row in await cur.fetchall()]

    async def upsert_source(self, source: Source) -> Source:
        async with store_connection(self.pool, "sources") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO sources (
                        name, url, feed_url, enabled,
                        max_articles_per_crawl, crawl_interval, selectors
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (name) DO UPDATE SET
                        url = EXCLUDED.url,
                        feed_url = EXCLUDED.feed_url,
                        enabled = EXCLUDED.enabled,
                        max_articles_per_crawl = EXCLUDED.max_articles_per_crawl,
                        crawl_interval = EXCLUDED.crawl_interval,
                        selectors = EXCLUDED.selectors
                    RETURNING *
                    """,
                    (
                        source.name,
                        source.url,
                        source.feed_url,
                        source.enabled,
                        source.max_articles_per_crawl,
                        source.crawl_interval,
                        Jsonb(source.selectors.model_dump(exclude_none=True)),
                    ),
                )
                row = await cur.fetchone()
            await conn.commit()
            return Source(**row)

    async def set_enabled(self, name: str, enabled: bool) -> bool:
        async with store_connection(self.pool, "sources") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE sources SET enabled = %s WHERE name = %s",
                    (enabled, name),
                )
                updated = cur.rowcount
            await conn.commit()
            return updated > 0

    async def touch_last_crawl(self, source_id: int, at: datetime) -> None:
        async with store_connection(self.pool, "sources") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE sources SET last_crawl = %s WHERE id = %s",
                    (at, source_id),
                )
            await conn.commit()
