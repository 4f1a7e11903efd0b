"""Article storage and management."""

from datetime import datetime
from typing import List, Optional

from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from ..ingestion.text import normalize_url
from ..models import Article
from .connection import store_connection
from .store import ArticleStore


class ArticleStorage(ArticleStore):
    """Handle article storage and deduplication."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        """Initialize article storage."""
        self.pool = pool

    async def _fetch_articles(self, query: str, params: tuple = ()) -> List[Article]:
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return [Article(**row) for row in await cur.fetchall()]

    async def _fetch_value(self, query: str, params: tuple = ()) -> Optional[int]:
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return row["value"] if row else None

    async def find_by_url(self, url: str, normalized_url: str) -> Optional[int]:
        return await self._fetch_value(
            """
            SELECT id AS value
            FROM articles
            WHERE source_url = %s OR normalized_url = %s
            LIMIT 1
            """,
            (url, normalized_url),
        )

    async def find_by_fingerprint(self, fingerprint: str) -> Optional[int]:
        return await self._fetch_value(
            "SELECT id AS value FROM articles WHERE fingerprint = %s LIMIT 1",
            (fingerprint,),
        )

    async def recent_articles(self, since: datetime, limit: Optional[int] = None) -> List[Article]:
        """Get recent articles for duplicate checking."""
        query = """
            SELECT *
            FROM articles
            WHERE created_at >= %s
            ORDER BY created_at DESC
        """
        params: tuple = (since,)
        if limit is not None:
            query += " LIMIT %s"
            params = (since, limit)
        return await self._fetch_articles(query, params)

    async def insert_article(self, article: Article) -> Optional[Article]:
        """
        Insert article to database.

        The fingerprint is unique; a second article with the same fingerprint
        is ignored and None is returned.
        """
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO articles (
                        source_id, source_name, source_url, normalized_url,
                        title, slug, content, excerpt, author, fingerprint,
                        is_published, published_at, view_count, tags,
                        ai_provider, quality_score, quality_flagged
                    ) VALUES (
                        %s, %s, %s, %s, %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s, %s, %s, %s
                    )
                    ON CONFLICT (fingerprint) DO NOTHING
                    RETURNING *
                    """,
                    (
                        article.source_id,
                        article.source_name,
                        article.source_url,
                        normalize_url(article.source_url),
                        article.title,
                        article.slug,
                        article.content,
                        article.excerpt,
                        article.author,
                        article.fingerprint,
                        article.is_published,
                        article.published_at,
                        article.view_count,
                        Jsonb(article.tags),
                        article.ai_provider,
                        article.quality_score,
                        article.quality_flagged,
                    ),
                )
                row = await cur.fetchone()
            await conn.commit()
            return Article(**row) if row else None

    async def oldest_drafts(self, limit: int, include_flagged: bool = False) -> List[Article]:
        query = "SELECT * FROM articles WHERE is_published = FALSE"
        if not include_flagged:
            query += " AND quality_flagged = FALSE"
        query += " ORDER BY created_at ASC, id ASC LIMIT %s"
        return await self._fetch_articles(query, (limit,))

    async def mark_published(self, article_id: int, at: datetime) -> bool:
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE articles
                    SET is_published = TRUE, published_at = %s
                    WHERE id = %s AND is_published = FALSE
                    """,
                    (at, article_id),
                )
                updated = cur.rowcount
            await conn.commit()
            return updated > 0

    async def list_published(self) -> List[Article]:
        return await self._fetch_articles(
            "SELECT * FROM articles WHERE is_published = TRUE ORDER BY published_at DESC"
        )

    async def count_published(self) -> int:
        return await self._fetch_value(
            "SELECT COUNT(*) AS value FROM articles WHERE is_published = TRUE"
        ) or 0

    async def count_drafts(self) -> int:
        return await self._fetch_value(
            "SELECT COUNT(*) AS value FROM articles WHERE is_published = FALSE"
        ) or 0

    async def count_published_between(self, start: datetime, end: datetime) -> int:
        return await self._fetch_value(
            """
            SELECT COUNT(*) AS value
            FROM articles
            WHERE is_published = TRUE AND published_at >= %s AND published_at < %s
            """,
            (start, end),
        ) or 0

    async def count_created_since(self, since: datetime) -> int:
        return await self._fetch_value(
            "SELECT COUNT(*) AS value FROM articles WHERE created_at >= %s",
            (since,),
        ) or 0

    async def delete_articles(self, article_ids: List[int]) -> int:
        if not article_ids:
            return 0
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "DELETE FROM articles WHERE id = ANY(%s)",
                    (list(article_ids),),
                )
                deleted = cur.rowcount
            await conn.commit()
            return deleted

    async def title_or_slug_exists(self, title: str, slug: str) -> bool:
        found = await self._fetch_value(
            "SELECT id AS value FROM articles WHERE title = %s OR slug = %s LIMIT 1",
            (title, slug),
        )
        return found is not None

    async def titles_for_source_name(self, source_name: str) -> List[str]:
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT title FROM articles WHERE source_name = %s",
                    (source_name,),
                )
                return [row["title"] for row in await cur.fetchall()]

    async def duplicate_published_titles(self) -> List[str]:
        async with store_connection(self.pool, "articles") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT title
                    FROM articles
                    WHERE is_published = TRUE
                    GROUP BY title
                    HAVING COUNT(*) > 1
                    """
                )
                return [row["title"] for row in await cur.fetchall()]

    async def count_empty_published(self) -> int:
        return await self._fetch_value(
            """
            SELECT COUNT(*) AS value
            FROM articles
            WHERE is_published = TRUE AND (content = '' OR title = '')
            """
        ) or 0
