"""Settings key/value table."""

import json
from typing import Dict, Optional

from psycopg_pool import AsyncConnectionPool

from .connection import store_connection
from .store import JsonUpdate, SettingsStore, T


class SettingsManager(SettingsStore):
    """Manage settings rows in database."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self.pool = pool

    async def get(self, key: str) -> Optional[str]:
        async with store_connection(self.pool, "settings") as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT value FROM settings WHERE key = %s", (key,))
                row = await cur.fetchone()
                return row["value"] if row else None

    async def get_all(self) -> Dict[str, str]:
        async with store_connection(self.pool, "settings") as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT key, value FROM settings")
                return {row["key"]: row["value"] for row in await cur.fetchall()}

    async def set(self, key: str, value: str) -> None:
        async with store_connection(self.pool, "settings") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO settings (key, value)
                    VALUES (%s, %s)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """,
                    (key, value),
                )
            await conn.commit()

    async def set_default(self, key: str, value: str) -> bool:
        async with store_connection(self.pool, "settings") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO settings (key, value)
                    VALUES (%s, %s)
                    ON CONFLICT (key) DO NOTHING
                    RETURNING key
                    """,
                    (key, value),
                )
                inserted = await cur.fetchone()
            await conn.commit()
            return inserted is not None

    async def update_json(self, key: str, update: JsonUpdate) -> T:
        """Row-locked read-modify-write inside one transaction."""
        async with store_connection(self.pool, "settings") as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    # make sure there is a row to lock
                    await cur.execute(
                        "INSERT INTO settings (key, value) VALUES (%s, '') ON CONFLICT (key) DO NOTHING",
                        (key,),
                    )
                    await cur.execute("SELECT value FROM settings WHERE key = %s FOR UPDATE", (key,))
                    row = await cur.fetchone()
                    raw = row["value"] if row else None
                    data, result = update(json.loads(raw) if raw else None)
                    if data is not None:
                        await cur.execute(
                            "UPDATE settings SET value = %s WHERE key = %s",
                            (json.dumps(data, default=str), key),
                        )
            return result

    async def ping(self) -> bool:
        async with store_connection(self.pool, "settings") as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1 AS ok")
                row = await cur.fetchone()
                return row is not None and row["ok"] == 1
