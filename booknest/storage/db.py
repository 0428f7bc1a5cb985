from __future__ import annotations

import os
from typing import Any, Dict, Iterable, Optional

import aiosqlite

# One row per (chat, key): the bot's equivalent of browser localStorage.
SCHEMA = """
CREATE TABLE IF NOT EXISTS session_storage (
    chat_id INTEGER NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (chat_id, key)
);
"""

Params = Iterable[Any] | Dict[str, Any]


class Database:
    """Lazily opened aiosqlite connection holding per-chat session data."""

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = await aiosqlite.connect(self.path, timeout=5)
        conn.row_factory = aiosqlite.Row
        for pragma in ("journal_mode = WAL", "synchronous = NORMAL", "busy_timeout = 5000"):
            await conn.execute(f"PRAGMA {pragma};")
        self._conn = conn
        return conn

    async def init_db(self) -> None:
        conn = await self._connection()
        await conn.executescript(SCHEMA)
        await conn.commit()

    async def execute(self, query: str, params: Params = ()) -> None:
        conn = await self._connection()
        await conn.execute(query, params)
        await conn.commit()

    async def fetchone(self, query: str, params: Params = ()) -> Optional[aiosqlite.Row]:
        conn = await self._connection()
        async with conn.execute(query, params) as cursor:
            return await cursor.fetchone()

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
