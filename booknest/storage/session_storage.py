from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .db import Database


class SessionStorage:
    """Per-chat key/value storage, keyed the same way the web client used localStorage."""

    def __init__(self, db: Database):
        self.db = db

    async def get_item(self, chat_id: int, key: str) -> Optional[str]:
        row = await self.db.fetchone(
            "SELECT value FROM session_storage WHERE chat_id = ? AND key = ?",
            (chat_id, key),
        )
        return row["value"] if row else None

    async def set_item(self, chat_id: int, key: str, value: str):
        await self.db.execute(
            """
            INSERT INTO session_storage (chat_id, key, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chat_id, key) DO UPDATE
               SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (chat_id, key, value, datetime.now(timezone.utc).isoformat()),
        )

    async def remove_item(self, chat_id: int, key: str):
        await self.db.execute(
            "DELETE FROM session_storage WHERE chat_id = ? AND key = ?", (chat_id, key)
        )

    async def clear(self, chat_id: int):
        await self.db.execute("DELETE FROM session_storage WHERE chat_id = ?", (chat_id,))
