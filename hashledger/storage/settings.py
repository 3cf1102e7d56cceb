import time
from typing import Optional

import aiosqlite


class SettingsRepo:
    """Key/value access to the system_settings table."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        async with self._db.execute(
            "SELECT value FROM system_settings WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else default

    async def set(self, key: str, value: str):
        await self._db.execute(
            "INSERT INTO system_settings (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, value, time.time()),
        )
