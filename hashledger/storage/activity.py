from typing import List, Optional

import aiosqlite

_COLUMNS = (
    "account_id, last_claim_at, activated_at, total_claims, missed_claims, is_active, updated_at"
)


def _row_to_dict(row) -> dict:
    return {
        "account_id": row[0],
        "last_claim_at": row[1],
        "activated_at": row[2],
        "total_claims": row[3],
        "missed_claims": row[4],
        "is_active": bool(row[5]),
        "updated_at": row[6],
    }


class ActivityRepo:
    """CRUD operations for the activity_records table."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get(self, account_id: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM activity_records WHERE account_id = ?",
            (account_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def activate(self, account_id: str, now: float):
        """Create the record as active, or reactivate an existing one."""
        await self._db.execute(
            "INSERT INTO activity_records (account_id, activated_at, is_active, updated_at) "
            "VALUES (?, ?, 1, ?) "
            "ON CONFLICT(account_id) DO UPDATE SET is_active = 1, activated_at = excluded.activated_at, "
            "updated_at = excluded.updated_at",
            (account_id, now, now),
        )

    async def ensure(self, account_id: str, now: float) -> bool:
        """Create an active record if missing.  True if one was created."""
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO activity_records (account_id, activated_at, is_active, updated_at) "
            "VALUES (?, ?, 1, ?)",
            (account_id, now, now),
        )
        return cursor.rowcount == 1

    async def record_claim(self, account_id: str, now: float):
        await self._db.execute(
            "INSERT INTO activity_records (account_id, last_claim_at, activated_at, total_claims, "
            "is_active, updated_at) VALUES (?, ?, ?, 1, 1, ?) "
            "ON CONFLICT(account_id) DO UPDATE SET last_claim_at = excluded.last_claim_at, "
            "total_claims = total_claims + 1, is_active = 1, updated_at = excluded.updated_at",
            (account_id, now, now, now),
        )

    async def deactivate_idle(self, cutoff: float, now: float) -> List[str]:
        """Mark active records idle since before cutoff as inactive."""
        async with self._db.execute(
            "SELECT account_id FROM activity_records "
            "WHERE is_active = 1 AND MAX(COALESCE(last_claim_at, 0), activated_at) < ? "
            "ORDER BY account_id",
            (cutoff,),
        ) as cursor:
            ids = [row[0] async for row in cursor]
        if ids:
            await self._db.executemany(
                "UPDATE activity_records SET is_active = 0, updated_at = ? WHERE account_id = ?",
                [(now, a) for a in ids],
            )
        return ids

    async def add_missed(self, account_ids: List[str], now: float):
        if not account_ids:
            return
        await self._db.executemany(
            "UPDATE activity_records SET missed_claims = missed_claims + 1, updated_at = ? "
            "WHERE account_id = ?",
            [(now, a) for a in account_ids],
        )

    async def active_ids(self) -> List[str]:
        async with self._db.execute(
            "SELECT account_id FROM activity_records WHERE is_active = 1 ORDER BY account_id"
        ) as cursor:
            return [row[0] async for row in cursor]

    async def list_all(self) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM activity_records ORDER BY account_id"
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def count_active(self) -> int:
        async with self._db.execute(
            "SELECT COUNT(*) FROM activity_records WHERE is_active = 1"
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
