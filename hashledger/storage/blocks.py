from decimal import Decimal
from typing import List, Optional

import aiosqlite

from hashledger.amounts import dec, enc

_COLUMNS = "height, reward, total_hash_power, participants, created_at"


def _row_to_dict(row) -> dict:
    return {
        "height": row[0],
        "reward": dec(row[1]),
        "total_hash_power": dec(row[2]),
        "participants": row[3],
        "created_at": row[4],
    }


class BlockRepo:
    """Insert-only access to the blocks table."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        height: int,
        reward: Decimal,
        total_hash_power: Decimal,
        participants: int,
        created_at: float,
    ) -> dict:
        await self._db.execute(
            "INSERT INTO blocks (height, reward, total_hash_power, participants, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (height, enc(reward), enc(total_hash_power), participants, created_at),
        )
        return {
            "height": height,
            "reward": reward,
            "total_hash_power": total_hash_power,
            "participants": participants,
            "created_at": created_at,
        }

    async def latest(self) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM blocks ORDER BY height DESC LIMIT 1"
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def height(self) -> int:
        async with self._db.execute("SELECT MAX(height) FROM blocks") as cursor:
            row = await cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    async def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        results = []
        query = f"SELECT {_COLUMNS} FROM blocks ORDER BY height DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params = (limit, offset)
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def total_mined(self) -> Decimal:
        total = Decimal("0")
        async with self._db.execute("SELECT reward FROM blocks") as cursor:
            async for row in cursor:
                total += dec(row[0])
        return total

    async def count(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM blocks") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
