from decimal import Decimal
from typing import List, Optional

import aiosqlite

from hashledger.amounts import dec, enc

_COLUMNS = (
    "id, entry_id, account_id, currency, amount, apr, term_days, daily_reward, "
    "total_rewards_paid, staked_at, unlock_at, last_reward_at, status"
)


def _row_to_dict(row) -> dict:
    return {
        "id": row[0],
        "entry_id": row[1],
        "account_id": row[2],
        "currency": row[3],
        "amount": dec(row[4]),
        "apr": dec(row[5]),
        "term_days": row[6],
        "daily_reward": dec(row[7]),
        "total_rewards_paid": dec(row[8]),
        "staked_at": row[9],
        "unlock_at": row[10],
        "last_reward_at": row[11],
        "status": row[12],
    }


class StakeRepo:
    """CRUD operations for the stakes table."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        entry_id: int,
        account_id: str,
        currency: str,
        amount: Decimal,
        apr: Decimal,
        term_days: int,
        daily_reward: Decimal,
        staked_at: float,
        unlock_at: float,
    ) -> dict:
        cursor = await self._db.execute(
            "INSERT INTO stakes (entry_id, account_id, currency, amount, apr, term_days, "
            "daily_reward, staked_at, unlock_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (entry_id, account_id, currency, enc(amount), enc(apr), term_days,
             enc(daily_reward), staked_at, unlock_at),
        )
        return await self.get(cursor.lastrowid)

    async def get(self, stake_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM stakes WHERE id = ?", (stake_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def list_for_account(self, account_id: str) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM stakes WHERE account_id = ? ORDER BY staked_at DESC, id DESC",
            (account_id,),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def list_active(self) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM stakes WHERE status = 'active' ORDER BY id"
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def record_payout(self, stake_id: int, total_paid: Decimal, paid_at: float):
        await self._db.execute(
            "UPDATE stakes SET total_rewards_paid = ?, last_reward_at = ? WHERE id = ?",
            (enc(total_paid), paid_at, stake_id),
        )

    async def complete(self, stake_id: int) -> bool:
        cursor = await self._db.execute(
            "UPDATE stakes SET status = 'completed' WHERE id = ? AND status = 'active'",
            (stake_id,),
        )
        return cursor.rowcount == 1

    async def staked_total(self, account_id: Optional[str] = None, currency: Optional[str] = None) -> Decimal:
        query = "SELECT amount FROM stakes WHERE status = 'active'"
        params: tuple = ()
        if account_id:
            query += " AND account_id = ?"
            params += (account_id,)
        if currency:
            query += " AND currency = ?"
            params += (currency,)
        total = Decimal("0")
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                total += dec(row[0])
        return total
