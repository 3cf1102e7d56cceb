from decimal import Decimal
from typing import Dict, List, Optional

import aiosqlite

from hashledger.amounts import dec, enc

_COLUMNS = (
    "id, account_id, block_height, reward, tx_hash, created_at, expires_at, claimed, claimed_at"
)

# A reward is live while unclaimed and strictly before its expiry.
_LIVE = "claimed = 0 AND expires_at > ?"


def _row_to_dict(row) -> dict:
    return {
        "id": row[0],
        "account_id": row[1],
        "block_height": row[2],
        "reward": dec(row[3]),
        "tx_hash": row[4],
        "created_at": row[5],
        "expires_at": row[6],
        "claimed": bool(row[7]),
        "claimed_at": row[8],
    }


class RewardRepo:
    """CRUD operations for the unclaimed_rewards table."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        account_id: str,
        block_height: int,
        reward: Decimal,
        tx_hash: str,
        created_at: float,
        expires_at: float,
    ) -> dict:
        cursor = await self._db.execute(
            "INSERT INTO unclaimed_rewards (account_id, block_height, reward, tx_hash, "
            "created_at, expires_at) VALUES (?, ?, ?, ?, ?, ?)",
            (account_id, block_height, enc(reward), tx_hash, created_at, expires_at),
        )
        return {
            "id": cursor.lastrowid,
            "account_id": account_id,
            "block_height": block_height,
            "reward": reward,
            "tx_hash": tx_hash,
            "created_at": created_at,
            "expires_at": expires_at,
            "claimed": False,
            "claimed_at": None,
        }

    async def get(self, reward_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM unclaimed_rewards WHERE id = ?", (reward_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def list_live(self, account_id: str, now: float) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM unclaimed_rewards WHERE account_id = ? AND {_LIVE} "
            "ORDER BY block_height DESC",
            (account_id, now),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def list_for_block(self, block_height: int) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM unclaimed_rewards WHERE block_height = ? ORDER BY account_id",
            (block_height,),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def mark_claimed(self, reward_id: int, now: float) -> bool:
        """Claim one row if still live; False if already claimed or expired."""
        cursor = await self._db.execute(
            f"UPDATE unclaimed_rewards SET claimed = 1, claimed_at = ? WHERE id = ? AND {_LIVE}",
            (now, reward_id, now),
        )
        return cursor.rowcount == 1

    async def live_total(self, account_id: str, now: float) -> Decimal:
        return sum((r["reward"] for r in await self.list_live(account_id, now)), Decimal("0"))

    async def live_totals(self, now: float) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = {}
        async with self._db.execute(
            f"SELECT account_id, reward FROM unclaimed_rewards WHERE {_LIVE}", (now,)
        ) as cursor:
            async for row in cursor:
                totals[row[0]] = totals.get(row[0], Decimal("0")) + dec(row[1])
        return totals

    async def accounts_with_expired_between(self, since: float, until: float) -> List[str]:
        """Accounts that let a reward lapse with expiry in (since, until]."""
        results = []
        async with self._db.execute(
            "SELECT DISTINCT account_id FROM unclaimed_rewards "
            "WHERE claimed = 0 AND expires_at > ? AND expires_at <= ? ORDER BY account_id",
            (since, until),
        ) as cursor:
            async for row in cursor:
                results.append(row[0])
        return results
