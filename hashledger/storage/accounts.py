import time
from decimal import Decimal
from typing import List, Optional

import aiosqlite

from hashledger.amounts import dec, enc
from hashledger.config import GBTC, USDT

_COLUMNS = (
    "account_id, api_key, referral_code, referred_by, usdt_balance, gbtc_balance, "
    "base_hash_power, referral_hash_bonus, hash_power, total_referral_earnings, "
    "is_admin, is_frozen, is_banned, created_at, updated_at"
)

_BALANCE_COLUMNS = {USDT: "usdt_balance", GBTC: "gbtc_balance"}


def _row_to_dict(row) -> dict:
    return {
        "account_id": row[0],
        "api_key": row[1],
        "referral_code": row[2],
        "referred_by": row[3],
        "usdt_balance": dec(row[4]),
        "gbtc_balance": dec(row[5]),
        "base_hash_power": dec(row[6]),
        "referral_hash_bonus": dec(row[7]),
        "hash_power": dec(row[8]),
        "total_referral_earnings": dec(row[9]),
        "is_admin": bool(row[10]),
        "is_frozen": bool(row[11]),
        "is_banned": bool(row[12]),
        "created_at": row[13],
        "updated_at": row[14],
    }


def balance_column(currency: str) -> str:
    return _BALANCE_COLUMNS[currency]


class AccountRepo:
    """CRUD operations for the accounts table."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        account_id: str,
        referral_code: str,
        referred_by: Optional[str] = None,
        api_key: str = "",
        is_admin: bool = False,
    ) -> dict:
        now = time.time()
        await self._db.execute(
            "INSERT INTO accounts (account_id, api_key, referral_code, referred_by, is_admin, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (account_id, api_key, referral_code, referred_by, int(is_admin), now, now),
        )
        return await self.get(account_id)

    async def get(self, account_id: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM accounts WHERE account_id = ?",
            (account_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def get_by_api_key(self, api_key: str) -> Optional[dict]:
        if not api_key:
            return None
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM accounts WHERE api_key = ? AND api_key != ''",
            (api_key,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def get_by_referral_code(self, code: str) -> Optional[dict]:
        if not code:
            return None
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM accounts WHERE referral_code = ?",
            (code,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def list_referred(self, code: str) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM accounts WHERE referred_by = ? ORDER BY created_at",
            (code,),
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def list_all(self) -> List[dict]:
        results = []
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM accounts ORDER BY created_at"
        ) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def set_balance(self, account_id: str, currency: str, new_balance: Decimal):
        col = balance_column(currency)
        await self._db.execute(
            f"UPDATE accounts SET {col} = ?, updated_at = ? WHERE account_id = ?",
            (enc(new_balance), time.time(), account_id),
        )

    async def set_hash_power(self, account_id: str, base: Decimal, bonus: Decimal):
        await self._db.execute(
            "UPDATE accounts SET base_hash_power = ?, referral_hash_bonus = ?, hash_power = ?, "
            "updated_at = ? WHERE account_id = ?",
            (enc(base), enc(bonus), enc(base + bonus), time.time(), account_id),
        )

    async def set_referral_earnings(self, account_id: str, total: Decimal):
        await self._db.execute(
            "UPDATE accounts SET total_referral_earnings = ?, updated_at = ? WHERE account_id = ?",
            (enc(total), time.time(), account_id),
        )

    async def set_flag(self, account_id: str, flag: str, value: bool):
        if flag not in ("is_frozen", "is_banned", "is_admin"):
            raise ValueError(f"Unknown account flag: {flag}")
        await self._db.execute(
            f"UPDATE accounts SET {flag} = ?, updated_at = ? WHERE account_id = ?",
            (int(value), time.time(), account_id),
        )

    async def list_with_hash_power(self) -> List[dict]:
        """Accounts holding any hash power, banned ones included."""
        return [a for a in await self.list_all() if a["hash_power"] > 0]

    async def sum_balances(self, currency: str) -> Decimal:
        col = balance_column(currency)
        total = Decimal("0")
        async with self._db.execute(f"SELECT {col} FROM accounts") as cursor:
            async for row in cursor:
                total += dec(row[0])
        return total

    async def count(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM accounts") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0
