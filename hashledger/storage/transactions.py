import time
from decimal import Decimal
from typing import List, Optional

import aiosqlite

from hashledger.amounts import dec, enc


def _row_to_dict(row) -> dict:
    return {
        "id": row[0],
        "account_id": row[1],
        "type": row[2],
        "currency": row[3],
        "amount": dec(row[4]),
        "reference_id": row[5],
        "created_at": row[6],
    }


class TransactionRepo:
    """Insert + read queries for the transactions audit log.

    Amounts are signed: credits positive, debits negative.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def record(
        self,
        account_id: str,
        tx_type: str,
        currency: str,
        amount: Decimal,
        reference_id: str = "",
        now: Optional[float] = None,
    ):
        await self._db.execute(
            "INSERT INTO transactions (account_id, type, currency, amount, reference_id, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (account_id, tx_type, currency, enc(amount), reference_id,
             now if now is not None else time.time()),
        )

    async def list_for_account(self, account_id: str, limit: Optional[int] = None) -> List[dict]:
        query = ("SELECT id, account_id, type, currency, amount, reference_id, created_at "
                 "FROM transactions WHERE account_id = ? ORDER BY created_at DESC, id DESC")
        params: tuple = (account_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = params + (limit,)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def net_for_account(self, account_id: str, currency: str) -> Decimal:
        total = Decimal("0")
        async with self._db.execute(
            "SELECT amount FROM transactions WHERE account_id = ? AND currency = ?",
            (account_id, currency),
        ) as cursor:
            async for row in cursor:
                total += dec(row[0])
        return total
