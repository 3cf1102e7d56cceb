import time
from decimal import Decimal
from typing import List, Optional

import aiosqlite

from hashledger.amounts import dec, enc

_COLUMNS = (
    "id, kind, account_id, counterparty_id, currency, amount, fee, network, tx_hash, "
    "address, memo, status, note, created_at, updated_at, completed_at"
)


def _row_to_dict(row) -> dict:
    return {
        "id": row[0],
        "kind": row[1],
        "account_id": row[2],
        "counterparty_id": row[3],
        "currency": row[4],
        "amount": dec(row[5]),
        "fee": dec(row[6]),
        "network": row[7],
        "tx_hash": row[8],
        "address": row[9],
        "memo": row[10],
        "status": row[11],
        "note": row[12],
        "created_at": row[13],
        "updated_at": row[14],
        "completed_at": row[15],
    }


class LedgerEntryRepo:
    """CRUD operations for the ledger_entries table.

    Status only moves forward: transition() updates a row only while it is
    still in the expected state, so each transition happens at most once.
    """

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create(
        self,
        kind: str,
        account_id: str,
        currency: str,
        amount: Decimal,
        status: str,
        fee: Decimal = Decimal("0"),
        counterparty_id: Optional[str] = None,
        network: str = "",
        tx_hash: Optional[str] = None,
        address: str = "",
        memo: str = "",
        now: Optional[float] = None,
    ) -> dict:
        now = now if now is not None else time.time()
        completed_at = now if status == "completed" else None
        cursor = await self._db.execute(
            "INSERT INTO ledger_entries (kind, account_id, counterparty_id, currency, amount, fee, "
            "network, tx_hash, address, memo, status, created_at, updated_at, completed_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (kind, account_id, counterparty_id, currency, enc(amount), enc(fee), network,
             tx_hash, address, memo, status, now, now, completed_at),
        )
        return await self.get(cursor.lastrowid)

    async def get(self, entry_id: int) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM ledger_entries WHERE id = ?", (entry_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def find_deposit_by_tx_hash(self, tx_hash: str) -> Optional[dict]:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM ledger_entries WHERE kind = 'deposit' AND tx_hash = ? COLLATE NOCASE",
            (tx_hash,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def transition(
        self,
        entry_id: int,
        from_status: str,
        to_status: str,
        now: float,
        note: Optional[str] = None,
        amount: Optional[Decimal] = None,
        tx_hash: Optional[str] = None,
    ) -> bool:
        sets = ["status = ?", "updated_at = ?"]
        params: list = [to_status, now]
        if to_status == "completed":
            sets.append("completed_at = ?")
            params.append(now)
        if note is not None:
            sets.append("note = ?")
            params.append(note)
        if amount is not None:
            sets.append("amount = ?")
            params.append(enc(amount))
        if tx_hash is not None:
            sets.append("tx_hash = ?")
            params.append(tx_hash)
        params.extend([entry_id, from_status])
        cursor = await self._db.execute(
            f"UPDATE ledger_entries SET {', '.join(sets)} WHERE id = ? AND status = ?",
            tuple(params),
        )
        return cursor.rowcount == 1

    async def last_completed_at(self, account_id: str, kind: str) -> Optional[float]:
        async with self._db.execute(
            "SELECT MAX(completed_at) FROM ledger_entries "
            "WHERE account_id = ? AND kind = ? AND status = 'completed'",
            (account_id, kind),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def list_by_status(self, kind: str, status: str, limit: Optional[int] = None) -> List[dict]:
        query = (f"SELECT {_COLUMNS} FROM ledger_entries WHERE kind = ? AND status = ? "
                 "ORDER BY created_at DESC, id DESC")
        params: tuple = (kind, status)
        if limit is not None:
            query += " LIMIT ?"
            params = params + (limit,)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def list_for_account(
        self, account_id: str, kind: Optional[str] = None, limit: Optional[int] = None,
    ) -> List[dict]:
        query = (f"SELECT {_COLUMNS} FROM ledger_entries "
                 "WHERE (account_id = ? OR counterparty_id = ?)")
        params: tuple = (account_id, account_id)
        if kind:
            query += " AND kind = ?"
            params = params + (kind,)
        query += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params = params + (limit,)
        results = []
        async with self._db.execute(query, params) as cursor:
            async for row in cursor:
                results.append(_row_to_dict(row))
        return results

    async def sum_by_status(self, kind: str, status: str, currency: str) -> Decimal:
        total = Decimal("0")
        async with self._db.execute(
            "SELECT amount FROM ledger_entries WHERE kind = ? AND status = ? AND currency = ?",
            (kind, status, currency),
        ) as cursor:
            async for row in cursor:
                total += dec(row[0])
        return total
