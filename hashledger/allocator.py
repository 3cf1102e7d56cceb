"""
allocator.py - Reward allocator.

Splits a block reward across participants in proportion to hash power:

    share = reward * hash_power / total_hash_power

Each share is truncated to the GBTC unit; the truncation remainder is
dropped, so the shares of a block never add up to more than its reward.
Shares that truncate to zero create no row.
"""

import logging
import secrets
import sqlite3
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from hashledger.amounts import CONTEXT, ZERO, money
from hashledger.config import GBTC, LedgerConfig
from hashledger.errors import AllocationConflict

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("allocator")

Participant = Tuple[str, Decimal]


def reward_tx_hash() -> str:
    """Simulated on-chain reference for a reward row."""
    return "0x" + secrets.token_hex(32)


def compute_shares(reward: Decimal, participants: Iterable[Participant]) -> List[Participant]:
    """Return (account_id, share) for every participant with a non-zero share."""
    eligible = [(a, hp) for a, hp in participants if hp > 0]
    total = sum((hp for _, hp in eligible), ZERO)
    if reward <= 0 or total <= 0:
        return []
    shares = []
    for account_id, hp in eligible:
        raw = CONTEXT.divide(CONTEXT.multiply(reward, hp), total)
        share = money(raw, GBTC)
        if share > 0:
            shares.append((account_id, share))
    return shares


class RewardAllocator:
    """Writes one UnclaimedReward per participant of a block."""

    def __init__(self, storage: "StorageManager", config: LedgerConfig):
        self.storage = storage
        self.config = config

    async def allocate(
        self,
        block: dict,
        participants: Iterable[Participant],
        now: Optional[float] = None,
    ) -> List[dict]:
        """Allocate a stored block in its own unit of work."""
        participants = list(participants)

        async def _work():
            return await self.allocate_in_tx(block, participants, now)

        return await self.storage.atomic(_work)

    async def allocate_in_tx(
        self,
        block: dict,
        participants: Iterable[Participant],
        now: Optional[float] = None,
    ) -> List[dict]:
        """Allocate inside the caller's unit of work (no commit here)."""
        created_at = now if now is not None else block["created_at"]
        expires_at = created_at + self.config.claim_window_sec
        rows = []
        try:
            for account_id, share in compute_shares(block["reward"], participants):
                rows.append(await self.storage.rewards.create(
                    account_id=account_id,
                    block_height=block["height"],
                    reward=share,
                    tx_hash=reward_tx_hash(),
                    created_at=created_at,
                    expires_at=expires_at,
                ))
        except sqlite3.IntegrityError as e:
            logger.error("Allocation conflict on block %d: %s", block["height"], e)
            raise AllocationConflict(f"Block {block['height']} already allocated") from e

        allocated = sum((r["reward"] for r in rows), ZERO)
        logger.info(
            "Block %d: allocated %s of %s GBTC to %d account(s)",
            block["height"], allocated, block["reward"], len(rows),
        )
        return rows
