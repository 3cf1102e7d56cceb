"""Hashledger - simulated mining rewards and an auditable account ledger."""

__version__ = "0.1.0"

from hashledger.config import LedgerConfig
from hashledger.ledger import Ledger

__all__ = ["Ledger", "LedgerConfig", "__version__"]
