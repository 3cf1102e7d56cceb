from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from .accounts import AccountRepo
from .activity import ActivityRepo
from .blocks import BlockRepo
from .entries import LedgerEntryRepo
from .rewards import RewardRepo
from .settings import SettingsRepo
from .stakes import StakeRepo
from .transactions import TransactionRepo
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "AccountRepo",
    "ActivityRepo",
    "BlockRepo",
    "LedgerEntryRepo",
    "RewardRepo",
    "SettingsRepo",
    "StakeRepo",
    "TransactionRepo",
    "StorageManager",
]
