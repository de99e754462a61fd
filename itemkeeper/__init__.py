"""
itemkeeper: remember where you put things.

Records live in a local store and optionally mirror to a per-owner
remote ledger. See sync.py for the reconciliation strategies.
"""

from .api import Tracker
from .kvstore import MemoryKeyValueStore, SqliteKeyValueStore
from .record_store import RecordStore
from .sync import Reconciler, StatusRefresher, SyncGateway
from .types import ItemRecord, RecycleBinEntry, SyncFailure, SyncStatus, SyncSuccess

__all__ = [
    "ItemRecord",
    "MemoryKeyValueStore",
    "Reconciler",
    "RecordStore",
    "RecycleBinEntry",
    "SqliteKeyValueStore",
    "StatusRefresher",
    "SyncFailure",
    "SyncGateway",
    "SyncStatus",
    "SyncSuccess",
    "Tracker",
]
