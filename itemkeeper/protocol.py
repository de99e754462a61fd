"""
Protocol definitions for the capabilities the tracker consumes.

- KeyValueStoreProtocol: local persistence (SQLite file, in-memory)
- RemoteLedgerProtocol: the per-owner cloud copy (PostgREST over HTTP)

Implementations live in kvstore.py and ledger.py; tests substitute
in-memory fakes.
"""

from typing import Any, Optional, Protocol, runtime_checkable

ACTIVE_TABLE = "item_records"
BIN_TABLE = "recycle_bin"


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """
    String key-value persistence.

    Implementations never raise for an unavailable backing store:
    reads return None, writes return False.
    """

    def available(self) -> bool: ...

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> bool: ...

    def remove(self, key: str) -> bool: ...


@runtime_checkable
class RemoteLedgerProtocol(Protocol):
    """
    Remote tables keyed by ``id`` and scoped by ``user_id``.

    Every operation raises LedgerError on transport or service failure.
    """

    def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        conflict_key: str = "id",
    ) -> None: ...

    def insert(self, table: str, rows: list[dict[str, Any]]) -> None: ...

    def delete(self, table: str, *, id: str, owner_id: str) -> None: ...

    def select(
        self,
        table: str,
        *,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict[str, Any]]: ...

    def count(self, table: str, *, owner_id: str) -> int: ...
