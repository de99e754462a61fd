"""
Shared pytest fixtures for itemkeeper tests.

Provides an in-memory remote ledger so sync tests run without a network.
"""

import copy

import pytest

from itemkeeper.errors import LedgerError
from itemkeeper.kvstore import MemoryKeyValueStore
from itemkeeper.protocol import ACTIVE_TABLE, BIN_TABLE
from itemkeeper.record_store import RecordStore
from itemkeeper.sync import Reconciler, SyncGateway
from itemkeeper.types import ItemRecord, RecycleBinEntry


class MemoryLedger:
    """
    In-memory remote ledger with PostgREST semantics.

    Rows are stored per table, keyed by id. ``fail`` holds
    (operation, table) pairs that raise LedgerError, to simulate
    service failures. Every call is appended to ``calls``.
    """

    def __init__(self):
        self.tables: dict[str, dict[str, dict]] = {ACTIVE_TABLE: {}, BIN_TABLE: {}}
        self.fail: set[tuple[str, str]] = set()
        self.calls: list[tuple] = []

    def _check(self, op: str, table: str) -> None:
        if (op, table) in self.fail:
            raise LedgerError(f"{op} {table} simulated failure")

    def upsert(self, table, rows, conflict_key="id"):
        self.calls.append(("upsert", table, len(rows)))
        self._check("upsert", table)
        for row in rows:
            self.tables[table][row[conflict_key]] = copy.deepcopy(row)

    def insert(self, table, rows):
        self.calls.append(("insert", table, len(rows)))
        self._check("insert", table)
        for row in rows:
            if row["id"] in self.tables[table]:
                raise LedgerError(f"duplicate key value violates unique constraint ({row['id']})")
        for row in rows:
            self.tables[table][row["id"]] = copy.deepcopy(row)

    def delete(self, table, *, id, owner_id):
        self.calls.append(("delete", table, id, owner_id))
        self._check("delete", table)
        row = self.tables[table].get(id)
        if row is not None and row["user_id"] == owner_id:
            del self.tables[table][id]

    def select(self, table, *, owner_id, order_by=None, descending=True):
        self.calls.append(("select", table, owner_id))
        self._check("select", table)
        rows = [copy.deepcopy(r) for r in self.tables[table].values()
                if r["user_id"] == owner_id]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        return rows

    def count(self, table, *, owner_id):
        self.calls.append(("count", table, owner_id))
        self._check("count", table)
        return sum(1 for r in self.tables[table].values() if r["user_id"] == owner_id)

    # -- helpers for tests --

    def rows(self, table, owner_id=None):
        return [r for r in self.tables[table].values()
                if owner_id is None or r["user_id"] == owner_id]

    def seed(self, table, *rows):
        for row in rows:
            self.tables[table][row["id"]] = dict(row)


def make_record(id, item="wallet", location="desk", tags=None, owner_id="u1",
                created_at="2026-01-01T00:00:00.000Z"):
    """Build an ItemRecord with sensible defaults."""
    return ItemRecord(
        id=id,
        owner_id=owner_id,
        item=item,
        location=location,
        created_at=created_at,
        raw_input=f"I put the {item} on the {location}",
        source="text",
        tags=list(tags or []),
    )


def make_entry(id, item="wallet", deleted_at="2026-01-02T00:00:00.000Z",
               reason="test delete", **kwargs) -> RecycleBinEntry:
    """Build a RecycleBinEntry with sensible defaults."""
    return make_record(id, item=item, **kwargs).to_bin(reason, deleted_at=deleted_at)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return RecordStore(kv)


@pytest.fixture
def ledger():
    return MemoryLedger()


@pytest.fixture
def reconciler(ledger, store):
    return Reconciler(ledger, store)


@pytest.fixture
def gateway(ledger):
    return SyncGateway(ledger)
