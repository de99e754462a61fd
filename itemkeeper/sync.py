"""
Local/cloud reconciliation.

Reconciler: bulk strategies between the RecordStore and the remote ledger.
  - push:  local is authoritative; upsert everything local to the remote
  - pull:  remote is authoritative; replace local collections wholesale
  - merge: existence diff by id in both directions, additive only

SyncGateway: mirrors single mutations right away, outside bulk sync.

StatusRefresher: debounced status snapshot after local changes.

Nothing here raises past its public methods. Bulk operations return a
SyncResult, single-item mirroring returns a bool, status degrades to
zero counts. None of it takes a lock around the local collections:
callers run one sync at a time.
"""

import logging
import threading
from typing import Callable, Optional

from .errors import LedgerError
from .protocol import ACTIVE_TABLE, BIN_TABLE, RemoteLedgerProtocol
from .record_store import RecordStore
from .types import (
    ItemRecord,
    RecycleBinEntry,
    SyncFailure,
    SyncResult,
    SyncStatus,
    SyncSuccess,
    utc_now,
)

logger = logging.getLogger(__name__)

# Default delay before a scheduled status refresh fires
STATUS_REFRESH_DELAY = 1.0


def _failure(action: str, exc: Exception) -> SyncFailure:
    if isinstance(exc, LedgerError):
        logger.warning("%s failed: %s", action, exc)
    else:
        logger.exception("%s failed unexpectedly", action)
    return SyncFailure(message=f"{action} failed: {exc}", reason=str(exc))


class Reconciler:
    """
    Bulk synchronization between local collections and the remote ledger.

    Holds only the injected ledger handle and record store; construct
    once per session and share it. All remote calls are scoped by the
    ``owner_id`` passed to each operation, and run sequentially, active
    table before bin table, with no atomicity across the two.
    """

    def __init__(
        self,
        ledger: RemoteLedgerProtocol,
        store: RecordStore,
        *,
        stamp_last_sync: bool = True,
    ):
        """
        Args:
            ledger: Remote ledger capability
            store: Local record store
            stamp_last_sync: Record the last-sync time after each success
        """
        self._ledger = ledger
        self._store = store
        self._stamp_last_sync = stamp_last_sync

    def _succeeded(self, result: SyncSuccess) -> SyncSuccess:
        if self._stamp_last_sync:
            self._store.set_last_sync()
        logger.info(result.message)
        return result

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    def push(self, owner_id: str) -> SyncResult:
        """
        Upsert every local record and bin entry to the remote ledger.

        Two batch calls (active, then bin); an empty batch issues no call.
        Never writes locally.
        """
        try:
            now = utc_now()
            rows = [r.to_row(owner_id, now) for r in self._store.load_active()]
            bin_rows = [e.to_row(owner_id, now) for e in self._store.load_bin()]

            if rows:
                self._ledger.upsert(ACTIVE_TABLE, rows, conflict_key="id")
            if bin_rows:
                self._ledger.upsert(BIN_TABLE, bin_rows, conflict_key="id")
        except Exception as e:
            return _failure("Sync to cloud", e)

        return self._succeeded(SyncSuccess(
            message=(
                f"Pushed {len(rows)} records and {len(bin_rows)} "
                f"recycle bin entries to the cloud"
            ),
            active=len(rows),
            bin=len(bin_rows),
            uploaded=len(rows) + len(bin_rows),
        ))

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    def pull(self, owner_id: str) -> SyncResult:
        """
        Replace both local collections with the owner's remote rows.

        Destructive: local records that were never pushed are lost. Both
        tables are read before anything local is written, so a failed
        read leaves local state untouched.
        """
        try:
            rows = self._ledger.select(
                ACTIVE_TABLE, owner_id=owner_id, order_by="created_at",
            )
            bin_rows = self._ledger.select(
                BIN_TABLE, owner_id=owner_id, order_by="deleted_at",
            )
            records = [ItemRecord.from_row(row) for row in rows]
            entries = [RecycleBinEntry.from_row(row) for row in bin_rows]
        except Exception as e:
            return _failure("Sync from cloud", e)

        if not self._store.save_active(records) or not self._store.save_bin(entries):
            return SyncFailure(
                message="Sync from cloud failed: could not save to local storage",
                reason="local save failed",
            )

        return self._succeeded(SyncSuccess(
            message=(
                f"Pulled {len(records)} records and {len(entries)} "
                f"recycle bin entries from the cloud"
            ),
            active=len(records),
            bin=len(entries),
            downloaded=len(records) + len(entries),
        ))

    # -------------------------------------------------------------------------
    # Bidirectional merge
    # -------------------------------------------------------------------------

    def merge(self, owner_id: str) -> SyncResult:
        """
        Existence-based two-way merge.

        For each collection kind, records whose id is missing on the
        remote side are inserted there, and remote rows whose id is
        missing locally are appended to the local collection. Records
        present on both sides are left alone even if their fields differ.

        Uploads come first (active, then bin) and use plain insert, so a
        row that appeared remotely in the meantime fails the merge with a
        conflict instead of being overwritten. Downloads are written last;
        nothing local changes if any upload fails. Uploads are not rolled
        back if a later local save fails.
        """
        try:
            local_records = self._store.load_active()
            local_bin = self._store.load_bin()
            remote_rows = self._ledger.select(ACTIVE_TABLE, owner_id=owner_id)
            remote_bin_rows = self._ledger.select(BIN_TABLE, owner_id=owner_id)

            local_ids = {r.id for r in local_records}
            local_bin_ids = {e.id for e in local_bin}
            remote_ids = {row["id"] for row in remote_rows}
            remote_bin_ids = {row["id"] for row in remote_bin_rows}

            records_up = [r for r in local_records if r.id not in remote_ids]
            bin_up = [e for e in local_bin if e.id not in remote_bin_ids]
            records_down = [
                ItemRecord.from_row(row) for row in remote_rows
                if row["id"] not in local_ids
            ]
            bin_down = [
                RecycleBinEntry.from_row(row) for row in remote_bin_rows
                if row["id"] not in local_bin_ids
            ]

            now = utc_now()
            if records_up:
                self._ledger.insert(
                    ACTIVE_TABLE, [r.to_row(owner_id, now) for r in records_up],
                )
            if bin_up:
                self._ledger.insert(
                    BIN_TABLE, [e.to_row(owner_id, now) for e in bin_up],
                )
        except Exception as e:
            return _failure("Merge", e)

        uploaded = len(records_up) + len(bin_up)

        if records_down and not self._store.save_active(local_records + records_down):
            return SyncFailure(
                message=f"Merge failed: uploaded {uploaded}, but could not save downloaded records",
                reason="local save failed",
            )
        if bin_down and not self._store.save_bin(local_bin + bin_down):
            return SyncFailure(
                message=(
                    f"Merge failed: uploaded {uploaded}, but could not save "
                    f"downloaded recycle bin entries"
                ),
                reason="local save failed",
            )

        downloaded = len(records_down) + len(bin_down)
        return self._succeeded(SyncSuccess(
            message=f"Merge complete: uploaded {uploaded}, downloaded {downloaded}",
            active=len(records_up) + len(records_down),
            bin=len(bin_up) + len(bin_down),
            uploaded=uploaded,
            downloaded=downloaded,
        ))

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def status(self, owner_id: str) -> SyncStatus:
        """Local and remote counts plus the last-sync time. Zeros on any error."""
        try:
            return SyncStatus(
                local_records=len(self._store.load_active()),
                local_bin=len(self._store.load_bin()),
                remote_records=self._ledger.count(ACTIVE_TABLE, owner_id=owner_id),
                remote_bin=self._ledger.count(BIN_TABLE, owner_id=owner_id),
                last_sync=self._store.get_last_sync(),
            )
        except Exception as e:
            logger.warning("Failed to get sync status: %s", e)
            return SyncStatus()


class SyncGateway:
    """
    Fire-and-forget mirroring of single mutations.

    Each call returns True on success. Failures are logged and reported
    as False, never raised; a later merge repairs any drift.
    """

    def __init__(self, ledger: RemoteLedgerProtocol):
        self._ledger = ledger

    def _attempt(self, action: str, id: str, fn: Callable[[], None]) -> bool:
        try:
            fn()
        except Exception as e:
            logger.warning("Failed to %s %s: %s", action, id, e)
            return False
        logger.debug("%s %s", action, id)
        return True

    def sync_record(self, record: ItemRecord, owner_id: str) -> bool:
        row = record.to_row(owner_id)
        return self._attempt(
            "sync record", record.id,
            lambda: self._ledger.upsert(ACTIVE_TABLE, [row], conflict_key="id"),
        )

    def sync_bin_entry(self, entry: RecycleBinEntry, owner_id: str) -> bool:
        row = entry.to_row(owner_id)
        return self._attempt(
            "sync recycle bin entry", entry.id,
            lambda: self._ledger.upsert(BIN_TABLE, [row], conflict_key="id"),
        )

    def delete_record(self, id: str, owner_id: str) -> bool:
        return self._attempt(
            "delete cloud record", id,
            lambda: self._ledger.delete(ACTIVE_TABLE, id=id, owner_id=owner_id),
        )

    def delete_bin_entry(self, id: str, owner_id: str) -> bool:
        return self._attempt(
            "delete cloud recycle bin entry", id,
            lambda: self._ledger.delete(BIN_TABLE, id=id, owner_id=owner_id),
        )


class StatusRefresher:
    """
    Debounced sync-status refresh.

    ``touch()`` (re)starts a single pending timer; bursts of changes
    produce one refresh ``delay`` seconds after the last of them.
    Refreshes never overlap.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        owner_id: str,
        callback: Callable[[SyncStatus], None],
        delay: float = STATUS_REFRESH_DELAY,
    ):
        self._reconciler = reconciler
        self._owner_id = owner_id
        self._callback = callback
        self._delay = delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def touch(self) -> None:
        """Schedule a refresh, replacing any that is still pending."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def refresh_now(self) -> SyncStatus:
        """Cancel any pending refresh and run one synchronously."""
        self.cancel()
        return self._refresh()

    def _fire(self) -> None:
        with self._lock:
            # Superseded by a later touch() or cancel() while starting
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        self._refresh()

    def _refresh(self) -> SyncStatus:
        with self._refresh_lock:
            status = self._reconciler.status(self._owner_id)
            try:
                self._callback(status)
            except Exception:
                logger.exception("Status refresh callback failed")
            return status
