"""Tests for single-item mirroring and the debounced status refresher."""

import threading

from itemkeeper.protocol import ACTIVE_TABLE, BIN_TABLE
from itemkeeper.sync import StatusRefresher

from conftest import make_entry, make_record


class TestSyncGateway:
    def test_sync_record_upserts_one_row(self, ledger, gateway):
        assert gateway.sync_record(make_record("1", owner_id="guest"), "u1") is True

        rows = ledger.rows(ACTIVE_TABLE)
        assert len(rows) == 1
        assert rows[0]["user_id"] == "u1"
        assert ledger.calls == [("upsert", ACTIVE_TABLE, 1)]

    def test_sync_record_replaces_existing(self, ledger, gateway):
        gateway.sync_record(make_record("1"), "u1")
        gateway.sync_record(make_record("1", tags=["docs"]), "u1")

        rows = ledger.rows(ACTIVE_TABLE)
        assert len(rows) == 1
        assert rows[0]["tags"] == ["docs"]

    def test_sync_bin_entry(self, ledger, gateway):
        assert gateway.sync_bin_entry(make_entry("7"), "u1") is True

        row = ledger.rows(BIN_TABLE)[0]
        assert row["id"] == "7"
        assert row["delete_reason"] == "test delete"

    def test_delete_record_scoped_by_owner(self, ledger, gateway):
        gateway.sync_record(make_record("1"), "u2")

        # Same id, different owner: nothing removed
        assert gateway.delete_record("1", "u1") is True
        assert len(ledger.rows(ACTIVE_TABLE)) == 1

        assert gateway.delete_record("1", "u2") is True
        assert ledger.rows(ACTIVE_TABLE) == []

    def test_delete_bin_entry(self, ledger, gateway):
        gateway.sync_bin_entry(make_entry("7"), "u1")

        assert gateway.delete_bin_entry("7", "u1") is True
        assert ledger.rows(BIN_TABLE) == []

    def test_failures_return_false(self, ledger, gateway):
        ledger.fail.update({
            ("upsert", ACTIVE_TABLE), ("upsert", BIN_TABLE),
            ("delete", ACTIVE_TABLE), ("delete", BIN_TABLE),
        })

        assert gateway.sync_record(make_record("1"), "u1") is False
        assert gateway.sync_bin_entry(make_entry("2"), "u1") is False
        assert gateway.delete_record("1", "u1") is False
        assert gateway.delete_bin_entry("2", "u1") is False

    def test_unexpected_errors_return_false(self, ledger, gateway):
        def boom(*args, **kwargs):
            raise RuntimeError("connection reset")

        ledger.upsert = boom
        assert gateway.sync_record(make_record("1"), "u1") is False


class TestStatusRefresher:
    def test_touch_coalesces_into_one_refresh(self, store, reconciler):
        store.save_active([make_record("1")])
        seen = []
        done = threading.Event()

        def callback(status):
            seen.append(status)
            done.set()

        refresher = StatusRefresher(reconciler, "u1", callback, delay=0.05)
        for _ in range(5):
            refresher.touch()

        assert done.wait(2.0)
        # Give any stray timer a chance to fire
        threading.Event().wait(0.2)
        assert len(seen) == 1
        assert seen[0].local_records == 1
        assert not refresher.pending

    def test_cancel_drops_pending_refresh(self, reconciler):
        seen = []
        refresher = StatusRefresher(reconciler, "u1", seen.append, delay=0.05)

        refresher.touch()
        assert refresher.pending
        refresher.cancel()
        threading.Event().wait(0.2)

        assert seen == []
        assert not refresher.pending

    def test_refresh_now(self, store, reconciler):
        store.save_bin([make_entry("1")])
        seen = []
        refresher = StatusRefresher(reconciler, "u1", seen.append, delay=10)
        refresher.touch()

        status = refresher.refresh_now()

        assert status.local_bin == 1
        assert seen == [status]
        assert not refresher.pending

    def test_callback_errors_are_contained(self, reconciler):
        def bad_callback(status):
            raise ValueError("ui gone")

        refresher = StatusRefresher(reconciler, "u1", bad_callback, delay=10)
        status = refresher.refresh_now()
        assert status.local_records == 0
