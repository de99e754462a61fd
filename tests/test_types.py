"""Tests for record types and their local/remote mappings."""

from datetime import timezone

import pytest

from itemkeeper.types import (
    ItemRecord,
    RecycleBinEntry,
    SyncFailure,
    SyncSuccess,
    new_record_id,
    parse_utc_timestamp,
    utc_now,
)

from conftest import make_record


class TestItemRecord:
    def test_with_tag_appends_once(self):
        record = make_record("1", tags=["docs"])

        tagged = record.with_tag("travel")
        assert tagged.tags == ["docs", "travel"]
        assert record.tags == ["docs"]
        assert tagged.with_tag("travel") is tagged

    def test_tags_are_case_sensitive(self):
        record = make_record("1", tags=["Docs"])
        assert record.with_tag("docs").tags == ["Docs", "docs"]

    def test_remote_row_mapping(self):
        record = make_record("1", item="passport", location="drawer", tags=["docs"])

        row = record.to_row("u1", updated_at="2026-02-01T00:00:00.000Z")

        assert row == {
            "id": "1",
            "user_id": "u1",
            "item": "passport",
            "location": "drawer",
            "created_at": "2026-01-01T00:00:00.000Z",
            "raw_input": "I put the passport on the drawer",
            "source": "text",
            "tags": ["docs"],
            "updated_at": "2026-02-01T00:00:00.000Z",
        }
        assert ItemRecord.from_row(row) == record

    def test_from_row_defaults(self):
        record = ItemRecord.from_row({
            "id": 42, "user_id": "u1", "item": "keys", "location": "hook",
            "created_at": "2026-01-01T00:00:00Z", "tags": None, "source": None,
        })

        assert record.id == "42"
        assert record.tags == []
        assert record.source == "text"
        assert record.raw_input == ""

    def test_from_dict_without_owner_is_guest(self):
        record = ItemRecord.from_dict({"id": "1", "item": "keys", "location": "hook"})
        assert record.owner_id == "guest"


class TestRecycleBin:
    def test_bin_round_trip_restores_identical_record(self):
        record = make_record("7", item="umbrella", tags=["rain"])

        entry = record.to_bin("user delete")
        assert isinstance(entry, RecycleBinEntry)
        assert entry.id == "7"
        assert entry.deleted_at
        assert entry.delete_reason == "user delete"

        restored = entry.restore()
        assert type(restored) is ItemRecord
        assert restored == record
        assert not hasattr(restored, "deleted_at")

    def test_bin_row_adds_fields(self):
        entry = make_record("7").to_bin("gone", deleted_at="2026-01-03T00:00:00.000Z")

        row = entry.to_row("u1")

        assert row["deleted_at"] == "2026-01-03T00:00:00.000Z"
        assert row["delete_reason"] == "gone"
        assert RecycleBinEntry.from_row(row) == entry

    def test_stored_deletion_time_is_never_invented(self):
        data = make_record("7").to_dict()
        assert RecycleBinEntry.from_dict(data).deleted_at == ""

        row = make_record("7").to_row("u1")
        row["deleted_at"] = None
        entry = RecycleBinEntry.from_row(row)
        assert entry.deleted_at == ""
        assert entry.to_row("u1")["deleted_at"] is None

    def test_bin_dict_round_trip(self):
        entry = make_record("7").to_bin("gone", deleted_at="2026-01-03T00:00:00.000Z")

        data = entry.to_dict()

        assert data["deletedAt"] == "2026-01-03T00:00:00.000Z"
        assert data["deleteReason"] == "gone"
        assert RecycleBinEntry.from_dict(data) == entry


class TestResults:
    def test_success_shape(self):
        result = SyncSuccess("done", active=1)
        assert result.success is True
        assert result.as_dict() == {"success": True, "message": "done"}

    def test_failure_shape(self):
        result = SyncFailure("Merge failed: boom", reason="boom")
        assert result.success is False
        assert result.as_dict() == {"success": False, "message": "Merge failed: boom"}


class TestTimestamps:
    def test_utc_now_is_parseable(self):
        dt = parse_utc_timestamp(utc_now())
        assert dt.tzinfo == timezone.utc

    @pytest.mark.parametrize("ts", [
        "2026-01-01T00:00:00",
        "2026-01-01T00:00:00Z",
        "2026-01-01T00:00:00.123+00:00",
    ])
    def test_parse_formats(self, ts):
        assert parse_utc_timestamp(ts).year == 2026

    def test_record_ids_are_unique(self):
        ids = {new_record_id() for _ in range(1000)}
        assert len(ids) == 1000
