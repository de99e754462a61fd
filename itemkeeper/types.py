"""
Data types for the item tracker.

Two record shapes exist: ``ItemRecord`` for the active collection and
``RecycleBinEntry`` for soft-deleted records. Both serialize two ways:

- local dicts (camelCase keys, the persisted JSON form)
- remote rows (snake_case columns of the ledger tables)

Mapping between the two is field renames only.
"""

import os
import time
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Optional, Union

GUEST_OWNER = "guest"

SOURCES = ("text", "voice")


def utc_now() -> str:
    """Current UTC timestamp, ISO-8601 with milliseconds and a 'Z' suffix."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Accepts 'Z' and '+00:00' suffixes as well as naive timestamps,
    which are taken to be UTC.
    """
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def local_display(utc_iso: str) -> str:
    """Render a UTC timestamp in local time (YYYY-MM-DD HH:MM) for display.

    Returns empty string for empty input and the raw value if unparseable.
    """
    if not utc_iso:
        return ""
    try:
        return parse_utc_timestamp(utc_iso).astimezone().strftime("%Y-%m-%d %H:%M")
    except (ValueError, OverflowError):
        return utc_iso


def new_record_id() -> str:
    """Generate a fresh record id.

    Millisecond clock plus a random suffix: ids sort roughly by creation
    time and never collide between two records created in the same tick.
    """
    return f"{time.time_ns() // 1_000_000}-{os.urandom(4).hex()}"


def _tags(value: Any) -> list[str]:
    if not value:
        return []
    return [str(t) for t in value]


@dataclass(frozen=True)
class ItemRecord:
    """
    A tracked object and where it was put.

    Attributes:
        id: Opaque unique id, the sole merge key
        owner_id: Owning user, or "guest" when unauthenticated
        item: What the object is
        location: Where it is stored
        created_at: ISO timestamp, immutable once set
        raw_input: The natural-language text that produced the record
        source: "text" or "voice"
        tags: Free-text labels, case-sensitive, no duplicates
    """
    id: str
    owner_id: str
    item: str
    location: str
    created_at: str
    raw_input: str = ""
    source: str = "text"
    tags: list[str] = field(default_factory=list)

    def with_tag(self, tag: str) -> "ItemRecord":
        """Return a copy with ``tag`` appended, or self if already present."""
        if tag in self.tags:
            return self
        return replace(self, tags=[*self.tags, tag])

    def to_bin(self, reason: str, deleted_at: Optional[str] = None) -> "RecycleBinEntry":
        """Move this record into recycle-bin form."""
        return RecycleBinEntry._from_record(self, deleted_at or utc_now(), reason)

    # -- local form --

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "item": self.item,
            "location": self.location,
            "createdAt": self.created_at,
            "rawInput": self.raw_input,
            "source": self.source,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ItemRecord":
        return cls(
            id=str(data["id"]),
            owner_id=data.get("userId") or GUEST_OWNER,
            item=data.get("item", ""),
            location=data.get("location", ""),
            created_at=data.get("createdAt", ""),
            raw_input=data.get("rawInput", ""),
            source=data.get("source", "text"),
            tags=_tags(data.get("tags")),
        )

    # -- remote form --

    def to_row(self, owner_id: str, updated_at: Optional[str] = None) -> dict[str, Any]:
        """Remote row for the active table, scoped to ``owner_id``."""
        return {
            "id": self.id,
            "user_id": owner_id,
            "item": self.item,
            "location": self.location,
            "created_at": self.created_at,
            "raw_input": self.raw_input,
            "source": self.source,
            "tags": list(self.tags),
            "updated_at": updated_at or utc_now(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ItemRecord":
        return cls(
            id=str(row["id"]),
            owner_id=row.get("user_id") or GUEST_OWNER,
            item=row.get("item", ""),
            location=row.get("location", ""),
            created_at=row.get("created_at", ""),
            raw_input=row.get("raw_input") or "",
            source=row.get("source") or "text",
            tags=_tags(row.get("tags")),
        )


@dataclass(frozen=True)
class RecycleBinEntry(ItemRecord):
    """An ItemRecord moved into the recycle bin."""
    deleted_at: str = ""
    delete_reason: str = ""

    def restore(self) -> ItemRecord:
        """The original record, stripped of the bin fields."""
        values = {f.name: getattr(self, f.name) for f in fields(ItemRecord)}
        return ItemRecord(**values)

    @classmethod
    def _from_record(cls, record: ItemRecord, deleted_at: str, reason: str) -> "RecycleBinEntry":
        # Stored deletion time is kept as-is, even when empty
        values = {f.name: getattr(record, f.name) for f in fields(ItemRecord)}
        return cls(**values, deleted_at=deleted_at, delete_reason=reason)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["deletedAt"] = self.deleted_at
        data["deleteReason"] = self.delete_reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecycleBinEntry":
        return cls._from_record(
            ItemRecord.from_dict(data),
            data.get("deletedAt") or "",
            data.get("deleteReason") or "",
        )

    def to_row(self, owner_id: str, updated_at: Optional[str] = None) -> dict[str, Any]:
        row = super().to_row(owner_id, updated_at)
        row["deleted_at"] = self.deleted_at or None
        row["delete_reason"] = self.delete_reason
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RecycleBinEntry":
        return cls._from_record(
            ItemRecord.from_row(row),
            row.get("deleted_at") or "",
            row.get("delete_reason") or "",
        )


# ---------------------------------------------------------------------------
# Sync results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyncSuccess:
    """A bulk sync that completed. Counts depend on the strategy."""
    message: str
    active: int = 0
    bin: int = 0
    uploaded: int = 0
    downloaded: int = 0

    success = True

    def as_dict(self) -> dict[str, Any]:
        return {"success": True, "message": self.message}


@dataclass(frozen=True)
class SyncFailure:
    """A bulk sync that failed. ``reason`` is the underlying error text."""
    message: str
    reason: str = ""

    success = False

    def as_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message}


SyncResult = Union[SyncSuccess, SyncFailure]


@dataclass(frozen=True)
class SyncStatus:
    """Read-only snapshot of local and remote collection sizes."""
    local_records: int = 0
    local_bin: int = 0
    remote_records: int = 0
    remote_bin: int = 0
    last_sync: Optional[str] = None


@dataclass(frozen=True)
class StorageInfo:
    """Local storage statistics for display."""
    records_count: int
    bin_count: int
    storage_used: str
    is_available: bool
