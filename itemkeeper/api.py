"""
Core API for the item tracker.

Tracker applies user mutations to the RecordStore and, when a session
owner is signed in and a SyncGateway is configured, mirrors each one to
the remote ledger right away. Mirroring is fire-and-forget: its result
is logged and never blocks or undoes the local change.

Usage:
    from itemkeeper.api import Tracker

    tracker = Tracker(store)
    tracker.record("passport", "desk drawer", "I put the passport in the desk drawer")
    tracker.search("passport")
"""

import logging
import re
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from .intent import DEFAULT_TAG, ParsedIntent
from .record_store import RecordStore
from .sync import StatusRefresher, SyncGateway
from .types import GUEST_OWNER, SOURCES, ItemRecord, RecycleBinEntry, new_record_id, utc_now

logger = logging.getLogger(__name__)

# Words that make a delete refer to the last search results
_CONTEXT_WORDS_ZH = ("这条", "这个", "当前", "这些")
_CONTEXT_WORDS_EN = frozenset({"this", "these", "that", "those", "them", "it"})


def _matches(record: ItemRecord, query: str) -> bool:
    q = query.lower()
    return (
        q in record.item.lower()
        or q in record.location.lower()
        or q in record.raw_input.lower()
    )


class Tracker:
    """
    Item tracker over a local RecordStore.

    Each method does a full read-modify-write of the collections it
    touches. Calls must not overlap; there is no locking here.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        gateway: Optional[SyncGateway] = None,
        owner_id: Optional[str] = None,
        refresher: Optional[StatusRefresher] = None,
    ):
        """
        Args:
            store: Local record store
            gateway: Single-item mirror; omit to stay local-only
            owner_id: Signed-in user; None means guest (no mirroring)
            refresher: Debounced status refresh, touched after active changes
        """
        self._store = store
        self._gateway = gateway
        self._owner_id = owner_id
        self._refresher = refresher
        self._last_results: list[ItemRecord] = []

    @property
    def owner_id(self) -> str:
        return self._owner_id or GUEST_OWNER

    @property
    def mirroring(self) -> bool:
        """True when mutations are mirrored to the remote ledger."""
        return self._gateway is not None and self._owner_id is not None

    @property
    def last_results(self) -> list[ItemRecord]:
        return list(self._last_results)

    def _save_active(self, records: list[ItemRecord]) -> bool:
        ok = self._store.save_active(records)
        if not ok:
            logger.error("Failed to save active records")
        if self._refresher is not None and self.mirroring and records:
            self._refresher.touch()
        return ok

    def _save_bin(self, entries: list[RecycleBinEntry]) -> bool:
        ok = self._store.save_bin(entries)
        if not ok:
            logger.error("Failed to save recycle bin")
        return ok

    # -------------------------------------------------------------------------
    # Active collection
    # -------------------------------------------------------------------------

    def list_records(self) -> list[ItemRecord]:
        return self._store.load_active()

    def record(
        self,
        item: str,
        location: str,
        raw_input: str = "",
        *,
        source: str = "text",
    ) -> ItemRecord:
        """Create a record and append it to the active collection."""
        if source not in SOURCES:
            raise ValueError(f"source must be one of {SOURCES}, got {source!r}")
        record = ItemRecord(
            id=new_record_id(),
            owner_id=self.owner_id,
            item=item,
            location=location,
            created_at=utc_now(),
            raw_input=raw_input,
            source=source,
            tags=[],
        )
        self._save_active(self._store.load_active() + [record])
        self._last_results = []
        if self.mirroring:
            self._gateway.sync_record(record, self._owner_id)
        return record

    def search(self, query: str) -> list[ItemRecord]:
        """Case-insensitive substring match over item, location and raw input."""
        results = [r for r in self._store.load_active() if _matches(r, query)]
        self._last_results = results
        return results

    def tag(self, query: str, tag: str) -> list[ItemRecord]:
        """
        Add ``tag`` to every record whose item or raw input matches ``query``.

        Records that already carry the exact tag are left alone.

        Returns:
            The records that changed
        """
        q = query.lower()
        changed: list[ItemRecord] = []
        updated: list[ItemRecord] = []
        for record in self._store.load_active():
            if q in record.item.lower() or q in record.raw_input.lower():
                tagged = record.with_tag(tag)
                if tagged is not record:
                    changed.append(tagged)
                    record = tagged
            updated.append(record)

        if changed:
            self._save_active(updated)
            if self.mirroring:
                for record in changed:
                    self._gateway.sync_record(record, self._owner_id)
        self._last_results = []
        return changed

    # -------------------------------------------------------------------------
    # Deletion and the recycle bin
    # -------------------------------------------------------------------------

    def delete(self, query: str, reason: Optional[str] = None) -> list[RecycleBinEntry]:
        """Move every record matching ``query`` to the recycle bin."""
        if not query.strip():
            return []
        ids = [r.id for r in self._store.load_active() if _matches(r, query)]
        return self.delete_ids(ids, reason or f"Keyword delete: {query}")

    def delete_last_results(self) -> list[RecycleBinEntry]:
        """Move the records from the last search to the recycle bin."""
        ids = [r.id for r in self._last_results]
        return self.delete_ids(ids, "Deleted from search results")

    def delete_ids(self, ids: Iterable[str], reason: str) -> list[RecycleBinEntry]:
        """Move the given records to the recycle bin, preserving their ids."""
        wanted = set(ids)
        if not wanted:
            return []
        keep: list[ItemRecord] = []
        moved: list[RecycleBinEntry] = []
        deleted_at = utc_now()
        for record in self._store.load_active():
            if record.id in wanted:
                moved.append(record.to_bin(reason, deleted_at=deleted_at))
            else:
                keep.append(record)
        if not moved:
            return []

        # Bin first: a failure in between leaves a duplicate, never a loss
        self._save_bin(self._store.load_bin() + moved)
        self._save_active(keep)
        self._last_results = []

        if self.mirroring:
            for entry in moved:
                self._gateway.sync_bin_entry(entry, self._owner_id)
                self._gateway.delete_record(entry.id, self._owner_id)
        return moved

    def list_bin(self) -> list[RecycleBinEntry]:
        return self._store.load_bin()

    def restore(self, id: str) -> Optional[ItemRecord]:
        """Move a recycle-bin entry back to the active collection."""
        entries = self._store.load_bin()
        entry = next((e for e in entries if e.id == id), None)
        if entry is None:
            return None
        record = entry.restore()
        # An active record with the same id (possible after a merge) is replaced
        active = [r for r in self._store.load_active() if r.id != id]
        self._save_active(active + [record])
        self._save_bin([e for e in entries if e.id != id])
        if self.mirroring:
            self._gateway.sync_record(record, self._owner_id)
            self._gateway.delete_bin_entry(id, self._owner_id)
        return record

    def purge(self, id: str) -> Optional[RecycleBinEntry]:
        """Permanently delete one recycle-bin entry."""
        entries = self._store.load_bin()
        entry = next((e for e in entries if e.id == id), None)
        if entry is None:
            return None
        self._save_bin([e for e in entries if e.id != id])
        if self.mirroring:
            self._gateway.delete_bin_entry(id, self._owner_id)
        return entry

    def empty_bin(self) -> int:
        """Permanently delete everything in the recycle bin."""
        entries = self._store.load_bin()
        self._save_bin([])
        if self.mirroring:
            for entry in entries:
                self._gateway.delete_bin_entry(entry.id, self._owner_id)
        return len(entries)

    def sweep_bin(self, now: Optional[datetime] = None) -> list[RecycleBinEntry]:
        """Drop expired recycle-bin entries locally. The remote bin is untouched."""
        return self._store.purge_expired(now=now)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def statistics(self) -> str:
        records = self._store.load_active()
        if not records:
            return "No items recorded yet"

        lines = [
            "Item statistics",
            "",
            f"Total items: {len(records)}",
            f"Locations: {len({r.location for r in records})}",
        ]
        tag_counts = Counter(tag for r in records for tag in r.tags)
        if tag_counts:
            lines.append("Tags:")
            for tag, count in tag_counts.most_common():
                lines.append(f"  - {tag}: {count}")
        recent = ", ".join(r.item for r in records[-3:])
        lines.append("")
        lines.append(f"Recent: {recent}")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Intent dispatch
    # -------------------------------------------------------------------------

    def handle(self, parsed: ParsedIntent, raw_input: str) -> str:
        """Apply a classified intent and return a one-line result for display."""
        if parsed.intent == "record":
            if not parsed.item:
                return "Could not tell which item to record"
            record = self.record(
                parsed.item, parsed.location or "unknown location", raw_input,
            )
            return f"Recorded {record.item} at {record.location} (confidence {parsed.confidence:.0%})"

        if parsed.intent == "search":
            results = self.search(parsed.item or raw_input)
            if not results:
                return f"Nothing found for {parsed.item or raw_input!r}"
            return "\n".join(f"{r.item}: {r.location}" for r in results)

        if parsed.intent == "delete":
            lower = raw_input.lower()
            contextual = (
                any(w in raw_input for w in _CONTEXT_WORDS_ZH)
                or bool(_CONTEXT_WORDS_EN & set(re.findall(r"[a-z]+", lower)))
            )
            if contextual and self._last_results:
                moved = self.delete_last_results()
                return f"Moved {len(moved)} search results to the recycle bin"
            if not parsed.item:
                return "Could not tell what to delete; name the item"
            moved = self.delete(parsed.item)
            if not moved:
                return f"Nothing found for {parsed.item!r}"
            return f"Moved {len(moved)} records to the recycle bin (keyword: {parsed.item})"

        if parsed.intent == "classify":
            if not parsed.item:
                return "Could not tell which item to tag"
            tag = parsed.tag or DEFAULT_TAG
            changed = self.tag(parsed.item, tag)
            if not changed:
                return f"Nothing found for {parsed.item!r}"
            return f"Tagged {len(changed)} items with {tag!r}"

        if parsed.intent == "statistics":
            return self.statistics()

        raise ValueError(f"Unknown intent: {parsed.intent!r}")
