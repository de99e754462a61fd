"""
Record store: the authoritative local collections.

Holds the active collection and the recycle bin, each persisted as one
JSON document in a key-value store. Every save is a full overwrite;
callers read the whole collection, modify it, and write it back.

The store also keeps two markers: the schema version and the time of
the last successful sync.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from .protocol import KeyValueStoreProtocol
from .types import ItemRecord, RecycleBinEntry, StorageInfo, parse_utc_timestamp, utc_now

logger = logging.getLogger(__name__)

RECORDS_KEY = "item-keeper-records"
RECYCLE_BIN_KEY = "item-keeper-recycle-bin"
VERSION_KEY = "item-keeper-version"
LAST_SYNC_KEY = "lastSyncTime"

SCHEMA_VERSION = "1.0.0"

# Recycle-bin entries older than this are swept locally
BIN_RETENTION_DAYS = 30


class RecordStore:
    """Active records and recycle bin over a key-value store."""

    def __init__(self, kv: KeyValueStoreProtocol):
        self._kv = kv

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def _load(self, key: str) -> list[dict[str, Any]]:
        raw = self._kv.get(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Error loading %s: %s", key, e)
            return []
        return data if isinstance(data, list) else []

    def _save(self, key: str, values: list[dict[str, Any]]) -> bool:
        try:
            payload = json.dumps(values, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error("Error saving %s: %s", key, e)
            return False
        return self._kv.set(key, payload)

    def load_active(self) -> list[ItemRecord]:
        records = []
        for data in self._load(RECORDS_KEY):
            try:
                records.append(ItemRecord.from_dict(data))
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed record %r: %s", data, e)
        return records

    def save_active(self, records: Iterable[ItemRecord]) -> bool:
        return self._save(RECORDS_KEY, [r.to_dict() for r in records])

    def load_bin(self) -> list[RecycleBinEntry]:
        entries = []
        for data in self._load(RECYCLE_BIN_KEY):
            try:
                entries.append(RecycleBinEntry.from_dict(data))
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed recycle bin entry %r: %s", data, e)
        return entries

    def save_bin(self, entries: Iterable[RecycleBinEntry]) -> bool:
        return self._save(RECYCLE_BIN_KEY, [e.to_dict() for e in entries])

    def clear_all(self) -> bool:
        """Remove both collections and all markers."""
        if not self._kv.available():
            return False
        ok = True
        for key in (RECORDS_KEY, RECYCLE_BIN_KEY, VERSION_KEY, LAST_SYNC_KEY):
            ok = self._kv.remove(key) and ok
        return ok

    # -------------------------------------------------------------------------
    # Markers
    # -------------------------------------------------------------------------

    def check_version(self) -> bool:
        """Stamp the current schema version; False if it differed (or was absent)."""
        stored = self._kv.get(VERSION_KEY)
        if stored != SCHEMA_VERSION:
            self._kv.set(VERSION_KEY, SCHEMA_VERSION)
            return False
        return True

    def get_last_sync(self) -> Optional[str]:
        return self._kv.get(LAST_SYNC_KEY)

    def set_last_sync(self, ts: Optional[str] = None) -> bool:
        return self._kv.set(LAST_SYNC_KEY, ts or utc_now())

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def purge_expired(
        self,
        now: Optional[datetime] = None,
        days: int = BIN_RETENTION_DAYS,
    ) -> list[RecycleBinEntry]:
        """
        Permanently drop recycle-bin entries deleted more than ``days`` ago.

        Local only: the remote bin table is left as it is. Entries whose
        deletion time can't be parsed count as expired.

        Returns:
            The entries that were removed
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        keep, expired = [], []
        for entry in self.load_bin():
            try:
                fresh = parse_utc_timestamp(entry.deleted_at) > cutoff
            except (ValueError, AttributeError):
                fresh = False
            (keep if fresh else expired).append(entry)
        if expired:
            if self.save_bin(keep):
                logger.info("Swept %d expired recycle bin entries", len(expired))
            else:
                return []
        return expired

    def storage_info(self) -> StorageInfo:
        total = 0
        for key in (RECORDS_KEY, RECYCLE_BIN_KEY):
            total += len(self._kv.get(key) or "")
        return StorageInfo(
            records_count=len(self.load_active()),
            bin_count=len(self.load_bin()),
            storage_used=f"{total / 1024:.1f} KB",
            is_available=self._kv.available(),
        )

    # -------------------------------------------------------------------------
    # Export / import
    # -------------------------------------------------------------------------

    def export_data(self) -> str:
        """Both collections as a JSON backup document."""
        data = {
            "version": SCHEMA_VERSION,
            "exportTime": utc_now(),
            "records": [r.to_dict() for r in self.load_active()],
            "recycleBin": [e.to_dict() for e in self.load_bin()],
        }
        return json.dumps(data, ensure_ascii=False, indent=2)

    def import_data(self, payload: str) -> dict[str, Any]:
        """
        Replace both collections from an export document.

        Missing ``records`` or ``recycleBin`` is a validation failure and
        nothing is written.

        Returns:
            {"success": bool, "message": str}
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            return {"success": False, "message": f"Import failed: {e}"}

        if not isinstance(data, dict):
            return {"success": False, "message": "Invalid data format: expected an object"}
        if not isinstance(data.get("records"), list):
            return {"success": False, "message": "Invalid data format: missing 'records'"}
        if not isinstance(data.get("recycleBin"), list):
            return {"success": False, "message": "Invalid data format: missing 'recycleBin'"}

        try:
            records = [ItemRecord.from_dict(d) for d in data["records"]]
            entries = [RecycleBinEntry.from_dict(d) for d in data["recycleBin"]]
        except (KeyError, TypeError, AttributeError) as e:
            return {"success": False, "message": f"Import failed: malformed entry ({e})"}

        if not self.save_active(records) or not self.save_bin(entries):
            return {"success": False, "message": "Import failed: could not save data"}

        return {
            "success": True,
            "message": f"Imported {len(records)} records and {len(entries)} recycle bin entries",
        }
