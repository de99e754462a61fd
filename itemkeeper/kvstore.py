"""
Local key-value persistence.

SqliteKeyValueStore keeps string values in a single SQLite table.
MemoryKeyValueStore is a dict-backed variant for ephemeral use.

Neither raises on a broken backing store: failures are logged and
reads return None, writes return False.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """
    SQLite-backed string store.

    Values are whole documents (JSON collections), replaced on every
    write. The connection is opened lazily; if it can't be opened the
    store reports itself unavailable.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error("Local store unavailable at %s: %s", self._db_path, e)
            self._conn = None

    def available(self) -> bool:
        return self._conn is not None

    def get(self, key: str) -> Optional[str]:
        if self._conn is None:
            return None
        try:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.error("Local store get(%s) failed: %s", key, e)
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> bool:
        if self._conn is None:
            return False
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            logger.error("Local store set(%s) failed: %s", key, e)
            return False
        return True

    def remove(self, key: str) -> bool:
        if self._conn is None:
            return False
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            logger.error("Local store remove(%s) failed: %s", key, e)
            return False
        return True

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class MemoryKeyValueStore:
    """Dict-backed store. Set ``unavailable`` to simulate a disabled host store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})
        self.unavailable = False

    def available(self) -> bool:
        return not self.unavailable

    def get(self, key: str) -> Optional[str]:
        if self.unavailable:
            return None
        return self.data.get(key)

    def set(self, key: str, value: str) -> bool:
        if self.unavailable:
            return False
        self.data[key] = value
        return True

    def remove(self, key: str) -> bool:
        if self.unavailable:
            return False
        self.data.pop(key, None)
        return True

    def close(self) -> None:
        pass
