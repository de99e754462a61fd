"""Tests for local key-value persistence."""

from itemkeeper.kvstore import MemoryKeyValueStore, SqliteKeyValueStore
from itemkeeper.protocol import KeyValueStoreProtocol


class TestSqliteKeyValueStore:
    def test_get_set_remove(self, tmp_path):
        kv = SqliteKeyValueStore(tmp_path / "kv.db")

        assert kv.available()
        assert kv.get("missing") is None
        assert kv.set("k", "v1") is True
        assert kv.set("k", "v2") is True
        assert kv.get("k") == "v2"
        assert kv.remove("k") is True
        assert kv.get("k") is None

        kv.close()

    def test_creates_parent_directory(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "nested" / "dir" / "kv.db") as kv:
            assert kv.set("k", "v")

    def test_closed_store_degrades(self, tmp_path):
        kv = SqliteKeyValueStore(tmp_path / "kv.db")
        kv.close()

        assert not kv.available()
        assert kv.get("k") is None
        assert kv.set("k", "v") is False
        assert kv.remove("k") is False

    def test_unopenable_path_degrades(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        kv = SqliteKeyValueStore(blocker / "kv.db")

        assert not kv.available()
        assert kv.set("k", "v") is False

    def test_satisfies_protocol(self, tmp_path):
        with SqliteKeyValueStore(tmp_path / "kv.db") as kv:
            assert isinstance(kv, KeyValueStoreProtocol)


class TestMemoryKeyValueStore:
    def test_unavailable_switch(self):
        kv = MemoryKeyValueStore({"k": "v"})
        assert kv.get("k") == "v"

        kv.unavailable = True
        assert kv.get("k") is None
        assert kv.set("k", "x") is False
        assert kv.remove("k") is False

        kv.unavailable = False
        assert kv.get("k") == "v"

    def test_satisfies_protocol(self):
        assert isinstance(MemoryKeyValueStore(), KeyValueStoreProtocol)
