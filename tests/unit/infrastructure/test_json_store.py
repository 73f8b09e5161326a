"""Tests for JsonFileStore."""

import pytest

from speckit_studio.infrastructure.persistence.json_store import JsonFileStore


class TestJsonFileStore:
    def test_save_and_load(self, store):
        assert store.save("session_1", {"title": "标题", "n": [1, 2]}) is True
        assert store.load("session_1") == {"title": "标题", "n": [1, 2]}

    def test_load_missing(self, store):
        assert store.load("missing") is None

    def test_load_corrupt_file(self, store):
        store._path("broken").write_text("{not json", encoding="utf-8")
        assert store.load("broken") is None

    def test_unserialisable_value(self, store):
        assert store.save("bad", {"x": object()}) is False
        assert store.load("bad") is None

    def test_delete(self, store):
        store.save("k", 1)
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.load("k") is None

    def test_list_keys_by_prefix(self, store):
        store.save("session_b", 1)
        store.save("session_a", 2)
        store.save("library", 3)
        assert store.list_keys("session_") == ["session_a", "session_b"]

    def test_keys_are_sanitised(self, store):
        store.save("../escape", 1)
        assert store.load("../escape") == 1
        assert all(p.parent == store.base_dir for p in store.base_dir.glob("*.json"))

    def test_empty_key_rejected(self, store):
        with pytest.raises(ValueError):
            store.save("", 1)

    def test_persists_across_instances(self, tmp_path):
        JsonFileStore(str(tmp_path)).save("k", {"v": 1})
        assert JsonFileStore(str(tmp_path)).load("k") == {"v": 1}
