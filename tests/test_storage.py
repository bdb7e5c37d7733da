"""
Tests for the key-value storage backends

Both backends must apply a batch entirely or not at all.
"""

import json

import pytest

from savings_store.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    ReadFailure,
    StorageWriteFailure,
    decode_value,
    encode_value,
)


class TestInMemoryStorage:
    """Tests for the dict-backed backend."""

    def test_set_get_remove(self):
        """Test the basic key-value operations."""
        storage = InMemoryStorage()
        storage.set("obata_v2_settings", "{}")
        assert storage.get("obata_v2_settings") == "{}"
        storage.remove("obata_v2_settings")
        assert storage.get("obata_v2_settings") is None

    def test_keys_by_prefix(self):
        """Test prefix enumeration."""
        storage = InMemoryStorage(initial={"obata_v2_a": "1", "obata_members": "{}", "other": "x"})
        assert storage.keys("obata_v2_") == ["obata_v2_a"]
        assert sorted(storage.keys("obata_")) == ["obata_members", "obata_v2_a"]

    def test_quota_rejects_whole_batch(self):
        """Test an over-quota commit leaves every key untouched."""
        storage = InMemoryStorage(capacity_bytes=1024, initial={"a": "old"})
        with pytest.raises(StorageWriteFailure):
            storage.commit({"a": "new", "b": "x" * 2000}, removals=["a"])
        assert storage.get("a") == "old"
        assert storage.get("b") is None

    def test_commit_applies_removals_and_writes(self):
        """Test removals and writes land together."""
        storage = InMemoryStorage(initial={"old": "1"})
        storage.commit({"new": "2"}, removals=["old"])
        assert storage.get("old") is None
        assert storage.get("new") == "2"

    def test_rejects_non_text_values(self):
        """Test values must be serialized text."""
        storage = InMemoryStorage()
        with pytest.raises(StorageWriteFailure):
            storage.commit({"a": 1})

    def test_storage_usage(self):
        """Test usage counts value characters under a prefix."""
        storage = InMemoryStorage(initial={"p_a": "abc", "p_b": "de", "q": "zzzz"})
        assert storage.storage_usage("p_") == 5


class TestJsonFileStorage:
    """Tests for the single-file backend."""

    def test_persists_across_instances(self, tmp_path):
        """Test a commit is visible to a fresh instance."""
        path = str(tmp_path / "store.json")
        JsonFileStorage(path).commit({"obata_v2_users": "[]"})
        assert JsonFileStorage(path).get("obata_v2_users") == "[]"

    def test_missing_file_is_empty(self, tmp_path):
        """Test a missing file reads as an empty store."""
        storage = JsonFileStorage(str(tmp_path / "absent.json"))
        assert storage.keys() == []

    def test_corrupt_file_is_empty(self, tmp_path):
        """Test a corrupt file degrades to an empty store."""
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonFileStorage(str(path)).get("anything") is None

    def test_quota_failure_keeps_file(self, tmp_path):
        """Test an over-quota commit leaves the file as it was."""
        path = tmp_path / "store.json"
        storage = JsonFileStorage(str(path), capacity_bytes=1024)
        storage.commit({"a": "1"})
        with pytest.raises(StorageWriteFailure):
            storage.commit({"b": "x" * 2000})
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}
        assert storage.get("b") is None

    def test_remove(self, tmp_path):
        """Test removal is written through."""
        path = str(tmp_path / "store.json")
        storage = JsonFileStorage(path)
        storage.commit({"a": "1", "b": "2"})
        storage.remove("a")
        assert JsonFileStorage(path).keys() == ["b"]

    def test_write_failure_is_typed(self, tmp_path):
        """Test an unwritable location surfaces as StorageWriteFailure."""
        storage = JsonFileStorage(str(tmp_path / "missing_dir" / "store.json"))
        with pytest.raises(StorageWriteFailure):
            storage.commit({"a": "1"})


class TestValueCodec:
    """Tests for record encoding."""

    def test_round_trip_keeps_unicode(self):
        """Test non-ASCII text is stored as-is."""
        text = encode_value({"currency": "₦"})
        assert "₦" in text
        assert decode_value(text) == {"currency": "₦"}

    def test_absent_value(self):
        """Test None passes through."""
        assert decode_value(None) is None

    def test_invalid_json_raises_read_failure(self):
        """Test bad stored text is a ReadFailure."""
        with pytest.raises(ReadFailure):
            decode_value("{broken")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
