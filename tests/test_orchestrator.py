"""
Tests for the orchestrator

End-to-end lifecycle with in-memory storage: start-up migration,
day-to-day operations and shutdown.
"""

import json

import pytest

from savings_store.config import Settings, get_settings, validate_all_settings
from savings_store.models import Customer
from savings_store.orchestrator import create_app_components, create_storage
from savings_store.services.storage import InMemoryStorage, JsonFileStorage


@pytest.fixture(autouse=True)
def no_auto_backup(monkeypatch):
    monkeypatch.setenv("AUTO_BACKUP_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_defaults_to_memory(self):
        """Test the default backend is in-memory."""
        manager = create_app_components()
        assert isinstance(manager.store.storage, InMemoryStorage)
        assert manager.store.key_prefix == "obata_v2_"

    def test_file_backend(self, monkeypatch, tmp_path):
        """Test the file backend is built from the environment."""
        monkeypatch.setenv("SAVINGS_STORE_BACKEND", "file")
        monkeypatch.setenv("SAVINGS_STORE_FILE_PATH", str(tmp_path / "data.json"))
        assert isinstance(create_storage(Settings()), JsonFileStorage)

    def test_file_backend_needs_path(self, monkeypatch):
        """Test the file backend without a path is a configuration error."""
        monkeypatch.setenv("SAVINGS_STORE_BACKEND", "file")
        with pytest.raises(ValueError):
            create_storage(Settings())
        assert validate_all_settings()["storage"] is False

    def test_limits_come_from_settings(self, monkeypatch):
        """Test retention caps are wired through."""
        monkeypatch.setenv("AUDIT_LOG_LIMIT", "3")
        manager = create_app_components(settings=Settings())
        assert manager.store.audit_logger.limit == 3


class TestDataManager:
    """Tests for the DataManager lifecycle."""

    def test_snapshot_requires_initialize(self):
        """Test the snapshot is unavailable before initialize()."""
        manager = create_app_components()
        with pytest.raises(RuntimeError):
            _ = manager.snapshot

    def test_initialize_migrates_legacy_data(self):
        """Test start-up migrates 2.2 data before loading."""
        storage = InMemoryStorage()
        storage.set("obata_members", json.dumps({"7": {"name": "Ada"}}))
        storage.set("obata_ledger", json.dumps([{"cust": "7", "type": "DAILY", "amount": 50}]))
        manager = create_app_components(storage=storage)

        result = manager.initialize()

        assert result.success
        assert result.details["migration"]["details"]["migrated"] is True
        assert manager.snapshot.customers[0].balance_savings == 50
        assert manager.scheduler is None

    def test_save_export_import_cycle(self):
        """Test data flows from one manager to another through an export."""
        source = create_app_components(storage=InMemoryStorage())
        source.initialize()
        source.snapshot.customers.append(Customer(id=101, name="Ada"))
        assert source.save().success

        exported = source.export()

        target = create_app_components(storage=InMemoryStorage())
        target.initialize()
        assert target.import_file(exported.content).success
        assert [c.id for c in target.snapshot.customers] == [101]

    def test_restore_from_history(self):
        """Test restore(index) goes through the store."""
        manager = create_app_components(storage=InMemoryStorage())
        manager.initialize()
        assert manager.create_backup().success
        manager.snapshot.customers.append(Customer(id=101))
        manager.save()

        assert manager.restore(0).success
        assert manager.snapshot.customers == []

    def test_backup_file_round_trip(self):
        """Test the full backup file restores into another manager."""
        source = create_app_components(storage=InMemoryStorage())
        source.initialize()
        source.snapshot.customers.append(Customer(id=101))
        source.save()

        target = create_app_components(storage=InMemoryStorage())
        target.initialize()
        assert target.restore_file(source.backup_file().content).success
        assert [c.id for c in target.snapshot.customers] == [101]

    def test_scheduler_started_when_enabled(self, monkeypatch):
        """Test auto backup starts on initialize and stops on shutdown."""
        monkeypatch.setenv("AUTO_BACKUP_ENABLED", "true")
        manager = create_app_components(settings=Settings(), storage=InMemoryStorage())
        manager.initialize()
        assert manager.scheduler.is_running

        final = manager.shutdown()

        assert manager.scheduler is None
        assert final.filename.startswith("obata_backup_")

    def test_shutdown_before_initialize(self):
        """Test shutdown is safe on an uninitialized manager."""
        assert create_app_components().shutdown() is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
