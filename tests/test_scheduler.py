"""Tests for the AutoBackupScheduler."""

import time

import pytest

from savings_store.models import BackupKind, ErrorKind
from savings_store.services.storage import InMemoryStorage
from savings_store.snapshot import AutoBackupScheduler, SnapshotStore


class TestAutoBackupScheduler:
    """Tests for periodic auto backups."""

    def test_rejects_non_positive_interval(self, store, snapshot):
        """Test the interval must be positive."""
        with pytest.raises(ValueError):
            AutoBackupScheduler(store, snapshot, interval_seconds=0)

    def test_run_once_takes_auto_backup(self, store, populated):
        """Test a tick prepends an auto_backup entry."""
        scheduler = AutoBackupScheduler(store, populated)
        result = scheduler.run_once()
        assert result.success
        assert populated.backup_history[0].kind == BackupKind.AUTO_BACKUP

    def test_run_once_failure_is_reported(self):
        """Test a failing backup returns a typed failure instead of raising."""
        store = SnapshotStore(InMemoryStorage(capacity_bytes=1024))
        scheduler = AutoBackupScheduler(store, store.load())
        result = scheduler.run_once()
        assert result.success is False
        assert result.error_kind == ErrorKind.STORAGE_WRITE_FAILURE

    def test_start_and_stop(self, store, snapshot):
        """Test the timer fires repeatedly until stopped."""
        scheduler = AutoBackupScheduler(store, snapshot, interval_seconds=0.05)
        scheduler.start()
        assert scheduler.is_running
        deadline = time.monotonic() + 5
        while len(snapshot.backup_history) < 2 and time.monotonic() < deadline:
            time.sleep(0.02)
        scheduler.stop()

        assert scheduler.is_running is False
        assert len(snapshot.backup_history) >= 2
        assert all(b.kind == BackupKind.AUTO_BACKUP for b in snapshot.backup_history)

        settled = len(snapshot.backup_history)
        time.sleep(0.2)
        assert len(snapshot.backup_history) <= settled + 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
