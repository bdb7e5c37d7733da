"""Snapshot persistence package."""

from savings_store.snapshot.store import SnapshotStore, derive_metadata
from savings_store.snapshot.scheduler import AutoBackupScheduler

__all__ = ["AutoBackupScheduler", "SnapshotStore", "derive_metadata"]
