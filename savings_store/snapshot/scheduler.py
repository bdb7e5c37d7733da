"""
Auto-Backup Scheduler

Fires SnapshotStore.create_backup(snapshot, "auto_backup") on a fixed
interval. Fire-and-forget: no timeout, no cancellation of a running
backup, and a failed backup does not stop the next one.

The store's lock keeps a tick from interleaving with a save, restore or
import running on another thread.
"""

import threading
from typing import Optional

import structlog

from savings_store.models.records import BackupKind
from savings_store.models.results import OperationResult
from savings_store.models.snapshot import Snapshot
from savings_store.snapshot.store import SnapshotStore


logger = structlog.get_logger(__name__)


class AutoBackupScheduler:
    """Periodic auto_backup driver built on a chain of daemon timers."""

    def __init__(
        self,
        store: SnapshotStore,
        snapshot: Snapshot,
        interval_seconds: float = 300.0,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._snapshot = snapshot
        self._interval = interval_seconds
        self._timer: Optional[threading.Timer] = None
        self._guard = threading.Lock()
        self._running = False

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start (or restart) the schedule."""
        with self._guard:
            self._cancel_timer()
            self._running = True
            self._schedule_next()
        logger.info("auto_backup_scheduled", interval_seconds=self._interval)

    def stop(self) -> None:
        with self._guard:
            self._running = False
            self._cancel_timer()

    def run_once(self) -> OperationResult:
        """Take one auto backup now."""
        result = self._store.create_backup(self._snapshot, BackupKind.AUTO_BACKUP)
        if not result.success:
            logger.warning(
                "auto_backup_failed",
                error_kind=result.error_kind.value if result.error_kind else None,
                error_message=result.error_message,
            )
        return result

    def _schedule_next(self) -> None:
        self._timer = threading.Timer(self._interval, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        try:
            self.run_once()
        finally:
            with self._guard:
                if self._running:
                    self._schedule_next()
