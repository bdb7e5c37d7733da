"""
Main Orchestrator for Savings Store

This module ties together all the components and defines the
application lifecycle:
1. Start-up (migrate → load → start auto backup)
2. Day-to-day (save, export, import, restore)
3. Shutdown (stop auto backup → best-effort export)

DESIGN DECISION: The orchestrator owns the one live Snapshot. Every
component receives it explicitly; nothing else keeps a copy.
"""

from typing import Optional, Union

import structlog

from savings_store.audit import AuditLogger
from savings_store.config import Settings, get_settings
from savings_store.exchange import BackupExchanger
from savings_store.migration import LegacyMigrator
from savings_store.models.records import BackupKind
from savings_store.models.results import ExportResult, OperationResult
from savings_store.models.snapshot import Snapshot
from savings_store.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorage,
)
from savings_store.snapshot import AutoBackupScheduler, SnapshotStore


logger = structlog.get_logger(__name__)


class DataManager:
    """
    Application-facing facade over store, migrator and exchanger.

    Usage:
        manager = create_app_components()
        manager.initialize()
        manager.snapshot.customers.append(customer)
        manager.save()
    """

    def __init__(
        self,
        store: SnapshotStore,
        migrator: LegacyMigrator,
        exchanger: BackupExchanger,
        auto_backup_enabled: bool = True,
        auto_backup_interval_seconds: float = 300.0,
    ):
        self._store = store
        self._migrator = migrator
        self._exchanger = exchanger
        self._auto_backup_enabled = auto_backup_enabled
        self._auto_backup_interval = auto_backup_interval_seconds
        self._snapshot: Optional[Snapshot] = None
        self._scheduler: Optional[AutoBackupScheduler] = None

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def migrator(self) -> LegacyMigrator:
        return self._migrator

    @property
    def exchanger(self) -> BackupExchanger:
        return self._exchanger

    @property
    def scheduler(self) -> Optional[AutoBackupScheduler]:
        return self._scheduler

    @property
    def snapshot(self) -> Snapshot:
        if self._snapshot is None:
            raise RuntimeError("DataManager.initialize() has not been called")
        return self._snapshot

    def initialize(self) -> OperationResult:
        """
        Migrate legacy data if needed, load the snapshot and start auto backup.

        A failed migration is reported but does not stop start-up; the
        legacy keys are left in place for the next attempt.
        """
        migration = self._migrator.migrate()
        if not migration.success:
            self._store.audit_logger.log_operation_failed(migration)

        self._snapshot = self._store.load()

        if self._auto_backup_enabled:
            self._scheduler = AutoBackupScheduler(
                self._store,
                self._snapshot,
                interval_seconds=self._auto_backup_interval,
            )
            self._scheduler.start()

        logger.info(
            "data_manager_initialized",
            migrated=bool(migration.details.get("migrated")),
            auto_backup=self._auto_backup_enabled,
            **self._snapshot.counts(),
        )
        return OperationResult.ok(
            "initialize",
            migration=migration.model_dump(mode="json"),
            **self._snapshot.counts(),
        )

    def save(self, actor: Optional[str] = None) -> OperationResult:
        return self._store.save(self.snapshot, actor=actor)

    def create_backup(self) -> OperationResult:
        return self._store.create_backup(self.snapshot, BackupKind.MANUAL)

    def restore(self, index: int, actor: Optional[str] = None) -> OperationResult:
        return self._store.restore_backup(self.snapshot, index, actor=actor)

    def export(self, actor: Optional[str] = None) -> ExportResult:
        return self._exchanger.export_snapshot(self.snapshot, actor=actor)

    def import_file(
        self,
        payload: Union[bytes, str],
        actor: Optional[str] = None,
    ) -> OperationResult:
        return self._exchanger.import_snapshot(self.snapshot, payload, actor=actor)

    def backup_file(self) -> ExportResult:
        return self._exchanger.create_backup_file(self.snapshot)

    def restore_file(
        self,
        payload: Union[bytes, str],
        actor: Optional[str] = None,
    ) -> OperationResult:
        return self._exchanger.restore_from_backup_file(self.snapshot, payload, actor=actor)

    def shutdown(self) -> Optional[ExportResult]:
        """
        Stop auto backup and produce a last export.

        The export is best effort: the caller may drop it on a forced
        close. Returns None when the manager was never initialized.
        """
        if self._scheduler is not None:
            self._scheduler.stop()
            self._scheduler = None

        if self._snapshot is None:
            return None

        result = self.export()
        logger.info("data_manager_shutdown", final_export=result.filename)
        return result


def create_storage(settings: Settings) -> KeyValueStorage:
    """Build the storage backend selected in settings."""
    storage_settings = settings.storage
    if storage_settings.backend == "file":
        if not storage_settings.file_path:
            raise ValueError("SAVINGS_STORE_FILE_PATH is required for the file backend")
        return JsonFileStorage(
            storage_settings.file_path,
            capacity_bytes=storage_settings.capacity_bytes,
        )
    return InMemoryStorage(capacity_bytes=storage_settings.capacity_bytes)


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
) -> DataManager:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from. Defaults to get_settings().
        storage: Pre-built backend, e.g. for tests. Defaults to the
                 backend named in settings.

    Returns:
        A DataManager that still needs initialize().
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    app_settings = settings.app

    storage = storage or create_storage(settings)
    audit_logger = AuditLogger(
        limit=app_settings.audit_log_limit,
        default_actor=app_settings.default_actor,
    )
    store = SnapshotStore(
        storage,
        key_prefix=storage_settings.key_prefix,
        audit_logger=audit_logger,
        backup_history_limit=app_settings.backup_history_limit,
    )
    migrator = LegacyMigrator(
        store,
        legacy_prefix=storage_settings.legacy_prefix,
        archive_name=storage_settings.archive_key,
    )
    exchanger = BackupExchanger(
        store,
        schema_version=app_settings.schema_version,
        verify_checksum=app_settings.verify_checksum,
    )

    return DataManager(
        store,
        migrator,
        exchanger,
        auto_backup_enabled=app_settings.auto_backup_enabled,
        auto_backup_interval_seconds=app_settings.auto_backup_interval_seconds,
    )
