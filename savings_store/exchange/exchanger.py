"""
Backup Exchanger

Moves a snapshot in and out of a portable JSON container.

Two container variants exist:

EXPORT CONTAINER (merge-on-import):
    {schema_version, export_date, data, checksum}

BACKUP FILE (overwrite-restore):
    {schema_version, backup_date, data, system_info}

DESIGN DECISION: Import is a MERGE, never an overwrite. Records already
present win on every collision (customers by id, transactions by txId,
users by username, loans by loanId); only new records are appended.
Settings are the exception: imported keys overlay the existing ones.

Every path that changes live data takes a safety backup first, and the
live snapshot is only updated once the save has been accepted.
"""

import json
import platform
from typing import Any, Callable, Optional, Union

import structlog

from savings_store.models.audit import AuditEntryBuilder
from savings_store.models.records import RECORD_NAMES, BackupKind, utc_now_iso
from savings_store.models.results import ErrorKind, ExportResult, OperationResult
from savings_store.models.snapshot import Snapshot
from savings_store.snapshot.store import SnapshotStore
from savings_store.validation import ContainerValidator, generate_checksum


logger = structlog.get_logger(__name__)

SCHEMA_VERSION = "2.3"
FILENAME_PREFIX = "obata_backup_"


def _filename(timestamp: str, keep_millis: bool = True) -> str:
    if not keep_millis:
        timestamp = timestamp[:19]
    for char in ":.":
        timestamp = timestamp.replace(char, "-")
    return f"{FILENAME_PREFIX}{timestamp}.json"


def _merge_unique(
    existing: list,
    imported: list,
    key: Callable[[Any], Any],
) -> list:
    """
    Existing records first, then imported records whose key is unseen.

    None is an ordinary key: imported records without one are dropped
    once a keyless record has been kept.
    """
    seen = {key(item) for item in existing}
    merged = list(existing)
    for item in imported:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        merged.append(item)
    return merged


def merge_snapshots(existing: Snapshot, imported: Snapshot) -> Snapshot:
    """
    Merge `imported` into a copy of `existing`.

    Logs, backup history and metadata come from `existing` untouched;
    metadata is rederived by the save that follows.
    """
    merged = existing.model_copy()
    merged.customers = _merge_unique(existing.customers, imported.customers, lambda c: c.id)
    merged.transactions = _merge_unique(
        existing.transactions, imported.transactions, lambda t: t.tx_id,
    )
    merged.users = _merge_unique(existing.users, imported.users, lambda u: u.username)
    # Loans are deduplicated across both lists, existing ones first
    merged.loans = _merge_unique([], existing.loans + imported.loans, lambda loan: loan.loan_id)
    merged.settings = {**existing.settings, **imported.settings}
    return merged


def _decode_payload(payload: Union[bytes, str]) -> Any:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8-sig")
    return json.loads(payload)


class BackupExchanger:
    """
    Export, import and full-file backup of a snapshot.

    Usage:
        exchanger = BackupExchanger(store)
        result = exchanger.export_snapshot(snapshot)
        exchanger.import_snapshot(other_snapshot, result.content)
    """

    def __init__(
        self,
        store: SnapshotStore,
        schema_version: str = SCHEMA_VERSION,
        verify_checksum: bool = True,
        validator: Optional[ContainerValidator] = None,
    ):
        self._store = store
        self._schema_version = schema_version
        self._validator = validator or ContainerValidator(
            schema_version=schema_version,
            verify_checksum=verify_checksum,
        )

    @property
    def validator(self) -> ContainerValidator:
        return self._validator

    # =========================================================================
    # EXPORT
    # =========================================================================

    def build_export_container(self, snapshot: Snapshot) -> dict[str, Any]:
        data = snapshot.to_records()
        return {
            "schema_version": self._schema_version,
            "export_date": utc_now_iso(),
            "data": data,
            "checksum": generate_checksum(data),
        }

    def export_snapshot(
        self,
        snapshot: Snapshot,
        actor: Optional[str] = None,
    ) -> ExportResult:
        """
        Serialize the snapshot into an export container.

        A manual backup entry recording the file size is added to the
        history afterwards. Failing to record it does not fail the export.
        """
        with self._store.lock:
            container = self.build_export_container(snapshot)
            content = json.dumps(container, indent=2, ensure_ascii=False).encode("utf-8")
            filename = _filename(container["export_date"])

            backup = self._store.create_backup(
                snapshot, BackupKind.MANUAL, size_bytes=len(content),
            )
            if backup.success:
                self._store.record_audit(
                    snapshot,
                    AuditEntryBuilder.data_exported(
                        size_bytes=len(content),
                        filename=filename,
                        actor=actor or self._store.audit_logger.default_actor,
                    ),
                )

            logger.info("snapshot_exported", filename=filename, size_bytes=len(content))
            return ExportResult(
                filename=filename,
                content=content,
                checksum=container["checksum"],
                size_bytes=len(content),
            )

    # =========================================================================
    # IMPORT (MERGE)
    # =========================================================================

    def _parse(self, operation: str, payload: Union[bytes, str]) -> tuple[Any, Optional[OperationResult]]:
        try:
            return _decode_payload(payload), None
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning("payload_unreadable", operation=operation, error=str(e))
            return None, OperationResult.failed(
                operation, ErrorKind.INVALID_FORMAT, f"File is not valid JSON: {e}",
            )

    def _invalid(self, operation: str, validation) -> OperationResult:
        result = OperationResult.failed(
            operation,
            ErrorKind.INVALID_FORMAT,
            validation.error_summary() if validation.has_errors else "Invalid backup file",
            error_count=validation.error_count,
            issues=[issue.model_dump() for issue in validation.issues],
        )
        self._store.audit_logger.log_operation_failed(result)
        return result

    def _commit_replacement(
        self,
        operation: str,
        snapshot: Snapshot,
        staged: Snapshot,
        safety_kind: BackupKind,
        actor: Optional[str],
    ) -> Optional[OperationResult]:
        """
        Take the safety backup, then save `staged` and copy it into `snapshot`.

        Returns a failed result, or None when everything was persisted.
        """
        safety = self._store.create_backup(snapshot, safety_kind)
        if not safety.success:
            return OperationResult.failed(
                operation,
                safety.error_kind,
                f"Safety backup failed: {safety.error_message}",
            )

        staged.backup_history = snapshot.backup_history
        saved = self._store.save(staged, actor=actor)
        if not saved.success:
            return OperationResult.failed(operation, saved.error_kind, saved.error_message)

        snapshot.replace_records(staged, names=RECORD_NAMES)
        return None

    def import_snapshot(
        self,
        snapshot: Snapshot,
        payload: Union[bytes, str],
        actor: Optional[str] = None,
    ) -> OperationResult:
        """
        Merge an export container into the snapshot.

        The container is fully validated before anything is touched; an
        invalid file leaves both the snapshot and storage unchanged.
        """
        container, failure = self._parse("import", payload)
        if failure:
            return failure

        validation, imported = self._validator.validate_import(container)
        if not validation.is_valid:
            return self._invalid("import", validation)

        actor = actor or self._store.audit_logger.default_actor
        with self._store.lock:
            before = snapshot.counts()
            staged = merge_snapshots(snapshot, imported)

            failure = self._commit_replacement(
                "import", snapshot, staged, BackupKind.PRE_IMPORT_BACKUP, actor,
            )
            if failure:
                self._store.audit_logger.log_operation_failed(failure)
                return failure

            self._store.record_audit(
                snapshot,
                AuditEntryBuilder.data_imported(
                    items_imported=len(imported.customers),
                    actor=actor,
                ),
            )

            after = snapshot.counts()
            added = {name: after[name] - before[name] for name in after}
            logger.info("snapshot_imported", **{f"added_{k}": v for k, v in added.items()})
            return OperationResult.ok(
                "import",
                items_imported=len(imported.customers),
                added=added,
                warnings=[
                    issue.message for issue in validation.issues
                    if issue.severity == "warning"
                ],
            )

    # =========================================================================
    # FULL BACKUP FILE (OVERWRITE)
    # =========================================================================

    def create_backup_file(self, snapshot: Snapshot) -> ExportResult:
        """Serialize the whole snapshot with a system_info block."""
        with self._store.lock:
            backup_date = utc_now_iso()
            container = {
                "schema_version": self._schema_version,
                "backup_date": backup_date,
                "data": snapshot.to_records(),
                "system_info": {
                    "platform": platform.platform(),
                    "python_version": platform.python_version(),
                    "storage_usage": self._store.storage_usage(),
                },
            }
            content = json.dumps(container, indent=2, ensure_ascii=False).encode("utf-8")
            filename = _filename(backup_date, keep_millis=False)
            logger.info(
                "backup_file_created",
                filename=filename,
                size_bytes=len(content),
                **snapshot.counts(),
            )
            return ExportResult(filename=filename, content=content, size_bytes=len(content))

    def restore_from_backup_file(
        self,
        snapshot: Snapshot,
        payload: Union[bytes, str],
        actor: Optional[str] = None,
    ) -> OperationResult:
        """
        Overwrite the records present in a backup file.

        Records the file does not carry keep their current values; the
        backup history is never taken from the file.
        """
        container, failure = self._parse("restore_file", payload)
        if failure:
            return failure

        validation, restored, present = self._validator.validate_backup_file(container)
        if not validation.is_valid:
            return self._invalid("restore_file", validation)

        actor = actor or self._store.audit_logger.default_actor
        replaced = [name for name in present if name != "backup_history"]
        with self._store.lock:
            staged = snapshot.model_copy()
            staged.replace_records(restored, names=replaced)

            failure = self._commit_replacement(
                "restore_file", snapshot, staged, BackupKind.PRE_RESTORE_BACKUP, actor,
            )
            if failure:
                self._store.audit_logger.log_operation_failed(failure)
                return failure

            self._store.record_audit(
                snapshot,
                AuditEntryBuilder.backup_restored(
                    backup_timestamp=container["backup_date"],
                    source="file",
                    actor=actor,
                ),
            )
            logger.info("backup_file_restored", records=replaced)
            return OperationResult.ok(
                "restore_file",
                backup_date=container["backup_date"],
                records_restored=replaced,
            )

