"""
Snapshot Store

DESIGN DECISION: The store is the sole writer of persisted state, but it
does not own a hidden "current data" object. Callers hold a Snapshot and
pass it to every operation; the store mutates it in place only after the
corresponding write has been accepted by storage.

GUARANTEES:
- load() never fails; anything absent or unreadable degrades to defaults
- save() writes all eight records in one atomic batch
- Metadata is recomputed from the collections on every save
- Backup history and audit log stay bounded, most recent first
- Operations on one store are serialized by a re-entrant lock, so a
  timer-driven backup never sees a half-applied save or restore
"""

import threading
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from savings_store.audit import AuditLogger
from savings_store.models.audit import AuditEntry, AuditEntryBuilder
from savings_store.models.records import (
    CUSTOMER_ID_FLOOR,
    DATA_RECORD_NAMES,
    RECORD_NAMES,
    TRANSACTION_ID_FLOOR,
    BackupKind,
    BackupRecord,
    Customer,
    Loan,
    Metadata,
    Transaction,
    User,
)
from savings_store.models.results import ErrorKind, OperationResult
from savings_store.models.snapshot import Snapshot
from savings_store.services.storage import (
    InvalidFormat,
    KeyValueStorage,
    NotFoundError,
    ReadFailure,
    StorageError,
    decode_value,
    encode_value,
)


logger = structlog.get_logger(__name__)

DEFAULT_KEY_PREFIX = "obata_v2_"
DEFAULT_BACKUP_HISTORY_LIMIT = 50


def as_int(value: Any) -> int:
    """Leading-integer reading of an id; 0 when there is none."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else 0
    try:
        return int(str(value).strip())
    except ValueError:
        pass
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 0


def derive_metadata(snapshot: Snapshot, previous: Optional[Metadata] = None) -> Metadata:
    """
    Compute Metadata from a snapshot's collections.

    Totals and counts depend only on the collections. The last-id fields
    are high-water marks: they never drop below the previous value, so
    ids of deleted records are not handed out again.
    """
    previous = previous or snapshot.metadata
    carried = dict(previous.model_extra or {})

    last_customer_id = max(
        [CUSTOMER_ID_FLOOR, previous.last_customer_id]
        + [as_int(customer.id) for customer in snapshot.customers]
    )
    last_transaction_id = max(
        [TRANSACTION_ID_FLOOR, previous.last_transaction_id]
        + [as_int(tx.tx_id) for tx in snapshot.transactions]
    )

    return Metadata(
        total_customers=len(snapshot.customers),
        total_transactions=len(snapshot.transactions),
        total_savings=sum(customer.balance_savings for customer in snapshot.customers),
        total_loans=sum(
            loan.amount_outstanding
            for loan in snapshot.loans
            if loan.status == "active"
        ),
        last_customer_id=last_customer_id,
        last_transaction_id=last_transaction_id,
        **carried,
    )


def _error_kind(error: StorageError) -> ErrorKind:
    if isinstance(error, ReadFailure):
        return ErrorKind.READ_FAILURE
    if isinstance(error, NotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, InvalidFormat):
        return ErrorKind.INVALID_FORMAT
    return ErrorKind.STORAGE_WRITE_FAILURE


# List records are validated item by item against these models
_ITEM_MODELS = {
    "users": User,
    "customers": Customer,
    "transactions": Transaction,
    "loans": Loan,
    "backup_history": BackupRecord,
    "audit_log": AuditEntry,
}


class SnapshotStore:
    """
    Reads and writes the eight named snapshot records.

    Each record is stored as JSON text under `key_prefix + name`.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        audit_logger: Optional[AuditLogger] = None,
        backup_history_limit: int = DEFAULT_BACKUP_HISTORY_LIMIT,
    ):
        self._storage = storage
        self._prefix = key_prefix
        self._audit = audit_logger or AuditLogger()
        self._backup_limit = backup_history_limit
        self._lock = threading.RLock()

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    @property
    def key_prefix(self) -> str:
        return self._prefix

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing every operation on this store."""
        return self._lock

    def key_for(self, name: str) -> str:
        return self._prefix + name

    def has_record(self, name: str) -> bool:
        return self._storage.get(self.key_for(name)) is not None

    # =========================================================================
    # LOAD / SAVE
    # =========================================================================

    def _read_record(self, name: str) -> Any:
        try:
            raw = decode_value(self._storage.get(self.key_for(name)))
        except ReadFailure as e:
            logger.warning("record_unreadable", record=name, error=str(e))
            return None
        if raw is None:
            return None

        item_model = _ITEM_MODELS.get(name)
        if item_model is not None and isinstance(raw, list):
            return self._read_items(name, item_model, raw)

        try:
            return getattr(Snapshot.model_validate({name: raw}), name)
        except ValidationError as e:
            logger.warning("record_invalid", record=name, error_count=e.error_count())
            return None

    @staticmethod
    def _read_items(name: str, item_model: Any, raw: list) -> list:
        """
        Keep the valid items of a list record; drop and log the rest.

        Returns None when every item is invalid, so the record takes its
        default (the seeded admin for users).
        """
        items = []
        for position, value in enumerate(raw):
            try:
                items.append(item_model.model_validate(value))
            except ValidationError as e:
                logger.warning(
                    "record_item_dropped",
                    record=name,
                    index=position,
                    error_count=e.error_count(),
                )
        if raw and not items:
            return None
        return items

    def load(self) -> Snapshot:
        """
        Read every named record from storage.

        Absent or unreadable records are replaced by their defaults:
        empty collections, the seeded admin user, default settings and
        zeroed metadata.
        """
        with self._lock:
            fields = {}
            for name in RECORD_NAMES:
                value = self._read_record(name)
                if value is not None:
                    fields[name] = value

            snapshot = Snapshot(**fields)
            logger.info(
                "snapshot_loaded",
                records_found=len(fields),
                customers=len(snapshot.customers),
                transactions=len(snapshot.transactions),
            )
            return snapshot

    def encode_records(self, snapshot: Snapshot) -> dict[str, str]:
        """Serialize every named record to its storage key."""
        records = snapshot.to_records()
        return {self.key_for(name): encode_value(records[name]) for name in RECORD_NAMES}

    def save(
        self,
        snapshot: Snapshot,
        extra_writes: Optional[dict[str, str]] = None,
        removals: Iterable[str] = (),
        actor: Optional[str] = None,
    ) -> OperationResult:
        """
        Recompute metadata, log DATA_SAVED and persist all records atomically.

        `extra_writes` and `removals` (full storage keys) join the same
        batch. The snapshot is updated only once storage accepts it, so a
        failed save can simply be retried.
        """
        with self._lock:
            staged = snapshot.model_copy()
            staged.audit_log = list(snapshot.audit_log)
            staged.metadata = derive_metadata(snapshot)

            items_saved = staged.metadata.total_customers + staged.metadata.total_transactions
            entry = AuditEntryBuilder.data_saved(
                items_saved=items_saved,
                actor=actor or self._audit.default_actor,
            )
            self._audit.record(staged, entry)

            writes = self.encode_records(staged)
            writes.update(extra_writes or {})

            try:
                self._storage.commit(writes, removals)
            except StorageError as e:
                result = OperationResult.failed("save", _error_kind(e), str(e))
                self._audit.log_operation_failed(result)
                return result

            snapshot.metadata = staged.metadata
            snapshot.audit_log = staged.audit_log
            logger.info("snapshot_saved", items_saved=items_saved)
            return OperationResult.ok(
                "save",
                items_saved=items_saved,
                metadata=staged.metadata.model_dump(mode="json"),
            )

    def record_audit(self, snapshot: Snapshot, entry: AuditEntry) -> OperationResult:
        """Append an audit entry and persist the audit log record only."""
        with self._lock:
            staged = snapshot.model_copy()
            staged.audit_log = list(snapshot.audit_log)
            self._audit.record(staged, entry)

            payload = [item.model_dump(mode="json") for item in staged.audit_log]
            try:
                self._storage.set(self.key_for("audit_log"), encode_value(payload))
            except StorageError as e:
                result = OperationResult.failed("record_audit", _error_kind(e), str(e))
                self._audit.log_operation_failed(result, details={"action": entry.action})
                return result

            snapshot.audit_log = staged.audit_log
            return OperationResult.ok("record_audit", action=entry.action)

    # =========================================================================
    # BACKUP / RESTORE
    # =========================================================================

    def create_backup(
        self,
        snapshot: Snapshot,
        kind: Union[BackupKind, str] = BackupKind.MANUAL,
        size_bytes: Optional[int] = None,
    ) -> OperationResult:
        """
        Prepend a copy of the snapshot's data to the backup history.

        History is truncated to the configured limit and only the
        backup_history record is persisted.
        """
        with self._lock:
            record = BackupRecord(
                kind=BackupKind(kind),
                data=snapshot.data_copy(),
                metadata=snapshot.counts(),
                size_bytes=size_bytes,
            )
            history = [record] + list(snapshot.backup_history)
            del history[self._backup_limit:]

            payload = [item.model_dump(mode="json", by_alias=True) for item in history]
            try:
                self._storage.set(self.key_for("backup_history"), encode_value(payload))
            except StorageError as e:
                result = OperationResult.failed(
                    "create_backup", _error_kind(e), str(e), kind=record.kind.value,
                )
                self._audit.log_operation_failed(result)
                return result

            snapshot.backup_history = history
            logger.info("backup_created", kind=record.kind.value, history_size=len(history))
            return OperationResult.ok(
                "create_backup",
                kind=record.kind.value,
                timestamp=record.timestamp,
                history_size=len(history),
            )

    @staticmethod
    def _restorable_backup(snapshot: Snapshot, index: int) -> BackupRecord:
        """
        The history entry at `index`, if it carries data to restore.

        Raises NotFoundError for an index outside the history and
        InvalidFormat for an entry without embedded customers and
        transactions (a bare log line such as the web app writes).
        """
        if index < 0 or index >= len(snapshot.backup_history):
            raise NotFoundError(
                f"Backup not found: index {index} of {len(snapshot.backup_history)}"
            )
        backup = snapshot.backup_history[index]
        if not backup.data or any(
            name not in backup.data for name in ("customers", "transactions")
        ):
            raise InvalidFormat(
                f"Backup {backup.timestamp} has no embedded data to restore"
            )
        return backup

    def restore_backup(
        self,
        snapshot: Snapshot,
        index: int,
        actor: Optional[str] = None,
    ) -> OperationResult:
        """
        Replace the snapshot's data with the backup at `index`.

        A pre_restore_backup of the current state is taken first so the
        restore itself can be undone. The logs are kept.
        """
        with self._lock:
            try:
                backup = self._restorable_backup(snapshot, index)
            except StorageError as e:
                result = OperationResult.failed(
                    "restore_backup", _error_kind(e), str(e), index=index,
                )
                self._audit.log_operation_failed(result)
                return result

            try:
                restored = Snapshot.from_records(backup.data)
            except ValidationError as e:
                return OperationResult.failed(
                    "restore_backup",
                    ErrorKind.INVALID_FORMAT,
                    f"Backup data is malformed: {e.error_count()} errors",
                )

            safety = self.create_backup(snapshot, BackupKind.PRE_RESTORE_BACKUP)
            if not safety.success:
                return OperationResult.failed(
                    "restore_backup",
                    safety.error_kind,
                    f"Safety backup failed: {safety.error_message}",
                )

            staged = snapshot.model_copy()
            staged.replace_records(
                restored,
                names=[name for name in DATA_RECORD_NAMES if name in backup.data],
            )
            saved = self.save(staged, actor=actor)
            if not saved.success:
                return OperationResult.failed(
                    "restore_backup", saved.error_kind, saved.error_message,
                )
            snapshot.replace_records(staged, names=RECORD_NAMES)

            self.record_audit(
                snapshot,
                AuditEntryBuilder.backup_restored(
                    backup_timestamp=backup.timestamp,
                    actor=actor or self._audit.default_actor,
                ),
            )
            logger.info("backup_restored", backup_timestamp=backup.timestamp)
            return OperationResult.ok(
                "restore_backup",
                backup_timestamp=backup.timestamp,
                backup_kind=backup.kind.value,
            )

    # =========================================================================
    # HOUSEKEEPING
    # =========================================================================

    def clear_all(self, snapshot: Snapshot) -> OperationResult:
        """Remove every key under the store's prefix and reset the snapshot."""
        with self._lock:
            keys = self._storage.keys(self._prefix)
            try:
                self._storage.commit({}, removals=keys)
            except StorageError as e:
                return OperationResult.failed("clear_all", _error_kind(e), str(e))

            snapshot.replace_records(Snapshot(), names=RECORD_NAMES)
            logger.warning("all_data_cleared", keys_removed=len(keys))
            return OperationResult.ok("clear_all", keys_removed=len(keys))

    def storage_usage(self) -> int:
        """Characters stored under the store's prefix."""
        return self._storage.storage_usage(self._prefix)
