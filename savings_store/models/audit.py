"""
Audit Models for Savings Store

Every change to the stored data is recorded in the snapshot's audit log.
This provides:
1. Traceability of saves, imports, restores and migrations
2. Debugging information when data looks wrong
3. A history that travels with the data in backups and exports

DESIGN DECISION: The audit log is a bounded, most-recent-first list kept
inside the snapshot itself. Entries are never edited; old ones fall off
the end once the cap is reached.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from savings_store.models.records import utc_now_iso


class AuditAction(str, Enum):
    """
    Action tags written by this library.

    AuditEntry.action is stored as a plain string so tags written by
    the UI layer load too.
    """
    DATA_SAVED = "DATA_SAVED"
    DATA_IMPORTED = "DATA_IMPORTED"
    DATA_EXPORTED = "DATA_EXPORTED"
    BACKUP_RESTORED = "BACKUP_RESTORED"
    MIGRATION_COMPLETED = "MIGRATION_COMPLETED"


class AuditEntry(BaseModel):
    """A single audit log entry."""
    model_config = ConfigDict(extra="allow")

    timestamp: str = Field(
        default_factory=utc_now_iso,
        description="When the action happened (UTC, ISO-8601)"
    )
    action: str = Field(
        ...,
        min_length=1,
        description="Action tag, e.g. DATA_SAVED"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form, action-specific payload"
    )
    actor: str = Field(
        default="system",
        description="Who performed the action"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "actor": self.actor,
            "details": self.details,
        }


class AuditEntryBuilder:
    """
    Helper class to build audit entries with common patterns.

    Usage:
        entry = AuditEntryBuilder.data_saved(items_saved=42)
        entry = AuditEntryBuilder.backup_restored(backup_timestamp)
    """

    @staticmethod
    def data_saved(items_saved: int, actor: str = "system") -> AuditEntry:
        timestamp = utc_now_iso()
        return AuditEntry(
            timestamp=timestamp,
            action=AuditAction.DATA_SAVED.value,
            details={
                "timestamp": timestamp,
                "items_saved": items_saved,
                "user": actor,
            },
            actor=actor,
        )

    @staticmethod
    def data_imported(
        items_imported: int,
        source: str = "file",
        actor: str = "system",
    ) -> AuditEntry:
        timestamp = utc_now_iso()
        return AuditEntry(
            timestamp=timestamp,
            action=AuditAction.DATA_IMPORTED.value,
            details={
                "timestamp": timestamp,
                "source": source,
                "items_imported": items_imported,
                "user": actor,
            },
            actor=actor,
        )

    @staticmethod
    def data_exported(
        size_bytes: int,
        filename: str,
        actor: str = "system",
    ) -> AuditEntry:
        timestamp = utc_now_iso()
        return AuditEntry(
            timestamp=timestamp,
            action=AuditAction.DATA_EXPORTED.value,
            details={
                "timestamp": timestamp,
                "filename": filename,
                "size_bytes": size_bytes,
                "user": actor,
            },
            actor=actor,
        )

    @staticmethod
    def backup_restored(
        backup_timestamp: str,
        source: str = "history",
        actor: str = "system",
    ) -> AuditEntry:
        timestamp = utc_now_iso()
        return AuditEntry(
            timestamp=timestamp,
            action=AuditAction.BACKUP_RESTORED.value,
            details={
                "timestamp": timestamp,
                "backup_timestamp": backup_timestamp,
                "source": source,
                "user": actor,
            },
            actor=actor,
        )

    @staticmethod
    def migration_completed(
        from_version: str,
        to_version: str,
        customers: int,
        transactions: int,
        users: int,
        actor: str = "system",
    ) -> AuditEntry:
        timestamp = utc_now_iso()
        return AuditEntry(
            timestamp=timestamp,
            action=AuditAction.MIGRATION_COMPLETED.value,
            details={
                "timestamp": timestamp,
                "from_version": from_version,
                "to_version": to_version,
                "customers": customers,
                "transactions": transactions,
                "users": users,
                "user": actor,
            },
            actor=actor,
        )
