"""
Snapshot Model

The snapshot is the full set of eight named records the store persists.
It is an explicit object owned by the caller: store operations take it,
mutate it in place, and never keep a hidden global copy.
"""

from typing import Any

from pydantic import BaseModel, Field

from savings_store.models.audit import AuditEntry
from savings_store.models.records import (
    DATA_RECORD_NAMES,
    RECORD_NAMES,
    BackupRecord,
    Customer,
    Loan,
    Metadata,
    Transaction,
    User,
    default_settings,
    default_users,
)


class Snapshot(BaseModel):
    """
    In-memory copy of everything the store persists.

    Every field defaults to what an absent storage record means,
    so Snapshot() is the first-run state.
    """

    settings: dict[str, Any] = Field(default_factory=default_settings)
    users: list[User] = Field(default_factory=default_users)
    customers: list[Customer] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    loans: list[Loan] = Field(default_factory=list)
    backup_history: list[BackupRecord] = Field(default_factory=list)
    audit_log: list[AuditEntry] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)

    @classmethod
    def from_records(cls, records: dict[str, Any]) -> "Snapshot":
        """Build a snapshot from raw records; absent names take their defaults."""
        present = {
            name: value
            for name, value in records.items()
            if name in RECORD_NAMES and value is not None
        }
        return cls.model_validate(present)

    def to_records(self) -> dict[str, Any]:
        """JSON-ready dict keyed by record name, using storage field names."""
        return self.model_dump(mode="json", by_alias=True)

    def data_copy(self) -> dict[str, Any]:
        """Detached JSON-ready copy of the business records (no logs)."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            include=set(DATA_RECORD_NAMES),
        )

    def counts(self) -> dict[str, int]:
        return {
            "customers": len(self.customers),
            "transactions": len(self.transactions),
            "users": len(self.users),
        }

    def replace_records(self, other: "Snapshot", names=DATA_RECORD_NAMES) -> None:
        """Replace the named records of this snapshot with those of `other`, in place."""
        for name in names:
            setattr(self, name, getattr(other, name))
