"""
Data Models Package

This package contains all Pydantic models used in the Savings Store.
All data read from storage or imported from files must conform to these schemas.
"""

from savings_store.models.records import (
    CAPABILITIES,
    DATA_RECORD_NAMES,
    RECORD_NAMES,
    BackupKind,
    BackupRecord,
    Customer,
    CustomerStatus,
    Loan,
    Metadata,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserRole,
    default_permissions,
    default_settings,
    default_users,
    utc_now_iso,
)
from savings_store.models.audit import (
    AuditAction,
    AuditEntry,
    AuditEntryBuilder,
)
from savings_store.models.snapshot import Snapshot
from savings_store.models.results import (
    ErrorKind,
    ExportResult,
    OperationResult,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Record models
    "CAPABILITIES",
    "DATA_RECORD_NAMES",
    "RECORD_NAMES",
    "BackupKind",
    "BackupRecord",
    "Customer",
    "CustomerStatus",
    "Loan",
    "Metadata",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserRole",
    "default_permissions",
    "default_settings",
    "default_users",
    "utc_now_iso",
    # Audit models
    "AuditAction",
    "AuditEntry",
    "AuditEntryBuilder",
    # Snapshot
    "Snapshot",
    # Results
    "ErrorKind",
    "ExportResult",
    "OperationResult",
    "ValidationIssue",
    "ValidationResult",
]
