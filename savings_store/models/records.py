"""
Core Data Models for Savings Store

These models define the shape of every record persisted by the store.
They are designed to:
1. Accept what previous versions of the application wrote
2. Round-trip unknown fields untouched (extra="allow")
3. Serialize to exactly the key names found in storage and backup files

DESIGN DECISION: Validation here is deliberately shallow. Records coming
from storage or from an imported file are checked for shape (types of
the fields we rely on) and nothing more. Business rules live in the
store, migrator and exchanger.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


RECORD_NAMES = (
    "settings",
    "users",
    "customers",
    "transactions",
    "loans",
    "backup_history",
    "audit_log",
    "metadata",
)

# Records that make up the business data (the logs are history about it)
DATA_RECORD_NAMES = ("settings", "users", "customers", "transactions", "loans", "metadata")

CUSTOMER_ID_FLOOR = 100
TRANSACTION_ID_FLOOR = 1000


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CustomerStatus(str, Enum):
    """Customer account status."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class TransactionType(str, Enum):
    """
    Known ledger entry types.

    Transaction.type is stored as a plain string so types added by later
    versions of the application still load.
    """
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    WITHDRAWAL = "WITHDRAWAL"
    LOAN = "LOAN"
    LOAN_REPAY = "LOAN_REPAY"


SAVINGS_DEPOSIT_TYPES = frozenset({
    TransactionType.DAILY.value,
    TransactionType.WEEKLY.value,
    TransactionType.MONTHLY.value,
})


class TransactionStatus(str, Enum):
    """Transaction status."""
    COMPLETED = "completed"
    REVERSED = "reversed"


class UserRole(str, Enum):
    """Known user roles. Other role strings are allowed and get no permissions."""
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    THRIFT_COLLECTOR = "thrift_collector"


class BackupKind(str, Enum):
    """Why a backup was taken."""
    MANUAL = "manual"
    AUTO_BACKUP = "auto_backup"
    PRE_IMPORT_BACKUP = "pre_import_backup"
    PRE_RESTORE_BACKUP = "pre_restore_backup"


# =============================================================================
# PERMISSIONS
# =============================================================================

CAPABILITIES = (
    "member_creation",
    "transaction_posting",
    "withdrawal",
    "loan_management",
    "account_closure",
    "account_reactivation",
    "view_statements",
    "search_customers",
    "generate_reports",
    "manage_users",
    "import_export",
    "system_settings",
    "drive_management",
)

_ROLE_GRANTS = {
    UserRole.SUPERVISOR.value: frozenset({
        "member_creation",
        "transaction_posting",
        "withdrawal",
        "loan_management",
        "account_closure",
        "account_reactivation",
        "view_statements",
        "search_customers",
        "generate_reports",
    }),
    UserRole.THRIFT_COLLECTOR.value: frozenset({
        "member_creation",
        "transaction_posting",
        "withdrawal",
        "loan_management",
        "view_statements",
        "search_customers",
    }),
}


def default_permissions(role: Optional[str]) -> dict[str, bool]:
    """
    Default permission set for a role.

    admin gets every capability; unknown roles get none.
    """
    if role == UserRole.ADMIN.value:
        return {capability: True for capability in CAPABILITIES}
    granted = _ROLE_GRANTS.get(role or "", frozenset())
    return {capability: capability in granted for capability in CAPABILITIES}


# =============================================================================
# ENTITY MODELS
# =============================================================================

class Customer(BaseModel):
    """
    A cooperative member.

    Balances are derived from the ledger and cached on the record.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int = Field(
        ...,
        description="Unique numeric customer id"
    )
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    date_joined: Optional[str] = Field(
        default=None,
        description="Join date (YYYY-MM-DD)"
    )
    status: CustomerStatus = CustomerStatus.ACTIVE

    # Derived balances (signed, uncapped)
    balance_savings: float = 0.0
    balance_loans: float = 0.0

    closure_date: Optional[str] = None
    closure_reason: str = ""

    # Audit fields
    created_by: str = "system"
    last_updated: Optional[str] = None


class Transaction(BaseModel):
    """
    A single ledger entry.

    The sign of `amount` is implied by `type`. `customer_id` is not
    enforced as a reference; orphans are allowed.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    tx_id: Union[int, float, str] = Field(
        ...,
        alias="txId",
        description="Unique transaction id"
    )
    customer_id: Optional[int] = None
    type: str = Field(
        ...,
        description="Ledger type (DAILY, WEEKLY, MONTHLY, WITHDRAWAL, LOAN, LOAN_REPAY, ...)"
    )
    amount: float = 0.0
    date: Optional[str] = None
    value_date: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED
    processed_by: str = "system"
    reference: str = ""
    notes: str = ""
    reversal_of: Optional[Union[int, float, str]] = Field(
        default=None,
        description="Id of the transaction this entry reverses"
    )


class User(BaseModel):
    """An application user. password_hash is opaque and never rehashed."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Union[int, str]
    username: str = Field(
        ...,
        min_length=1,
        description="Unique login name"
    )
    password_hash: Optional[str] = None
    name: Optional[str] = None
    role: str = UserRole.THRIFT_COLLECTOR.value
    permissions: dict[str, bool] = Field(default_factory=dict)
    created: Optional[str] = None
    created_by: str = "system"
    last_login: Optional[str] = None
    active: bool = True


class Loan(BaseModel):
    """A loan. Only the fields the store aggregates over are typed."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    loan_id: Optional[Union[int, str]] = Field(
        default=None,
        alias="loanId"
    )
    amount_outstanding: float = 0.0
    status: str = "active"


class Metadata(BaseModel):
    """
    Derived aggregate over the live collections.

    Recomputed on every save; never edited independently.
    Extra stamps (e.g. migration_version) are carried forward.
    """
    model_config = ConfigDict(extra="allow")

    total_customers: int = 0
    total_transactions: int = 0
    total_savings: float = 0.0
    total_loans: float = 0.0
    last_customer_id: int = CUSTOMER_ID_FLOOR
    last_transaction_id: int = TRANSACTION_ID_FLOOR
    last_updated: str = Field(default_factory=utc_now_iso)


class BackupRecord(BaseModel):
    """
    One entry in the backup history.

    `data` is a detached copy of the business records at backup time.
    Backups never embed the backup history or the audit log.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kind: BackupKind = Field(
        ...,
        alias="type",
        description="Why this backup was taken"
    )
    timestamp: str = Field(default_factory=utc_now_iso)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, int] = Field(
        default_factory=dict,
        description="Item counts: customers, transactions, users"
    )
    size_bytes: Optional[int] = Field(
        default=None,
        ge=0,
        description="Size of the exported file, for backups written to a file"
    )


# =============================================================================
# DEFAULTS
# =============================================================================

def default_settings() -> dict[str, Any]:
    """Fresh copy of the application's default settings."""
    return {
        "app_name": "OBATA SMART SAVINGS",
        "currency": "₦",
        "default_interest_rate": 5.0,
        "minimum_savings": 100,
        "maximum_loan_multiplier": 2.0,
        "auto_backup_interval": "daily",
        "backup_retention_days": 30,
        "theme": "light",
        "language": "en",
        "date_format": "dd/mm/yyyy",
        "timezone": "Africa/Lagos",
    }


def default_users() -> list[User]:
    """The seeded administrator used when no users record exists."""
    return [
        User(
            id=1,
            username="Admin",
            password_hash="admin123",
            name="Administrator",
            role=UserRole.ADMIN.value,
            permissions=default_permissions(UserRole.ADMIN.value),
            created=utc_now_iso(),
            last_login=None,
            active=True,
        )
    ]
