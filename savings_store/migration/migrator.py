"""
Schema Migration 2.2 → 2.3

The 2.2 application kept ad-hoc records under the `obata_` prefix:
auth, members (object keyed by member id), ledger (list of entries),
last_id, users and settings. This module turns them into the eight
2.3 snapshot records exactly once and archives the originals.

DESIGN DECISION: The new snapshot, the archive record and the removal
of every legacy key are written in ONE atomic storage batch. There is no
window in which new data exists but the legacy keys are still live, so a
retry never re-migrates over already-migrated data.

Other decisions:
- Missing transaction ids come from a strictly increasing counter above
  the highest id in the ledger (no timestamp + random ids)
- A reversed legacy entry becomes status "reversed" with reversal_of
  left null; the legacy data never names the reversing entry
- A legacy store with no users gets the seeded admin user
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from savings_store.models.audit import AuditEntryBuilder
from savings_store.models.records import (
    CUSTOMER_ID_FLOOR,
    SAVINGS_DEPOSIT_TYPES,
    TRANSACTION_ID_FLOOR,
    Customer,
    CustomerStatus,
    Metadata,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    default_permissions,
    default_settings,
    default_users,
    utc_now_iso,
)
from savings_store.models.results import ErrorKind, OperationResult
from savings_store.models.snapshot import Snapshot
from savings_store.services.storage import (
    InvalidFormat,
    ReadFailure,
    decode_value,
    encode_value,
)
from savings_store.snapshot.store import SnapshotStore, as_int


logger = structlog.get_logger(__name__)

LEGACY_KEYS = ("auth", "members", "ledger", "last_id", "users", "settings")
DEFAULT_LEGACY_PREFIX = "obata_"
DEFAULT_ARCHIVE_NAME = "archive_v22"
FROM_VERSION = "2.2"
TO_VERSION = "2.3"
MIGRATION_VERSION = "2.2_to_2.3"


def _legacy_int(value: Any) -> Optional[int]:
    """Integer reading of a legacy id, or None when it has none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def _amount(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _today() -> str:
    return utc_now_iso()[:10]


def _customer_entries(customer_id: int, ledger: list[dict]) -> list[dict]:
    return [
        tx for tx in ledger
        if _legacy_int(tx.get("cust")) == customer_id and not tx.get("reversed")
    ]


def savings_balance(customer_id: int, ledger: list[dict]) -> float:
    """Deposits (DAILY/WEEKLY/MONTHLY) minus withdrawals over non-reversed entries."""
    balance = 0.0
    for tx in _customer_entries(customer_id, ledger):
        if tx.get("type") in SAVINGS_DEPOSIT_TYPES:
            balance += _amount(tx.get("amount"))
        elif tx.get("type") == TransactionType.WITHDRAWAL.value:
            balance -= _amount(tx.get("amount"))
    return balance


def loan_balance(customer_id: int, ledger: list[dict]) -> float:
    """LOAN minus LOAN_REPAY amounts over non-reversed entries."""
    balance = 0.0
    for tx in _customer_entries(customer_id, ledger):
        if tx.get("type") == TransactionType.LOAN.value:
            balance += _amount(tx.get("amount"))
        elif tx.get("type") == TransactionType.LOAN_REPAY.value:
            balance -= _amount(tx.get("amount"))
    return balance


class LegacyMigrator:
    """
    One-shot, idempotent migration of 2.2 records into the 2.3 snapshot.

    Safe to call on every start-up: once the current settings record or
    the archive exists, migrate() does nothing.
    """

    def __init__(
        self,
        store: SnapshotStore,
        legacy_prefix: str = DEFAULT_LEGACY_PREFIX,
        archive_name: str = DEFAULT_ARCHIVE_NAME,
    ):
        self._store = store
        self._storage = store.storage
        self._legacy_prefix = legacy_prefix
        self._archive_name = archive_name

    def legacy_key(self, name: str) -> str:
        return self._legacy_prefix + name

    @property
    def archive_key(self) -> str:
        return self._store.key_for(self._archive_name)

    def is_already_migrated(self) -> bool:
        return (
            self._store.has_record("settings")
            or self._storage.get(self.archive_key) is not None
        )

    def needs_migration(self) -> bool:
        """Legacy members exist and there is no current-schema data yet."""
        return (
            self._storage.get(self.legacy_key("members")) is not None
            and not self._store.has_record("settings")
        )

    def load_legacy_data(self) -> Optional[dict[str, Any]]:
        """
        Read every legacy key that is present.

        Returns:
            Decoded legacy records by name, or None when there are none

        Raises:
            ReadFailure: If a legacy record is not valid JSON
        """
        data = {}
        for name in LEGACY_KEYS:
            value = decode_value(self._storage.get(self.legacy_key(name)))
            if value is not None:
                data[name] = value
        return data or None

    # =========================================================================
    # TRANSFORM
    # =========================================================================

    def _transform_customers(self, members: Any, ledger: list[dict]) -> list[Customer]:
        if not isinstance(members, dict):
            raise InvalidFormat("Legacy members record must be an object keyed by id")

        now = utc_now_iso()
        customers = []
        for key, member in members.items():
            customer_id = _legacy_int(key)
            if customer_id is None or not isinstance(member, dict):
                logger.warning("legacy_member_skipped", member_key=key)
                continue

            customers.append(Customer(
                id=customer_id,
                name=member.get("name") or "",
                phone=member.get("phone") or "",
                email=member.get("email") or "",
                address=member.get("address") or "",
                date_joined=member.get("date") or _today(),
                status=(
                    CustomerStatus.INACTIVE
                    if member.get("active") is False
                    else CustomerStatus.ACTIVE
                ),
                balance_savings=savings_balance(customer_id, ledger),
                balance_loans=loan_balance(customer_id, ledger),
                closure_date=member.get("closureDate") or None,
                closure_reason=member.get("closureReason") or "",
                created_by=member.get("createdBy") or "system",
                last_updated=now,
            ))
        return customers

    def _transform_transactions(self, ledger: list[dict]) -> list[Transaction]:
        now = utc_now_iso()
        next_id = max(
            [TRANSACTION_ID_FLOOR]
            + [as_int(tx.get("txId")) for tx in ledger if tx.get("txId") not in (None, "")]
        )

        transactions = []
        for tx in ledger:
            tx_id = tx.get("txId")
            if tx_id in (None, ""):
                next_id += 1
                tx_id = next_id

            transactions.append(Transaction(
                tx_id=tx_id,
                customer_id=_legacy_int(tx.get("cust")),
                type=str(tx.get("type") or ""),
                amount=_amount(tx.get("amount")),
                date=tx.get("date") or now,
                value_date=tx.get("valueDate") or tx.get("date") or now,
                status=(
                    TransactionStatus.REVERSED
                    if tx.get("reversed")
                    else TransactionStatus.COMPLETED
                ),
                processed_by=tx.get("processedBy") or "system",
                reference=tx.get("ref") or "",
                notes=tx.get("notes") or "",
                reversal_of=None,
            ))

        seen = set()
        duplicates = 0
        for tx in transactions:
            if tx.tx_id in seen:
                duplicates += 1
            seen.add(tx.tx_id)
        if duplicates:
            logger.warning("legacy_duplicate_transaction_ids", count=duplicates)

        return transactions

    def _transform_users(self, legacy_users: Any) -> list[User]:
        if not isinstance(legacy_users, list) or not legacy_users:
            return default_users()

        now = utc_now_iso()
        next_id = max([0] + [as_int(user.get("id")) for user in legacy_users if isinstance(user, dict)])

        users = []
        usernames = set()
        for user in legacy_users:
            if not isinstance(user, dict) or not user.get("username"):
                logger.warning("legacy_user_skipped", reason="missing username")
                continue
            if user["username"] in usernames:
                logger.warning("legacy_user_skipped", reason="duplicate username", username=user["username"])
                continue
            usernames.add(user["username"])

            user_id = user.get("id")
            if user_id in (None, ""):
                next_id += 1
                user_id = next_id

            role = user.get("role") or ""
            users.append(User(
                id=user_id,
                username=user["username"],
                password_hash=user.get("password"),
                name=user.get("name"),
                role=role,
                permissions=user.get("permissions") or default_permissions(role),
                created=user.get("created") or now,
                created_by=user.get("createdBy") or "system",
                last_login=user.get("lastLogin"),
                active=user.get("active") is not False,
            ))

        return users or default_users()

    def transform(self, legacy: dict[str, Any]) -> Snapshot:
        """
        Build a 2.3 snapshot from decoded legacy records.

        Raises:
            InvalidFormat: If a legacy record has the wrong container type
            ValidationError: If a transformed record fails its model
        """
        ledger = legacy.get("ledger") or []
        if not isinstance(ledger, list):
            raise InvalidFormat("Legacy ledger record must be a list")
        ledger = [tx for tx in ledger if isinstance(tx, dict)]

        customers = self._transform_customers(legacy.get("members") or {}, ledger)
        transactions = self._transform_transactions(ledger)
        users = self._transform_users(legacy.get("users"))

        settings = default_settings()
        if isinstance(legacy.get("settings"), dict):
            settings.update(legacy["settings"])

        now = utc_now_iso()
        metadata = Metadata(
            total_customers=len(customers),
            total_transactions=len(transactions),
            total_savings=sum(customer.balance_savings for customer in customers),
            total_loans=0.0,
            last_customer_id=_legacy_int(legacy.get("last_id")) or CUSTOMER_ID_FLOOR,
            last_transaction_id=TRANSACTION_ID_FLOOR,
            last_updated=now,
            migration_version=MIGRATION_VERSION,
            migration_date=now,
        )

        return Snapshot(
            settings=settings,
            users=users,
            customers=customers,
            transactions=transactions,
            loans=[],
            backup_history=[],
            audit_log=[],
            metadata=metadata,
        )

    # =========================================================================
    # MIGRATE
    # =========================================================================

    def migrate(self) -> OperationResult:
        """
        Run the migration if it has not run yet.

        Returns success with details.migrated False when there is nothing
        to do (already migrated, or no legacy data).
        """
        with self._store.lock:
            if self.is_already_migrated():
                logger.info("migration_skipped", reason="already_migrated")
                legacy_left = [
                    name for name in LEGACY_KEYS
                    if self._storage.get(self.legacy_key(name)) is not None
                ]
                if legacy_left:
                    logger.warning("legacy_keys_left_untouched", keys=legacy_left)
                return OperationResult.ok("migrate", migrated=False, reason="already_migrated")

            try:
                legacy = self.load_legacy_data()
            except ReadFailure as e:
                return OperationResult.failed("migrate", ErrorKind.READ_FAILURE, str(e))

            if not legacy:
                logger.info("migration_skipped", reason="no_legacy_data")
                return OperationResult.ok("migrate", migrated=False, reason="no_legacy_data")

            try:
                snapshot = self.transform(legacy)
            except InvalidFormat as e:
                return OperationResult.failed("migrate", ErrorKind.INVALID_FORMAT, str(e))
            except ValidationError as e:
                return OperationResult.failed(
                    "migrate",
                    ErrorKind.INVALID_FORMAT,
                    f"Legacy data could not be converted: {e.error_count()} errors",
                )

            audit = self._store.audit_logger
            audit.record(snapshot, AuditEntryBuilder.migration_completed(
                from_version=FROM_VERSION,
                to_version=TO_VERSION,
                customers=len(snapshot.customers),
                transactions=len(snapshot.transactions),
                users=len(snapshot.users),
                actor=audit.default_actor,
            ))

            saved = self._store.save(
                snapshot,
                extra_writes={self.archive_key: encode_value(legacy)},
                removals=[self.legacy_key(name) for name in LEGACY_KEYS],
            )
            if not saved.success:
                return OperationResult.failed("migrate", saved.error_kind, saved.error_message)

            logger.info(
                "migration_completed",
                customers=len(snapshot.customers),
                transactions=len(snapshot.transactions),
                users=len(snapshot.users),
            )
            return OperationResult.ok(
                "migrate",
                migrated=True,
                customers=len(snapshot.customers),
                transactions=len(snapshot.transactions),
                users=len(snapshot.users),
                archived_keys=sorted(legacy),
            )
