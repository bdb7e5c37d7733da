"""
Tests for Savings Store models

Test strategy:
1. Records accept what storage and older versions wrote
2. Serialization uses the storage key names (txId, loanId, type)
3. Defaults match a first run
"""

import pytest
from pydantic import ValidationError

from savings_store.models import (
    CAPABILITIES,
    AuditAction,
    AuditEntryBuilder,
    BackupKind,
    BackupRecord,
    Customer,
    CustomerStatus,
    Loan,
    Metadata,
    Snapshot,
    Transaction,
    TransactionStatus,
    User,
    ValidationIssue,
    ValidationResult,
    default_permissions,
)


class TestRecordModels:
    """Tests for the entity records."""

    def test_customer_defaults(self):
        """Test Customer defaults to active with zero balances."""
        customer = Customer(id=101, name="Ada")
        assert customer.status == CustomerStatus.ACTIVE
        assert customer.balance_savings == 0.0
        assert customer.created_by == "system"

    def test_customer_rejects_unknown_status(self):
        """Test that status must be active or inactive."""
        with pytest.raises(ValidationError):
            Customer(id=101, status="frozen")

    def test_customer_keeps_unknown_fields(self):
        """Test that fields written by the UI survive a round trip."""
        customer = Customer.model_validate({"id": 101, "nickname": "A"})
        assert customer.model_dump(mode="json")["nickname"] == "A"

    def test_transaction_uses_txid_alias(self):
        """Test Transaction reads and writes the txId key."""
        tx = Transaction.model_validate({"txId": 1001, "type": "DAILY", "amount": 50})
        assert tx.tx_id == 1001
        dumped = tx.model_dump(mode="json", by_alias=True)
        assert dumped["txId"] == 1001
        assert "tx_id" not in dumped
        assert dumped["status"] == "completed"

    def test_transaction_accepts_string_ids(self):
        """Test ids written as strings by older versions still load."""
        tx = Transaction.model_validate({"txId": "1700000000123", "type": "LOAN"})
        assert tx.tx_id == "1700000000123"

    def test_transaction_reversed_status(self):
        """Test reversed status parses."""
        tx = Transaction(tx_id=1, type="DAILY", status="reversed")
        assert tx.status == TransactionStatus.REVERSED

    def test_user_requires_username(self):
        """Test that an empty username is rejected."""
        with pytest.raises(ValidationError):
            User(id=1, username="")

    def test_loan_uses_loanid_alias(self):
        """Test Loan reads the loanId key."""
        loan = Loan.model_validate({"loanId": "L1", "amount_outstanding": 200})
        assert loan.loan_id == "L1"
        assert loan.model_dump(by_alias=True)["loanId"] == "L1"

    def test_backup_record_uses_type_key(self):
        """Test BackupRecord stores its kind under 'type'."""
        record = BackupRecord(kind=BackupKind.AUTO_BACKUP)
        dumped = record.model_dump(mode="json", by_alias=True)
        assert dumped["type"] == "auto_backup"
        assert BackupRecord.model_validate(dumped).kind == BackupKind.AUTO_BACKUP

    def test_metadata_keeps_migration_stamp(self):
        """Test that extra metadata stamps are retained."""
        metadata = Metadata(migration_version="2.2_to_2.3")
        assert metadata.model_extra["migration_version"] == "2.2_to_2.3"
        assert metadata.last_customer_id == 100
        assert metadata.last_transaction_id == 1000


class TestPermissions:
    """Tests for the role permission table."""

    def test_admin_has_everything(self):
        """Test admin gets all thirteen capabilities."""
        permissions = default_permissions("admin")
        assert len(permissions) == len(CAPABILITIES) == 13
        assert all(permissions.values())

    def test_supervisor(self):
        """Test supervisor cannot manage users or settings."""
        permissions = default_permissions("supervisor")
        assert permissions["account_closure"] is True
        assert permissions["generate_reports"] is True
        assert permissions["manage_users"] is False
        assert permissions["import_export"] is False
        assert permissions["system_settings"] is False
        assert permissions["drive_management"] is False

    def test_thrift_collector(self):
        """Test thrift collector gets field-work capabilities only."""
        permissions = default_permissions("thrift_collector")
        granted = {name for name, allowed in permissions.items() if allowed}
        assert granted == {
            "member_creation",
            "transaction_posting",
            "withdrawal",
            "loan_management",
            "view_statements",
            "search_customers",
        }

    def test_unknown_role_gets_nothing(self):
        """Test that unknown roles get an all-false table."""
        permissions = default_permissions("auditor")
        assert len(permissions) == 13
        assert not any(permissions.values())


class TestSnapshot:
    """Tests for the Snapshot container."""

    def test_first_run_defaults(self):
        """Test Snapshot() seeds the admin user and default settings."""
        snapshot = Snapshot()
        assert [user.username for user in snapshot.users] == ["Admin"]
        assert snapshot.users[0].role == "admin"
        assert snapshot.settings["app_name"] == "OBATA SMART SAVINGS"
        assert snapshot.customers == []
        assert snapshot.metadata.total_customers == 0

    def test_from_records_ignores_unknown_names(self):
        """Test that only the eight record names are read."""
        snapshot = Snapshot.from_records({"customers": [{"id": 101}], "junk": 1})
        assert snapshot.customers[0].id == 101

    def test_data_copy_excludes_logs(self):
        """Test that backups never embed the history or audit log."""
        snapshot = Snapshot()
        data = snapshot.data_copy()
        assert "backup_history" not in data
        assert "audit_log" not in data
        assert set(data) == {"settings", "users", "customers", "transactions", "loans", "metadata"}

    def test_data_copy_is_detached(self):
        """Test that mutating the copy leaves the snapshot alone."""
        snapshot = Snapshot(customers=[Customer(id=101, name="Ada")])
        data = snapshot.data_copy()
        data["customers"][0]["name"] = "Changed"
        assert snapshot.customers[0].name == "Ada"


class TestAuditModels:
    """Tests for audit entries."""

    def test_data_saved_entry(self):
        """Test AuditEntryBuilder.data_saved."""
        entry = AuditEntryBuilder.data_saved(items_saved=3, actor="Admin")
        assert entry.action == AuditAction.DATA_SAVED.value
        assert entry.details["items_saved"] == 3
        assert entry.details["user"] == "Admin"

    def test_entry_to_log_dict(self):
        """Test conversion to log dictionary."""
        entry = AuditEntryBuilder.backup_restored(backup_timestamp="2024-01-01T00:00:00.000Z")
        log_dict = entry.to_log_dict()
        assert log_dict["action"] == "BACKUP_RESTORED"
        assert log_dict["details"]["source"] == "history"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            shape_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="schema_version",
                    issue_type="wrong_version",
                    message="Unsupported schema version",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.error_summary() == "Unsupported schema version"

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            shape_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="data.customers",
                    issue_type="duplicate_id",
                    message="Duplicate customer id",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_severity_is_restricted(self):
        """Test that severity must be error, warning or info."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
