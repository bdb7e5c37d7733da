"""
Two-Stage Container Validation

DESIGN DECISION: An imported file is validated in two distinct stages
before anything in the live snapshot is touched:

STAGE 1 - SHAPE VALIDATION:
- Container is a JSON object
- schema_version matches exactly
- data.customers and data.transactions are present
- Every record parses into its model

STAGE 2 - SEMANTIC VALIDATION:
- Checksum matches the data (when the container carries one)
- Duplicate ids inside the file (reported, collapsed later by the merge)

WHY TWO STAGES:
1. Stage 2 only makes sense on well-formed data
2. Better error messages (know exactly what kind of issue)
3. Checksum verification can be switched off without losing shape checks

IMPORTANT: Validation never repairs a container. It reports issues and
the caller refuses the import.
"""

from collections import Counter
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from savings_store.validation.checksum import generate_checksum
from savings_store.models.records import RECORD_NAMES
from savings_store.models.results import ValidationIssue, ValidationResult
from savings_store.models.snapshot import Snapshot


# Container type each optional record must have when present
_RECORD_CONTAINERS = {
    "settings": dict,
    "users": list,
    "customers": list,
    "transactions": list,
    "loans": list,
    "backup_history": list,
    "audit_log": list,
    "metadata": dict,
}


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="warning")


def _duplicates(values: Iterable[Any]) -> list[Any]:
    counts = Counter(value for value in values if value is not None)
    return [value for value, count in counts.items() if count > 1]


class ContainerValidator:
    """
    Validates export/backup containers through a two-stage pipeline.

    Stage 1: Shape validation (version, collections, record models)
    Stage 2: Semantic validation (checksum, duplicates)
    """

    def __init__(
        self,
        schema_version: str = "2.3",
        verify_checksum: bool = True,
    ):
        """
        Initialize validator.

        Args:
            schema_version: The only version string accepted.
            verify_checksum: Reject containers whose checksum does not match.
        """
        self._schema_version = schema_version
        self._verify_checksum = verify_checksum

    def _validate_envelope(
        self,
        container: Any,
        date_field: Optional[str],
    ) -> list[ValidationIssue]:
        issues = []

        if not isinstance(container, dict):
            return [_error("container", "not_object", "Backup file is not a JSON object")]

        version = container.get("schema_version")
        if version != self._schema_version:
            issues.append(_error(
                "schema_version",
                "wrong_version",
                f"Unsupported schema version {version!r}, expected {self._schema_version!r}",
            ))

        if date_field and not container.get(date_field):
            issues.append(_error(date_field, "missing", f"{date_field} is missing"))

        data = container.get("data")
        if not isinstance(data, dict):
            issues.append(_error("data", "missing", "Container has no data object"))
            return issues

        for name, expected in _RECORD_CONTAINERS.items():
            if name in data and data[name] is not None and not isinstance(data[name], expected):
                issues.append(_error(
                    f"data.{name}",
                    "wrong_type",
                    f"data.{name} must be a {'list' if expected is list else 'object'}",
                ))

        return issues

    def _parse_records(
        self,
        records: dict[str, Any],
    ) -> tuple[Optional[Snapshot], list[ValidationIssue]]:
        try:
            return Snapshot.from_records(records), []
        except ValidationError as e:
            issues = [
                _error(
                    "data." + ".".join(str(part) for part in error["loc"]),
                    "invalid_record",
                    error["msg"],
                )
                for error in e.errors()
            ]
            return None, issues

    def _validate_semantic(
        self,
        container: dict[str, Any],
        snapshot: Snapshot,
    ) -> list[ValidationIssue]:
        issues = []

        if self._verify_checksum and container.get("checksum") is not None:
            expected = str(container["checksum"])
            actual = generate_checksum(container["data"])
            if actual != expected:
                issues.append(_error(
                    "checksum",
                    "checksum_mismatch",
                    f"Checksum mismatch: file says {expected}, data hashes to {actual}",
                ))

        checks = (
            ("data.customers", "customer id", [c.id for c in snapshot.customers]),
            ("data.transactions", "transaction txId", [t.tx_id for t in snapshot.transactions]),
            ("data.users", "username", [u.username for u in snapshot.users]),
            ("data.loans", "loanId", [loan.loan_id for loan in snapshot.loans]),
        )
        for field, label, values in checks:
            duplicated = _duplicates(values)
            if duplicated:
                issues.append(_warning(
                    field,
                    "duplicate_id",
                    f"Duplicate {label} in file (first occurrence is kept): {duplicated[:5]}",
                ))

        return issues

    def _result(self, shape_issues, semantic_issues, ran_semantic: bool) -> ValidationResult:
        shape_valid = not any(issue.severity == "error" for issue in shape_issues)
        semantic_valid = ran_semantic and not any(
            issue.severity == "error" for issue in semantic_issues
        )
        return ValidationResult(
            shape_valid=shape_valid,
            semantic_valid=semantic_valid,
            is_valid=shape_valid and semantic_valid,
            issues=shape_issues + semantic_issues,
        )

    def validate_import(self, container: Any) -> tuple[ValidationResult, Optional[Snapshot]]:
        """
        Validate an export container for merge-on-import.

        Collections missing from the file are treated as empty, never as
        defaults, so an import cannot inject a seeded admin user.

        Returns:
            (validation_result, parsed_snapshot or None)
        """
        shape_issues = self._validate_envelope(container, date_field=None)
        if not shape_issues:
            data = container["data"]
            for name in ("customers", "transactions"):
                if data.get(name) is None:
                    shape_issues.append(_error(f"data.{name}", "missing", f"data.{name} is missing"))

        if shape_issues:
            return self._result(shape_issues, [], ran_semantic=False), None

        records = {"settings": {}, "users": [], "loans": []}
        records.update({k: v for k, v in container["data"].items() if v is not None})
        snapshot, parse_issues = self._parse_records(records)
        if snapshot is None:
            return self._result(parse_issues, [], ran_semantic=False), None

        semantic_issues = self._validate_semantic(container, snapshot)
        result = self._result([], semantic_issues, ran_semantic=True)
        return result, snapshot if result.is_valid else None

    def validate_backup_file(
        self,
        container: Any,
    ) -> tuple[ValidationResult, Optional[Snapshot], list[str]]:
        """
        Validate a full backup file for overwrite-restore.

        Returns:
            (validation_result, parsed_snapshot or None, names of records present)
        """
        shape_issues = self._validate_envelope(container, date_field="backup_date")
        if not shape_issues:
            data = container["data"]
            if data.get("customers") is None and data.get("transactions") is None:
                shape_issues.append(_error(
                    "data",
                    "missing",
                    "Backup contains neither customers nor transactions",
                ))

        if shape_issues:
            return self._result(shape_issues, [], ran_semantic=False), None, []

        present = [
            name for name in RECORD_NAMES
            if container["data"].get(name) is not None
        ]
        snapshot, parse_issues = self._parse_records(
            {name: container["data"][name] for name in present}
        )
        if snapshot is None:
            return self._result(parse_issues, [], ran_semantic=False), None, []

        semantic_issues = self._validate_semantic(container, snapshot)
        result = self._result([], semantic_issues, ran_semantic=True)
        return result, snapshot if result.is_valid else None, present
