"""
Result Models

Every public store, migrator and exchanger operation reports back with
one of these instead of raising. The UI layer decides whether to alert
the user; nothing here is fatal to the process.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Typed failure reasons."""
    STORAGE_WRITE_FAILURE = "storage_write_failure"
    INVALID_FORMAT = "invalid_format"
    NOT_FOUND = "not_found"
    READ_FAILURE = "read_failure"


class OperationResult(BaseModel):
    """Outcome of a store, migration or exchange operation."""

    operation: str = Field(
        ...,
        description="Name of the operation, e.g. 'save'"
    )
    success: bool
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Operation-specific data for the caller to render"
    )

    @classmethod
    def ok(cls, operation: str, **details: Any) -> "OperationResult":
        return cls(operation=operation, success=True, details=details)

    @classmethod
    def failed(
        cls,
        operation: str,
        error_kind: ErrorKind,
        error_message: str,
        **details: Any,
    ) -> "OperationResult":
        return cls(
            operation=operation,
            success=False,
            error_kind=error_kind,
            error_message=error_message,
            details=details,
        )


class ExportResult(BaseModel):
    """A serialized container ready to be offered as a download."""

    operation: str = "export"
    success: bool = True
    filename: str
    content: bytes = Field(
        ...,
        description="UTF-8 JSON text of the container"
    )
    checksum: Optional[str] = None
    size_bytes: int = Field(ge=0)
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue (dotted path into the container)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'wrong_version', 'checksum_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage container validation.

    Stage 1: Shape validation (version, required collections, record types)
    Stage 2: Semantic validation (checksum, duplicate ids inside the file)
    """

    shape_valid: bool = Field(
        ...,
        description="Did shape validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def error_summary(self) -> str:
        """All error messages joined into one line."""
        return "; ".join(
            issue.message for issue in self.issues if issue.severity == "error"
        )
