"""
Audit Logger

DESIGN DECISION: Every change to stored data is logged twice:
1. To the structured local log (for debugging)
2. Into the snapshot's own audit log (travels with the data)

The audit logger:
- Never touches storage itself; the snapshot store persists the log
- Keeps the snapshot's log bounded, most recent first
- Reports failed operations to the local log only
"""

from typing import Optional

import structlog

from savings_store.models.audit import AuditEntry
from savings_store.models.results import OperationResult
from savings_store.models.snapshot import Snapshot


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


DEFAULT_AUDIT_LOG_LIMIT = 1000


class AuditLogger:
    """
    Central audit logging service.

    Appends entries to a snapshot's audit log and mirrors them
    to the structured local log.
    """

    def __init__(
        self,
        limit: int = DEFAULT_AUDIT_LOG_LIMIT,
        default_actor: str = "system",
    ):
        """
        Initialize audit logger.

        Args:
            limit: Maximum number of entries kept in a snapshot's log.
            default_actor: Actor used when an entry has none.
        """
        self._limit = limit
        self._default_actor = default_actor
        self._logger = structlog.get_logger("savings_store.audit")

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def default_actor(self) -> str:
        return self._default_actor

    def record(self, snapshot: Snapshot, entry: AuditEntry) -> AuditEntry:
        """
        Prepend an entry to the snapshot's audit log and truncate it.

        The caller is responsible for persisting the log.
        """
        if not entry.actor:
            entry.actor = self._default_actor

        self._logger.info("audit_entry", **entry.to_log_dict())

        snapshot.audit_log.insert(0, entry)
        if len(snapshot.audit_log) > self._limit:
            del snapshot.audit_log[self._limit:]
        return entry

    def log_operation_failed(
        self,
        result: OperationResult,
        details: Optional[dict] = None,
    ) -> None:
        """Log a failed operation locally."""
        self._logger.error(
            "operation_failed",
            operation=result.operation,
            error_kind=result.error_kind.value if result.error_kind else None,
            error_message=result.error_message,
            details=details or result.details,
        )
