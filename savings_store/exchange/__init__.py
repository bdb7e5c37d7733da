"""Export, import and backup-file exchange."""

from savings_store.exchange.exchanger import (
    SCHEMA_VERSION,
    BackupExchanger,
    merge_snapshots,
)

__all__ = ["SCHEMA_VERSION", "BackupExchanger", "merge_snapshots"]
