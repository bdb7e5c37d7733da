"""Schema migration package."""

from savings_store.migration.migrator import (
    LEGACY_KEYS,
    LegacyMigrator,
    loan_balance,
    savings_balance,
)

__all__ = ["LEGACY_KEYS", "LegacyMigrator", "loan_balance", "savings_balance"]
