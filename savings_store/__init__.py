"""
Savings Store - Source Package

Local data store for a small savings-cooperative bookkeeping application.
Persists customers, transactions, loans, users, and audit/backup history
in a key-value storage layer.

DESIGN PRINCIPLES:
1. Persisted state is either fully before or fully after an operation
2. Validate before mutating
3. Existing records win on import
4. Every data change is auditable
5. Storage layer is swappable
"""

__version__ = "2.3.0"
__author__ = "Savings Store Team"
