"""Audit logging package."""

from savings_store.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
