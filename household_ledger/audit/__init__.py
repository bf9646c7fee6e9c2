"""Audit logging package."""

from household_ledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
