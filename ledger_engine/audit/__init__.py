"""Audit logging package."""

from ledger_engine.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
