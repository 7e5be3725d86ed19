"""Append-only audit trail."""

from testmedic.audit.logger import AuditLogEntry, AuditLogger, AuditStatus

__all__ = ["AuditLogEntry", "AuditLogger", "AuditStatus"]
