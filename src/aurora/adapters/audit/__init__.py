"""Audit logging adapters."""

from aurora.adapters.audit.recorder import (
    AuditRecorder,
    AuditSink,
    InMemoryAuditSink,
    get_client_ip,
)
from aurora.adapters.audit.repository import AuditRepository
from aurora.adapters.audit.types import AuditAction, AuditLogCreate, AuditLogEntry

__all__ = [
    "AuditAction",
    "AuditLogCreate",
    "AuditLogEntry",
    "AuditRecorder",
    "AuditRepository",
    "AuditSink",
    "InMemoryAuditSink",
    "get_client_ip",
]
