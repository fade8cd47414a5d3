"""Audit trail: models, storage, and logger for negotiation event tracking.

The ``bargain-admin`` CLI lives in :mod:`bargain.audit.cli`; it is not
re-exported here because it depends on the engine.
"""

from bargain.audit.logger import AuditLogger
from bargain.audit.models import AuditEntry, EventType
from bargain.audit.store import init_audit_table, insert_audit_entry, query_audit_trail

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
]
