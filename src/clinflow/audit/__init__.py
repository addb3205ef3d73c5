from clinflow.audit.logger import AuditLogger
from clinflow.audit.models import AuditEvent
from clinflow.audit.sinks import (
    AuditSink,
    FileAuditSink,
    InMemoryAuditSink,
    StructlogAuditSink,
)

__all__ = [
    "AuditEvent",
    "AuditLogger",
    "AuditSink",
    "FileAuditSink",
    "InMemoryAuditSink",
    "StructlogAuditSink",
]
