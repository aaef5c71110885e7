from .audit_writer import AuditEvent, AuditSink, AuditWriter, with_request_context
from .sinks import DynamoDBAuditSink, LoggingAuditSink, audit_table_from_name

__all__ = [
    "AuditEvent",
    "AuditSink",
    "AuditWriter",
    "DynamoDBAuditSink",
    "LoggingAuditSink",
    "audit_table_from_name",
    "with_request_context",
]
