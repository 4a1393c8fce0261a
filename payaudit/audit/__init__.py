"""Audit logging pipeline: ingestion, redaction, queueing, persistence, query."""

from payaudit.audit.events import (
    ContractInteractionEvent,
    MonitorEvent,
    SchedulerEvent,
    StreamCreationEvent,
)
from payaudit.audit.logger import AuditLogger
from payaudit.audit.persister import BatchPersister
from payaudit.audit.query import LogQueryService
from payaudit.audit.queue import WriteQueue
from payaudit.audit.redaction import REDACTION_MARKER, RedactionEngine
from payaudit.schemas.audit import ExportFilters, LogEntry, LogQueryFilters, LogStatistics

__all__ = [
    "AuditLogger",
    "BatchPersister",
    "ContractInteractionEvent",
    "ExportFilters",
    "LogEntry",
    "LogQueryFilters",
    "LogQueryService",
    "LogStatistics",
    "MonitorEvent",
    "REDACTION_MARKER",
    "RedactionEngine",
    "SchedulerEvent",
    "StreamCreationEvent",
    "WriteQueue",
]
