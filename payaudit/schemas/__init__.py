"""Audit entry models and HTTP API schemas."""

from payaudit.schemas.api import (
    ContractInteractionCreate,
    EventAccepted,
    FlushResult,
    LogCreate,
    LogCreated,
    LogListResponse,
    MonitorEventCreate,
    ReportedErrorBody,
    SchedulerEventCreate,
    StreamCreationCreate,
)
from payaudit.schemas.audit import (
    ExportFilters,
    LogEntry,
    LogQueryFilters,
    LogStatistics,
)

__all__ = [
    "ContractInteractionCreate",
    "EventAccepted",
    "ExportFilters",
    "FlushResult",
    "LogCreate",
    "LogCreated",
    "LogEntry",
    "LogListResponse",
    "LogQueryFilters",
    "LogStatistics",
    "MonitorEventCreate",
    "ReportedErrorBody",
    "SchedulerEventCreate",
    "StreamCreationCreate",
]
