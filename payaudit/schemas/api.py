"""HTTP request and response schemas for the audit API."""

from typing import Any

from pydantic import BaseModel, Field

from payaudit.enums import ActionType, CheckType, LogLevel, SchedulerAction
from payaudit.schemas.audit import MAX_DB_INT, LogEntry


class ReportedErrorBody(BaseModel):
    """An error reported by the producer of a domain event."""

    message: str = Field(..., description="Error message")
    code: str | None = Field(default=None, description="Optional error code")
    stack: str | None = Field(default=None, description="Optional stack trace")


class LogCreate(BaseModel):
    """Payload for a generic audit entry."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Entry severity")
    message: str = Field(default="", description="Human-readable summary")
    context: dict[str, Any] = Field(default_factory=dict, description="Additional fields")
    action_type: ActionType | None = Field(default=None, description="Business event category")
    employer: str | None = None
    transaction_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0, le=MAX_DB_INT)
    timestamp: str | None = Field(default=None, description="Event time, ISO-8601")


class LogCreated(BaseModel):
    """The entry as built, and whether it was queued for persistence."""

    entry: LogEntry
    queued: bool


class StreamCreationCreate(BaseModel):
    employer: str
    worker: str
    token: str
    amount: str
    duration: int
    success: bool
    stream_id: int | None = Field(default=None, ge=0, le=MAX_DB_INT)
    transaction_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0, le=MAX_DB_INT)
    error: ReportedErrorBody | None = None


class ContractInteractionCreate(BaseModel):
    contract_address: str
    function_name: str
    success: bool
    duration_ms: int = Field(..., ge=0)
    parameters: dict[str, Any] = Field(default_factory=dict)
    employer: str | None = None
    transaction_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0, le=MAX_DB_INT)
    error: ReportedErrorBody | None = None


class SchedulerEventCreate(BaseModel):
    schedule_id: int
    action: SchedulerAction
    task_name: str
    employer: str | None = None
    execution_time: int | None = None
    error: ReportedErrorBody | None = None


class MonitorEventCreate(BaseModel):
    employer: str
    balance: float
    liabilities: float
    daily_burn_rate: float
    runway_days: float | None = None
    alert_sent: bool
    check_type: CheckType = CheckType.ROUTINE


class EventAccepted(BaseModel):
    """Acknowledgement for a fire-and-forget domain event."""

    accepted: bool = True
    pending: int = Field(..., description="Entries currently awaiting a flush")


class LogListResponse(BaseModel):
    entries: list[LogEntry]
    count: int


class FlushResult(BaseModel):
    written: int
    pending: int
