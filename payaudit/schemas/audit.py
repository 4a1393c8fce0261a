"""Audit entry and query filter models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from payaudit.enums import ActionType, ExportFormat, LogLevel

DEFAULT_MESSAGE = "No message provided"

# Largest value a signed 64-bit INTEGER column can hold
MAX_DB_INT = 2**63 - 1


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return format_timestamp(datetime.now(UTC))


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are treated as UTC (SQLite drops tzinfo).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime, or None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        # Offsets near year 1 or 9999 push the UTC value out of range
        return parsed.astimezone(UTC)
    except (ValueError, OverflowError):
        return None


class LogEntry(BaseModel):
    """One audit record.

    ``id`` and ``created_at`` are only set once the store has written the
    entry. ``timestamp`` is event time; ``created_at`` is write time.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    timestamp: str
    log_level: LogLevel
    message: str
    action_type: ActionType = ActionType.SYSTEM
    employer: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    transaction_hash: str | None = None
    block_number: int | None = Field(default=None, ge=0, le=MAX_DB_INT)
    error_message: str | None = None
    error_code: str | None = None
    error_stack: str | None = None
    created_at: str | None = None


class LogQueryFilters(BaseModel):
    """Conjunctive filters for reading audit entries.

    Date bounds are inclusive. ``limit`` and ``offset`` apply after
    filtering and newest-first ordering.
    """

    start_date: datetime | None = None
    end_date: datetime | None = None
    log_level: LogLevel | None = None
    employer: str | None = None
    action_type: ActionType | None = None
    limit: int = Field(default=1000, ge=1)
    offset: int = Field(default=0, ge=0)


class ExportFilters(LogQueryFilters):
    """Query filters plus the export format."""

    format: ExportFormat = ExportFormat.JSON


class LogStatistics(BaseModel):
    """Entry counts, overall and broken down by level and action type."""

    total: int = 0
    by_level: dict[str, int] = Field(default_factory=dict)
    by_action_type: dict[str, int] = Field(default_factory=dict)
