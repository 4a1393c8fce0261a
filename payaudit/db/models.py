"""Database models for audit persistence.

The audit trail is append-only: rows are inserted by the batch persister
and never updated or deleted.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime
from sqlmodel import JSON, Column, Field, SQLModel

from payaudit.schemas.audit import LogEntry, format_timestamp, parse_timestamp


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class AuditLogRecord(SQLModel, table=True):
    """Durable form of a ``LogEntry``."""

    __tablename__ = "audit_logs"
    __table_args__ = {"extend_existing": True}

    id: int | None = Field(default=None, primary_key=True)
    timestamp: datetime = Field(
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False)
    )
    log_level: str = Field(index=True)
    message: str
    action_type: str = Field(default="system", index=True)
    employer: str | None = Field(default=None, index=True)
    context: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    transaction_hash: str | None = Field(default=None)
    block_number: int | None = Field(default=None)
    error_message: str | None = Field(default=None)
    error_code: str | None = Field(default=None)
    error_stack: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @classmethod
    def from_entry(cls, entry: LogEntry) -> "AuditLogRecord":
        # Builder output always carries a parseable timestamp
        timestamp = parse_timestamp(entry.timestamp) or utc_now()
        return cls(
            timestamp=timestamp,
            log_level=entry.log_level.value,
            message=entry.message,
            action_type=entry.action_type.value,
            employer=entry.employer,
            context=entry.context,
            transaction_hash=entry.transaction_hash,
            block_number=entry.block_number,
            error_message=entry.error_message,
            error_code=entry.error_code,
            error_stack=entry.error_stack,
        )

    def to_entry(self) -> LogEntry:
        return LogEntry(
            id=self.id,
            timestamp=format_timestamp(self.timestamp),
            log_level=self.log_level,
            message=self.message,
            action_type=self.action_type,
            employer=self.employer,
            context=self.context or {},
            transaction_hash=self.transaction_hash,
            block_number=self.block_number,
            error_message=self.error_message,
            error_code=self.error_code,
            error_stack=self.error_stack,
            created_at=format_timestamp(self.created_at) if self.created_at else None,
        )
