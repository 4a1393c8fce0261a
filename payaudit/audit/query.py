"""Read path: filtered queries and compliance exports.

Independent of the write path; reads whatever the batch persister has
already committed.
"""

import csv
import io
import json
from datetime import UTC, datetime

from sqlalchemy import func
from sqlmodel import select

from payaudit.db.models import AuditLogRecord
from payaudit.db.store import AuditStore
from payaudit.enums import ExportFormat
from payaudit.schemas.audit import ExportFilters, LogEntry, LogQueryFilters, LogStatistics

CSV_HEADERS = (
    "timestamp",
    "log_level",
    "message",
    "action_type",
    "employer",
    "transaction_hash",
    "block_number",
    "error_message",
)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _where(statement, filters: LogQueryFilters):
    if filters.start_date is not None:
        statement = statement.where(AuditLogRecord.timestamp >= _as_utc(filters.start_date))
    if filters.end_date is not None:
        statement = statement.where(AuditLogRecord.timestamp <= _as_utc(filters.end_date))
    if filters.log_level is not None:
        statement = statement.where(AuditLogRecord.log_level == filters.log_level.value)
    if filters.employer is not None:
        statement = statement.where(AuditLogRecord.employer == filters.employer)
    if filters.action_type is not None:
        statement = statement.where(AuditLogRecord.action_type == filters.action_type.value)
    return statement


def entries_to_json(entries: list[LogEntry]) -> str:
    """Pretty-printed JSON array of entries."""
    return json.dumps([entry.model_dump(mode="json") for entry in entries], indent=2)


def entries_to_csv(entries: list[LogEntry]) -> str:
    """CSV with a fixed header row; values with commas, quotes or
    newlines are quoted, inner quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        row = entry.model_dump(mode="json")
        writer.writerow([row[column] for column in CSV_HEADERS])
    return buffer.getvalue()


def render_export(entries: list[LogEntry], export_format: ExportFormat) -> str:
    if export_format is ExportFormat.CSV:
        return entries_to_csv(entries)
    return entries_to_json(entries)


class LogQueryService:
    """Filtered, paginated access to durable audit entries."""

    def __init__(self, store: AuditStore) -> None:
        self.store = store

    async def query(self, filters: LogQueryFilters | None = None) -> list[LogEntry]:
        """Return matching entries, newest first.

        Filters combine with AND. Limit and offset are applied last.
        """
        filters = filters or LogQueryFilters()
        statement = _where(select(AuditLogRecord), filters)
        statement = (
            statement.order_by(AuditLogRecord.timestamp.desc(), AuditLogRecord.id.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )

        async with self.store.session() as session:
            result = await session.execute(statement)
            return [record.to_entry() for record in result.scalars().all()]

    async def export(self, employer_id: str, filters: ExportFilters | None = None) -> str:
        """Serialize an employer's entries as JSON or CSV.

        The export is always scoped to ``employer_id``, whatever employer
        the filters name.
        """
        filters = filters or ExportFilters()
        scoped = filters.model_copy(update={"employer": employer_id})
        entries = await self.query(scoped)
        return render_export(entries, scoped.format)

    async def count(self, employer_id: str) -> int:
        """Number of durable entries for an employer."""
        statement = (
            select(func.count())
            .select_from(AuditLogRecord)
            .where(AuditLogRecord.employer == employer_id)
        )
        async with self.store.session() as session:
            result = await session.execute(statement)
            return int(result.scalar_one())

    async def statistics(self, employer_id: str | None = None) -> LogStatistics:
        """Totals by level and by action type, optionally for one employer."""
        filters = LogQueryFilters(employer=employer_id)

        async with self.store.session() as session:
            total = await session.execute(
                _where(select(func.count()).select_from(AuditLogRecord), filters)
            )
            by_level = await session.execute(
                _where(
                    select(AuditLogRecord.log_level, func.count()).group_by(
                        AuditLogRecord.log_level
                    ),
                    filters,
                )
            )
            by_action = await session.execute(
                _where(
                    select(AuditLogRecord.action_type, func.count()).group_by(
                        AuditLogRecord.action_type
                    ),
                    filters,
                )
            )

            return LogStatistics(
                total=int(total.scalar_one()),
                by_level={level: int(n) for level, n in by_level.all()},
                by_action_type={action: int(n) for action, n in by_action.all()},
            )
