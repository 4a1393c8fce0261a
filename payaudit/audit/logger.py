"""Audit logger: the ingestion side of the audit pipeline.

Builds canonical ``LogEntry`` values from raw calls or domain events,
applies the minimum-level filter, redacts a copy and queues it for the
batch persister. Ingestion is synchronous and never touches the store.

The logger is constructed explicitly at process start and handed to
whatever emits audit events (scheduler, monitor, HTTP layer):

    logger = AuditLogger(config, store=AuditStore(engine))
    logger.start()
    logger.log_stream_creation(StreamCreationEvent(...))
    ...
    await logger.shutdown()
"""

import traceback
from typing import Any

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from payaudit.audit.events import (
    ContractInteractionEvent,
    MonitorEvent,
    SchedulerEvent,
    StreamCreationEvent,
)
from payaudit.audit.persister import BatchPersister
from payaudit.audit.query import LogQueryService, render_export
from payaudit.audit.queue import WriteQueue
from payaudit.audit.redaction import RedactionEngine
from payaudit.config import AuditConfig
from payaudit.db.store import AuditStore
from payaudit.enums import ActionType, LogLevel, SchedulerAction
from payaudit.errors import ConstructionError, StoreUnavailable
from payaudit.logging import get_logger
from payaudit.metrics import ENTRIES_INGESTED, MetricsRegistry
from payaudit.metrics import metrics as default_metrics
from payaudit.schemas.audit import (
    DEFAULT_MESSAGE,
    ExportFilters,
    LogEntry,
    LogQueryFilters,
    LogStatistics,
    format_timestamp,
    parse_timestamp,
    utc_now_iso,
)

logger = get_logger(__name__)


def error_details(error: BaseException) -> dict[str, str | None]:
    """Message, code and formatted traceback of an exception."""
    code = getattr(error, "code", None)
    if code is None:
        code = getattr(error, "errno", None)
    stack = getattr(error, "stack", None) or "".join(traceback.format_exception(error))
    return {
        "error_message": str(error) or type(error).__name__,
        "error_code": None if code is None else str(code),
        "error_stack": stack,
    }


def _coerce_action_type(value: Any) -> ActionType:
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(value)
    except ValueError:
        return ActionType.SYSTEM


class AuditLogger:
    """Builds, filters, redacts and queues audit entries."""

    def __init__(
        self,
        config: AuditConfig,
        store: AuditStore | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.config = config
        self.min_log_level = config.min_log_level
        self._metrics = metrics or default_metrics
        self.redaction = RedactionEngine.from_config(config.redaction)
        self.queue = WriteQueue(
            config.max_queue_size,
            policy=config.overflow_policy,
            metrics=self._metrics,
        )
        self.persister = BatchPersister(
            self.queue,
            store,
            flush_interval_ms=config.flush_interval_ms,
            metrics=self._metrics,
        )
        self.query_service: LogQueryService | None = None
        if store is not None:
            self.query_service = LogQueryService(store)

    @property
    def store(self) -> AuditStore | None:
        return self.persister.store

    def attach_store(self, store: AuditStore | None) -> None:
        """Swap the store used by both the write and read paths."""
        self.persister.store = store
        self.query_service = LogQueryService(store) if store is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic flush if asynchronous writes are enabled."""
        if self.config.async_writes:
            self.persister.start()

    async def flush(self) -> int:
        """Run one flush cycle now."""
        return await self.persister.flush()

    async def shutdown(self) -> None:
        """Stop the flush timer and make one last attempt to persist."""
        logger.info("audit_logger_shutting_down", pending=len(self.queue))
        written = await self.persister.shutdown()
        logger.info("audit_logger_shutdown", written=written, remaining=len(self.queue))

    def set_min_log_level(self, level: LogLevel | str) -> None:
        self.min_log_level = LogLevel(level)

    def should_log(self, level: LogLevel) -> bool:
        return level.at_least(self.min_log_level)

    # ------------------------------------------------------------------
    # Generic entries
    # ------------------------------------------------------------------

    def log(
        self,
        level: LogLevel | str,
        message: str,
        context: dict[str, Any] | None = None,
        *,
        action_type: ActionType | str | None = None,
        employer: str | None = None,
        transaction_hash: str | None = None,
        block_number: int | None = None,
        error_message: str | None = None,
        error_code: str | None = None,
        error_stack: str | None = None,
        timestamp: str | None = None,
    ) -> LogEntry:
        """Build an entry and queue it if it meets the minimum level.

        Always returns the unredacted entry, even when it was filtered
        out and will never be persisted.
        """
        entry, _ = self.record(
            level,
            message,
            context,
            action_type=action_type,
            employer=employer,
            transaction_hash=transaction_hash,
            block_number=block_number,
            error_message=error_message,
            error_code=error_code,
            error_stack=error_stack,
            timestamp=timestamp,
        )
        return entry

    def record(
        self,
        level: LogLevel | str,
        message: str,
        context: dict[str, Any] | None = None,
        *,
        action_type: ActionType | str | None = None,
        employer: str | None = None,
        transaction_hash: str | None = None,
        block_number: int | None = None,
        error_message: str | None = None,
        error_code: str | None = None,
        error_stack: str | None = None,
        timestamp: str | None = None,
    ) -> tuple[LogEntry, bool]:
        """Like ``log``, but also report whether the entry was queued."""
        context = dict(context or {})
        if action_type is None:
            action_type = context.get("action_type")

        entry = self._build(
            level=level,
            message=message,
            context=context,
            action_type=action_type,
            employer=employer,
            transaction_hash=transaction_hash,
            block_number=block_number,
            error_message=error_message,
            error_code=error_code,
            error_stack=error_stack,
            timestamp=timestamp,
        )
        return entry, self._submit(entry)

    def info(self, message: str, context: dict[str, Any] | None = None, **fields: Any) -> LogEntry:
        return self.log(LogLevel.INFO, message, context, **fields)

    def warn(self, message: str, context: dict[str, Any] | None = None, **fields: Any) -> LogEntry:
        return self.log(LogLevel.WARN, message, context, **fields)

    def error(
        self,
        message: str,
        error: BaseException,
        context: dict[str, Any] | None = None,
        **fields: Any,
    ) -> LogEntry:
        """Log at ERROR, folding the exception into context and entry fields."""
        details = error_details(error)
        merged = {**(context or {}), **details}
        return self.log(LogLevel.ERROR, message, merged, **{**details, **fields})

    # ------------------------------------------------------------------
    # Domain events
    # ------------------------------------------------------------------

    def log_stream_creation(self, event: StreamCreationEvent) -> None:
        level = LogLevel.INFO if event.success else LogLevel.ERROR
        message = (
            "Payroll stream created successfully"
            if event.success
            else "Payroll stream creation failed"
        )
        context = {
            "worker": event.worker,
            "token": event.token,
            "amount": event.amount,
            "duration": event.duration,
            "stream_id": event.stream_id,
        }
        self.log(
            level,
            message,
            context,
            action_type=ActionType.STREAM_CREATION,
            employer=event.employer,
            transaction_hash=event.transaction_hash,
            block_number=event.block_number,
            **self._failure_details(event.success, event.error),
        )

    def log_contract_interaction(self, event: ContractInteractionEvent) -> None:
        level = LogLevel.INFO if event.success else LogLevel.ERROR
        message = (
            "Contract interaction completed" if event.success else "Contract interaction failed"
        )
        context = {
            "contract_address": event.contract_address,
            "function_name": event.function_name,
            "parameters": event.parameters,
            "duration_ms": event.duration_ms,
        }
        self.log(
            level,
            message,
            context,
            action_type=ActionType.CONTRACT_INTERACTION,
            employer=event.employer,
            transaction_hash=event.transaction_hash,
            block_number=event.block_number,
            **self._failure_details(event.success, event.error),
        )

    def log_scheduler_event(self, event: SchedulerEvent) -> None:
        try:
            action = SchedulerAction(event.action)
        except ValueError as exc:
            raise ConstructionError(f"Unknown scheduler action: {event.action!r}") from exc
        failed = action is SchedulerAction.TASK_FAILED
        context = {
            "schedule_id": event.schedule_id,
            "task_name": event.task_name,
            "execution_time": event.execution_time,
        }
        self.log(
            LogLevel.ERROR if failed else LogLevel.INFO,
            f"Scheduled task {action.value.replace('_', ' ')}",
            context,
            action_type=ActionType.SCHEDULING,
            employer=event.employer,
            **(error_details(event.error) if event.error is not None else {}),
        )

    def log_monitor_event(self, event: MonitorEvent) -> None:
        message = (
            "Monitoring check detected issue"
            if event.alert_sent
            else "Monitoring check completed"
        )
        context = {
            "balance": event.balance,
            "liabilities": event.liabilities,
            "daily_burn_rate": event.daily_burn_rate,
            "runway_days": event.runway_days,
            "alert_sent": event.alert_sent,
            "check_type": event.check_type.value,
        }
        self.log(
            LogLevel.WARN if event.alert_sent else LogLevel.INFO,
            message,
            context,
            action_type=ActionType.MONITORING,
            employer=event.employer,
        )

    @staticmethod
    def _failure_details(success: bool, error: BaseException | None) -> dict[str, str | None]:
        if success or error is None:
            return {}
        return error_details(error)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def reader(self) -> LogQueryService:
        """Return the query service, or raise StoreUnavailable."""
        if self.query_service is None:
            raise StoreUnavailable("No audit store is configured")
        return self.query_service

    async def query(self, filters: LogQueryFilters | None = None) -> list[LogEntry]:
        """Query durable entries; empty when no store is configured."""
        try:
            service = self.reader()
        except StoreUnavailable:
            logger.warning("audit_query_unavailable", reason="store_not_configured")
            return []
        return await service.query(filters)

    async def export(self, employer_id: str, filters: ExportFilters | None = None) -> str:
        """Export an employer's entries; an empty document when no store
        is configured."""
        filters = filters or ExportFilters()
        try:
            service = self.reader()
        except StoreUnavailable:
            logger.warning("audit_export_unavailable", reason="store_not_configured")
            return render_export([], filters.format)
        return await service.export(employer_id, filters)

    async def statistics(self, employer_id: str | None = None) -> LogStatistics:
        try:
            service = self.reader()
        except StoreUnavailable:
            logger.warning("audit_statistics_unavailable", reason="store_not_configured")
            return LogStatistics()
        return await service.statistics(employer_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build(self, **fields: Any) -> LogEntry:
        level = fields["level"]
        try:
            level = LogLevel(level)
        except ValueError:
            logger.warning("audit_invalid_level", level=level, default=LogLevel.INFO.value)
            level = LogLevel.INFO

        timestamp = fields["timestamp"]
        parsed = parse_timestamp(timestamp) if timestamp is not None else None
        if timestamp is not None and parsed is None:
            logger.warning("audit_invalid_timestamp", timestamp=timestamp)
        stamp = format_timestamp(parsed) if parsed is not None else utc_now_iso()

        try:
            entry = LogEntry(
                timestamp=stamp,
                log_level=level,
                message=fields["message"] or DEFAULT_MESSAGE,
                action_type=_coerce_action_type(fields["action_type"]),
                employer=fields["employer"],
                context=fields["context"],
                transaction_hash=fields["transaction_hash"],
                block_number=fields["block_number"],
                error_message=fields["error_message"],
                error_code=fields["error_code"],
                error_stack=fields["error_stack"],
            )
            # Round-trip through JSON so nothing unserializable can reach
            # the queue or the store
            return LogEntry.model_validate_json(entry.model_dump_json())
        except (ValidationError, PydanticSerializationError) as exc:
            raise ConstructionError(f"Log entry must be valid JSON: {exc}") from exc

    def _submit(self, entry: LogEntry) -> bool:
        if not self.should_log(entry.log_level):
            self._metrics.inc_counter(ENTRIES_INGESTED, {"outcome": "filtered"})
            return False

        queued = self.queue.enqueue(self._redacted(entry))
        self._metrics.inc_counter(
            ENTRIES_INGESTED,
            {"outcome": "queued" if queued else "dropped"},
        )
        return queued

    def _redacted(self, entry: LogEntry) -> LogEntry:
        if not self.config.redaction.enabled:
            # The caller keeps a reference to the returned entry's context
            return entry.model_copy(deep=True)

        engine = self.redaction
        return entry.model_copy(
            update={
                "context": engine.redact(entry.context),
                "message": engine.redact_string(entry.message),
                "error_message": (
                    engine.redact_string(entry.error_message)
                    if entry.error_message
                    else entry.error_message
                ),
                "error_stack": (
                    engine.redact_string(entry.error_stack)
                    if entry.error_stack
                    else entry.error_stack
                ),
            }
        )
