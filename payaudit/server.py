"""FastAPI audit server.

Exposes the audit pipeline over HTTP for the services that produce
payroll events (scheduler, treasury monitor, contract middleware) and
for compliance retrieval:

- Generic and domain-event ingestion
- Filtered queries and per-employer exports (JSON or CSV)
- Explicit flush, statistics, health and metrics

The ``AuditLogger`` is built in the lifespan handler and kept on
``app.state``; handlers receive it through a dependency. Process signals
are handled by uvicorn, which runs the lifespan shutdown, which in turn
flushes the queue one last time.
"""

import re
from contextlib import asynccontextmanager
from datetime import datetime
from urllib.parse import quote

from fastapi import Depends, FastAPI, Query, Request, status
from starlette.responses import PlainTextResponse, Response

from payaudit import __version__
from payaudit.audit.events import (
    ContractInteractionEvent,
    MonitorEvent,
    SchedulerEvent,
    StreamCreationEvent,
)
from payaudit.audit.logger import AuditLogger
from payaudit.config import get_audit_config, get_settings
from payaudit.db import AuditStore, close_db, get_engine, init_db
from payaudit.enums import ActionType, ExportFormat, LogLevel
from payaudit.errors import ReportedError
from payaudit.logging import configure_logging, get_logger
from payaudit.metrics import metrics
from payaudit.middleware import RequestTracingMiddleware, get_correlation_id
from payaudit.schemas import (
    ContractInteractionCreate,
    EventAccepted,
    ExportFilters,
    FlushResult,
    LogCreate,
    LogCreated,
    LogListResponse,
    LogQueryFilters,
    LogStatistics,
    MonitorEventCreate,
    ReportedErrorBody,
    SchedulerEventCreate,
    StreamCreationCreate,
)

logger = get_logger(__name__)

_MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv; charset=utf-8",
}


def _content_disposition(employer_id: str, export_format: ExportFormat) -> str:
    """Attachment header that survives any employer id.

    Header values are latin-1 on the wire, so the plain ``filename`` is an
    ASCII approximation and ``filename*`` (RFC 5987) carries the exact name.
    """
    filename = f"audit-{employer_id}.{export_format.value}"
    fallback = re.sub(r"[^A-Za-z0-9._-]", "_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _reported_error(body: ReportedErrorBody | None) -> ReportedError | None:
    if body is None:
        return None
    return ReportedError(body.message, code=body.code, stack=body.stack)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    audit_config = get_audit_config()

    configure_logging(
        json_format=not settings.debug,
        level="DEBUG" if settings.debug else settings.log_level,
    )

    logger.info(
        "server_starting",
        version=__version__,
        host=settings.host,
        port=settings.port,
        debug=settings.debug,
    )

    engine = get_engine()
    logger.info("database_init", database_url=settings.database_url)
    await init_db(engine)

    audit_logger = AuditLogger(audit_config, store=AuditStore(engine), metrics=metrics)
    audit_logger.start()
    app.state.audit_logger = audit_logger
    logger.info(
        "audit_logger_ready",
        min_log_level=audit_config.min_log_level.value,
        async_writes=audit_config.async_writes,
        redaction_enabled=audit_config.redaction.enabled,
        overflow_policy=audit_config.overflow_policy.value,
    )
    yield
    # Shutdown
    await audit_logger.shutdown()
    await close_db()
    logger.info("server_shutdown")


def get_audit_logger(request: Request) -> AuditLogger:
    """Dependency returning the process's audit logger."""
    return request.app.state.audit_logger


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="payaudit",
        description="Structured audit logging for payroll streaming automation",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(RequestTracingMiddleware)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics", include_in_schema=False)
    async def get_metrics() -> PlainTextResponse:
        """Return Prometheus-formatted metrics."""
        return PlainTextResponse(
            content=metrics.to_prometheus(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.get("/metrics/json")
    async def get_metrics_json() -> dict:
        """Return metrics as JSON."""
        return metrics.get_stats()

    # =========================================================================
    # Ingestion
    # =========================================================================

    @app.post("/v1/logs", response_model=LogCreated, status_code=status.HTTP_202_ACCEPTED)
    async def create_log(
        body: LogCreate,
        request: Request,
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> LogCreated:
        """Record a generic audit entry.

        The response carries the entry as built (before redaction) and
        whether it met the minimum level and was queued.
        """
        context = dict(body.context)
        correlation_id = get_correlation_id(request)
        if correlation_id and "correlation_id" not in context:
            context["correlation_id"] = correlation_id

        entry, queued = audit.record(
            body.level,
            body.message,
            context,
            action_type=body.action_type,
            employer=body.employer,
            transaction_hash=body.transaction_hash,
            block_number=body.block_number,
            timestamp=body.timestamp,
        )
        return LogCreated(entry=entry, queued=queued)

    @app.post(
        "/v1/events/stream-creation",
        response_model=EventAccepted,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def stream_creation(
        body: StreamCreationCreate,
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> EventAccepted:
        audit.log_stream_creation(
            StreamCreationEvent(
                employer=body.employer,
                worker=body.worker,
                token=body.token,
                amount=body.amount,
                duration=body.duration,
                success=body.success,
                stream_id=body.stream_id,
                transaction_hash=body.transaction_hash,
                block_number=body.block_number,
                error=_reported_error(body.error),
            )
        )
        return EventAccepted(pending=len(audit.queue))

    @app.post(
        "/v1/events/contract-interaction",
        response_model=EventAccepted,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def contract_interaction(
        body: ContractInteractionCreate,
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> EventAccepted:
        audit.log_contract_interaction(
            ContractInteractionEvent(
                contract_address=body.contract_address,
                function_name=body.function_name,
                success=body.success,
                duration_ms=body.duration_ms,
                parameters=body.parameters,
                employer=body.employer,
                transaction_hash=body.transaction_hash,
                block_number=body.block_number,
                error=_reported_error(body.error),
            )
        )
        return EventAccepted(pending=len(audit.queue))

    @app.post(
        "/v1/events/scheduler",
        response_model=EventAccepted,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def scheduler_event(
        body: SchedulerEventCreate,
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> EventAccepted:
        audit.log_scheduler_event(
            SchedulerEvent(
                schedule_id=body.schedule_id,
                action=body.action,
                task_name=body.task_name,
                employer=body.employer,
                execution_time=body.execution_time,
                error=_reported_error(body.error),
            )
        )
        return EventAccepted(pending=len(audit.queue))

    @app.post(
        "/v1/events/monitor",
        response_model=EventAccepted,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def monitor_event(
        body: MonitorEventCreate,
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> EventAccepted:
        audit.log_monitor_event(
            MonitorEvent(
                employer=body.employer,
                balance=body.balance,
                liabilities=body.liabilities,
                daily_burn_rate=body.daily_burn_rate,
                runway_days=body.runway_days,
                alert_sent=body.alert_sent,
                check_type=body.check_type,
            )
        )
        return EventAccepted(pending=len(audit.queue))

    @app.post("/v1/logs/flush", response_model=FlushResult)
    async def flush_logs(audit: AuditLogger = Depends(get_audit_logger)) -> FlushResult:
        """Run one flush cycle now instead of waiting for the timer."""
        written = await audit.flush()
        return FlushResult(written=written, pending=len(audit.queue))

    # =========================================================================
    # Query and export
    # =========================================================================

    @app.get("/v1/logs", response_model=LogListResponse)
    async def list_logs(
        start_date: datetime | None = Query(default=None, description="Inclusive lower bound"),
        end_date: datetime | None = Query(default=None, description="Inclusive upper bound"),
        log_level: LogLevel | None = Query(default=None, description="Filter by level"),
        employer: str | None = Query(default=None, description="Filter by employer"),
        action_type: ActionType | None = Query(default=None, description="Filter by action type"),
        limit: int = Query(default=1000, ge=1, le=10000, description="Max results"),
        offset: int = Query(default=0, ge=0, description="Offset for pagination"),
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> LogListResponse:
        """List durable audit entries, newest first."""
        entries = await audit.query(
            LogQueryFilters(
                start_date=start_date,
                end_date=end_date,
                log_level=log_level,
                employer=employer,
                action_type=action_type,
                limit=limit,
                offset=offset,
            )
        )
        return LogListResponse(entries=entries, count=len(entries))

    @app.get("/v1/logs/stats", response_model=LogStatistics)
    async def log_statistics(
        employer: str | None = Query(default=None, description="Restrict to one employer"),
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> LogStatistics:
        """Entry counts by level and by action type."""
        return await audit.statistics(employer)

    @app.get("/v1/employers/{employer_id}/logs/export")
    async def export_logs(
        employer_id: str,
        export_format: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
        start_date: datetime | None = Query(default=None),
        end_date: datetime | None = Query(default=None),
        log_level: LogLevel | None = Query(default=None),
        action_type: ActionType | None = Query(default=None),
        limit: int = Query(default=1000, ge=1, le=10000),
        offset: int = Query(default=0, ge=0),
        audit: AuditLogger = Depends(get_audit_logger),
    ) -> Response:
        """Download an employer's audit trail."""
        document = await audit.export(
            employer_id,
            ExportFilters(
                format=export_format,
                start_date=start_date,
                end_date=end_date,
                log_level=log_level,
                action_type=action_type,
                limit=limit,
                offset=offset,
            ),
        )
        return Response(
            content=document,
            media_type=_MEDIA_TYPES[export_format],
            headers={"Content-Disposition": _content_disposition(employer_id, export_format)},
        )

    return app


# Application instance for uvicorn
app = create_app()
