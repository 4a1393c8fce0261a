"""Process logging for payaudit.

This is the pipeline's own diagnostics channel (overflow, flush failures,
configuration fallbacks), not the audit trail itself. Events are rendered
as JSON lines in production and as colored console output in development.
"""

import logging
import sys
from typing import Any

import structlog

_LEVEL_ALIASES = {"WARN": "WARNING"}


def stdlib_level_name(level: str) -> str:
    """Map an audit-style level name (``WARN``) to its stdlib spelling."""
    level_name = level.upper()
    return _LEVEL_ALIASES.get(level_name, level_name)


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    service: str = "payaudit",
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_format: Render JSON lines if True, console output otherwise.
        level: Minimum process log level. Accepts audit-style names
            (``WARN``) as well as stdlib names (``WARNING``).
        service: Value of the ``service`` field stamped on every event.
    """
    level_name = stdlib_level_name(level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    processors: list[Any] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _stamp_service(service),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _stamp_service(service: str) -> Any:
    def processor(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, usually named after the calling module."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind request-scoped fields (request_id, correlation_id, ...)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop every request-scoped field."""
    structlog.contextvars.clear_contextvars()
