"""Database module for audit persistence."""

from payaudit.db.engine import close_db, get_engine, init_db
from payaudit.db.models import AuditLogRecord
from payaudit.db.store import AuditStore

__all__ = [
    "close_db",
    "get_engine",
    "init_db",
    "AuditLogRecord",
    "AuditStore",
]
