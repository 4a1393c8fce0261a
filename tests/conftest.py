"""Shared test fixtures for pytest."""

import uuid

import pytest
import pytest_asyncio

from payaudit.config import AuditConfig
from payaudit.db import AuditStore, init_db
from payaudit.enums import ActionType, LogLevel
from payaudit.schemas.audit import LogEntry


class StubSettings:
    """Process settings pointing at a given database."""

    def __init__(self, url):
        self.database_url = url
        self.debug = False
        self.host = "127.0.0.1"
        self.port = 3334
        self.log_level = "WARNING"


def _make_entry(
    message="Payroll stream created successfully",
    level=LogLevel.INFO,
    action_type=ActionType.STREAM_CREATION,
    employer="E1",
    timestamp="2024-03-01T12:00:00.000Z",
    **fields,
):
    """Build a LogEntry directly, bypassing the logger."""
    return LogEntry(
        timestamp=timestamp,
        log_level=level,
        message=message,
        action_type=action_type,
        employer=employer,
        **fields,
    )


@pytest.fixture
def make_entry():
    return _make_entry


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with the audit tables created."""
    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine):
    return AuditStore(engine)


@pytest.fixture
def app(monkeypatch):
    """Create the app with an isolated in-memory database.

    Timer flushing is off so tests persist with POST /v1/logs/flush.
    """
    import payaudit.config
    import payaudit.server

    # Clear any cached settings FIRST
    payaudit.config.get_settings.cache_clear()
    payaudit.config.get_audit_config.cache_clear()

    # Generate unique DB name for THIS test
    unique_name = f"test_{uuid.uuid4().hex}"
    db_url = f"sqlite+aiosqlite:///file:{unique_name}?mode=memory&cache=shared&uri=true"
    test_settings = StubSettings(db_url)
    audit_config = AuditConfig(async_writes=False)

    monkeypatch.setattr(payaudit.config, "get_settings", lambda: test_settings)

    import payaudit.db.engine

    # Reset engine to force new connection
    payaudit.db.engine._engine = None
    monkeypatch.setattr(payaudit.db.engine, "get_settings", lambda: test_settings)

    monkeypatch.setattr(payaudit.server, "get_settings", lambda: test_settings)
    monkeypatch.setattr(payaudit.server, "get_audit_config", lambda: audit_config)

    yield payaudit.server.create_app()

    # Cleanup
    payaudit.db.engine._engine = None


@pytest.fixture
def client(app):
    """Test client for the server; the lifespan runs on enter and exit."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client
