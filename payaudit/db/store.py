"""Audit store: the pipeline's handle on the relational database.

A batch write checks out a single session, so the BEGIN, every INSERT
and the COMMIT or ROLLBACK all run on the same pooled connection.
"""

from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from payaudit.db.models import AuditLogRecord
from payaudit.schemas.audit import LogEntry


class AuditStore:
    """Transactional batch writes and read sessions over one engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a read session.

        Usage:
            async with store.session() as session:
                result = await session.execute(select(AuditLogRecord))
        """
        async with self._session_factory() as session:
            yield session

    async def write_batch(self, entries: Sequence[LogEntry]) -> list[LogEntry]:
        """Insert ``entries`` in one transaction and return them with ids.

        If any insert fails the whole transaction is rolled back and the
        error propagates; nothing from the batch is durable.
        """
        async with self._session_factory() as session:
            async with session.begin():
                records = [await self.write_entry(session, entry) for entry in entries]
        return [record.to_entry() for record in records]

    async def write_entry(self, session: AsyncSession, entry: LogEntry) -> AuditLogRecord:
        """Insert a single entry inside the caller's transaction."""
        record = AuditLogRecord.from_entry(entry)
        session.add(record)
        await session.flush()
        return record
