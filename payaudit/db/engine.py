"""Database engine configuration.

Uses SQLModel with async SQLite by default. Any SQLAlchemy async URL
works; set it with the PAYAUDIT_DATABASE_URL environment variable.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from payaudit.config import get_settings

# Engine instance (lazy initialization)
_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            future=True,
        )
    return _engine


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create the audit tables if they do not exist yet."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Dispose of the process-wide engine and its pool."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
