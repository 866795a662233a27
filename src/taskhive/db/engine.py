"""Async SQLAlchemy engine and session factory.

SQLAlchemy 2.0 async mode: create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.
The engine connects lazily, so importing this module never touches the DB.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taskhive.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)

# Each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency. Yields a session per request and closes it."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_schema() -> None:
    """Create all tables from the ORM metadata (used by `taskhive init-db`)."""
    from taskhive.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
