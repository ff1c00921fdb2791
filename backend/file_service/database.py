"""Async SQLAlchemy engine and session factory builders.

The application owns exactly one engine, created in the lifespan handler:

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    repository = FileRepository(session_factory)
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from file_service.config import Settings
from file_service.models import Base


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    kwargs = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    return create_async_engine(settings.DATABASE_URL, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the files table if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
