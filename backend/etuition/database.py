"""
eTuition Backend - Database Session Management
==============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine with connection pooling, provides a session
       dependency that commits on success and rolls back on error.
Who:   Route handlers receive a session through `Depends(get_db_session)` and
       pass it down to the services; nothing reaches for a global handle.
When:  Engine is created at module import and disposed in the app lifespan;
       sessions are created per request.

Transactions:
    One request = one transaction. Services only flush; the dependency commits
    once the handler returns. Multi-step writes (payment insert followed by the
    application approval) therefore land together or not at all.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from etuition.config import settings


def build_engine(url: str) -> AsyncEngine:
    """
    Create the async engine for `url`.

    Pool sizing only applies to server databases; SQLite (used by tests and
    local tinkering) manages its own connection pool.
    """
    if make_url(url).get_backend_name() == "sqlite":
        return create_async_engine(url, echo=settings.log_level == "DEBUG")

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=settings.log_level == "DEBUG",
    )


engine = build_engine(settings.database_url)

# expire_on_commit=False: response models are built from ORM objects after
# the flush, outside any lazy-load context
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Registers every table on one metadata object, which Alembic autogenerate
    and the test suite's `create_all` both read.
    """
    pass


@asynccontextmanager
async def session_scope(
    factory: Optional[async_sessionmaker] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Open a session, commit when the block exits cleanly, roll back otherwise.

    Args:
        factory: Session factory to draw from. Defaults to the application
                 factory; tests pass one bound to their own engine.
    """
    factory = factory or async_session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Example usage in a route:
        @router.get("/tuitions")
        async def list_tuitions(db: AsyncSession = Depends(get_db_session)):
            return await tuition_service.list_all(db)

    Raises:
        Database exceptions propagate to the global error handlers after the
        transaction has been rolled back.
    """
    async with session_scope() as session:
        yield session


async def dispose_engine() -> None:
    """Close every pooled connection. Called during application shutdown."""
    await engine.dispose()
