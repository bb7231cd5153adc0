"""Async engine, session factory and unit-of-work helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hr_payroll.config import get_settings
from hr_payroll.models import FundingSource

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def engine_options(database_url: str) -> dict[str, Any]:
    """Pool options for a URL. SQLite (local runs, tests) takes no pool sizing."""
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"echo": False}
    return {"echo": False, "pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


def get_engine(database_url: str | None = None) -> AsyncEngine:
    url = database_url or get_settings().database_url
    return create_async_engine(url, **engine_options(url))


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows after commit; services flush explicitly."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the process-wide engine and session factory on first use."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = make_session_factory(_engine)
    return _engine, _session_factory


async def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit if the block succeeds, roll back if it raises."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def lock_funding_source(
    session: AsyncSession, funding_source_id: UUID
) -> FundingSource | None:
    """Load a funding source row with SELECT ... FOR UPDATE.

    The lock is held until the surrounding transaction ends, which serializes
    capacity checks against the same budget line. SQLite ignores FOR UPDATE;
    the version column still catches a concurrent writer there.
    """
    result = await session.execute(
        select(FundingSource)
        .where(FundingSource.funding_source_id == funding_source_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
