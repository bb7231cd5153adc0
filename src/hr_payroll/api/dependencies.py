"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.config import Settings, get_settings
from hr_payroll.database import init_db
from hr_payroll.events import EventEmitter


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for the configured database."""
    _, factory = init_db()
    return factory


async def get_db_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Routes commit explicitly."""
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_emitter(request: Request) -> EventEmitter:
    """Application-wide event emitter."""
    return request.app.state.emitter


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Emitter = Annotated[EventEmitter, Depends(get_emitter)]
