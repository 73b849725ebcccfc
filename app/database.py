"""
Async database engine and session factory.

Routes get a session through the `get_db` dependency; services that manage
their own scope use `async_session_maker` directly.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Keep objects usable after commit without re-querying
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session and roll back anything left uncommitted."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
