"""
Database session management
"""
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from arcpp.core.config import settings


def create_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Create async engine"""
    options = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True, "pool_recycle": 300}
    options.update(kwargs)
    return create_async_engine(database_url or settings.DATABASE_URL, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create session factory"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


async def check_connection(engine: AsyncEngine):
    """Raise if the database cannot answer a trivial query"""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
