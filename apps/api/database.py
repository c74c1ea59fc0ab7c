"""
Async database engine, session factory and FastAPI session dependency.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from config import settings


Base = declarative_base()


def get_database_url() -> str:
    """Return the configured URL with an async driver selected."""
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif db_url.startswith("sqlite://"):
        db_url = db_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return db_url


def _build_engine():
    db_url = get_database_url()
    if "sqlite" in db_url:
        return create_async_engine(db_url, poolclass=NullPool)
    return create_async_engine(db_url, pool_pre_ping=True)


engine = _build_engine()
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session."""
    async with async_session_maker() as session:
        yield session
