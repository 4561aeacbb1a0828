"""
Database engine and session factory.

Orders, parcels, audit entries and dispatch failures share one async
engine. Sessions never autoflush: status changes go out as conditional
UPDATE statements, and reads that must observe them use populate_existing.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from parcel_backend.app.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    One session per request or webhook delivery.

    Handlers commit their own units of work; whatever is still pending when
    a handler raises is rolled back before the session is returned.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
