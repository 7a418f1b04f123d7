"""Database engine and session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from srs_engine.config import settings
from srs_engine.models import Base

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create tables if they don't exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
