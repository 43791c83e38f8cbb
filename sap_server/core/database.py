"""
SAP Server — Database
Async SQLAlchemy engine and session factory for the durable store.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from sap_server.core.config import settings

Base = declarative_base()


def build_engine(url: str = None) -> AsyncEngine:
    """Create the async engine for the configured database URL."""
    return create_async_engine(url or settings.DATABASE_URL, echo=settings.DEBUG, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Register the mapped classes on Base.metadata
    from sap_server import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
