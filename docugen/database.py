"""
Database connection and session management.
Handles the Supabase PostgreSQL store with a SQLAlchemy async engine.

When DATABASE_URL is not set the module still imports: ``engine`` and
``AsyncSessionLocal`` are None and every store call fails with StoreError.
"""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import Optional
import logging

from docugen.config import settings

logger = logging.getLogger(__name__)

# Base class for ORM models
Base = declarative_base()


def create_engine_for(database_url: str, **engine_kwargs) -> AsyncEngine:
    """Create an async engine; NullPool unless the caller picks another pool."""
    engine_kwargs.setdefault("poolclass", NullPool)
    return create_async_engine(
        database_url,
        echo=False,  # Set to True for SQL query logging
        future=True,
        pool_pre_ping=True,
        **engine_kwargs,
    )


def build_session_factory(db_engine: AsyncEngine) -> async_sessionmaker:
    """Session factory used by ProfileStore and ProjectStore."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine: Optional[AsyncEngine] = (
    create_engine_for(settings.DATABASE_URL) if settings.store_configured else None
)
AsyncSessionLocal: Optional[async_sessionmaker] = (
    build_session_factory(engine) if engine is not None else None
)


async def init_db() -> bool:
    """
    Create the profiles and projects tables if they do not exist yet.

    Returns False (after logging) when no database is configured.
    """
    if engine is None:
        logger.warning("DATABASE_URL is not set; project store is disabled")
        return False
    try:
        async with engine.begin() as conn:
            # Import all models to ensure they're registered
            from docugen.models import database_models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created/verified")
        return True
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


async def check_db() -> str:
    """Return "ok", "error" or "not_configured" for the health endpoint."""
    if AsyncSessionLocal is None:
        return "not_configured"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return "ok"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return "error"


async def close_db() -> None:
    """Close database connections gracefully."""
    if engine is None:
        return
    try:
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database: {e}")
        raise
