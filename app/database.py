"""Database configuration and connection management."""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy import Executable, Result, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.core.exceptions import UpstreamException

logger = structlog.get_logger(__name__)

# Convert sync PostgreSQL URL to async
DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")

# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    pool_recycle=3600,
    connect_args={
        "server_settings": {
            "application_name": settings.app_name,
        },
    },
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def execute_statement(
    db: AsyncSession,
    stmt: Executable,
    operation: str,
    commit: bool = False,
) -> Result:
    """
    Execute a statement, translating driver failures into UpstreamException.

    Args:
        db: Database session
        stmt: Statement to execute
        operation: Short name used in the error log line
        commit: Commit the session after executing

    Returns:
        Statement result

    Raises:
        UpstreamException: If the database failed or is unreachable
    """
    try:
        result = await db.execute(stmt)
        if commit:
            await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("database_operation_failed", operation=operation, error=str(e))
        raise UpstreamException("Database unavailable") from e

    return result


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
