"""Async database client.

The backend (PostgreSQL via asyncpg or SQLite via aiosqlite) is chosen once
from :class:`DatabaseSettings`; everything above this module only sees an
``AsyncSession``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from docpreview.core.config import DatabaseSettings
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def create_engine_for(settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine for the configured backend."""
    if settings.backend == "sqlite":
        return create_async_engine(settings.connection_url, echo=settings.echo, future=True)

    return create_async_engine(
        settings.connection_url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        echo=settings.echo,
        future=True,
        # Disable prepared statement cache for PgBouncer compatibility
        connect_args={"statement_cache_size": 0},
    )


class DatabaseClient:
    """Database client with connection, session and schema management."""

    def __init__(self, engine: AsyncEngine, backend: str):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
            backend: Backend name, for logging and health output
        """
        self.engine = engine
        self.backend = backend
        self.session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._connected = False

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "DatabaseClient":
        return cls(create_engine_for(settings), settings.backend)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that is always closed afterwards."""
        async with self.session_maker() as session:
            try:
                yield session
            finally:
                await session.close()

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            self._connected = True
            LOGGER.info(f"Database connection successful ({self.backend})")
            return True
        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def create_tables(self) -> None:
        """Create all tables that don't exist yet."""
        # Import models so they register on Base.metadata
        from docpreview.database import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            LOGGER.info("Database tables created/verified successfully")
        except Exception as e:
            LOGGER.error("Failed to create database tables", exc_info=True, extra={"error": str(e)})
            raise

    async def disconnect(self) -> None:
        """Close database connection."""
        try:
            await self.engine.dispose()
            self._connected = False
            LOGGER.info("Database connection closed")
        except Exception as e:
            LOGGER.error("Error closing database connection", exc_info=True, extra={"error": str(e)})

    async def health_check(self) -> dict:
        """Check database health."""
        try:
            async with self.engine.connect() as conn:
                val = await conn.scalar(text("SELECT 1"))
            self._connected = True
            return {
                "status": "healthy",
                "connected": True,
                "database": self.backend,
                "latency_test": "passed" if val == 1 else "failed",
            }
        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "database": self.backend, "error": str(e)}

    @property
    def is_connected(self) -> bool:
        return self._connected
