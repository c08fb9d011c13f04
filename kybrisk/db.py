"""
Database connection and session management for the KYB risk service.

This module provides utilities for connecting to the database and managing sessions
with proper connection pooling and error handling.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, cast

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.exc import SQLAlchemyError

from kybrisk import settings
from kybrisk.models import Base

# Configure logging
logger = logging.getLogger("kybrisk.db")


# Convert PostgreSQL connection string to async format
def get_async_connection_string(conn_str: str) -> str:
    """
    Convert a synchronous PostgreSQL connection string to an async one.

    Args:
        conn_str: Synchronous PostgreSQL connection string

    Returns:
        Async PostgreSQL connection string
    """
    if conn_str.startswith("postgresql://"):
        return conn_str.replace("postgresql://", "postgresql+asyncpg://", 1)
    if conn_str.startswith("postgres://"):
        return conn_str.replace("postgres://", "postgresql+asyncpg://", 1)
    return conn_str


class DatabaseManager:
    """
    Database connection manager for the KYB risk service.

    The engine is created on first use, so importing the application does not
    require a reachable database.
    """

    _instance: Optional["DatabaseManager"] = None
    _engine: Optional[AsyncEngine] = None
    _sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    def __new__(cls) -> "DatabaseManager":
        """
        Singleton pattern to ensure only one database manager instance exists.

        Returns:
            DatabaseManager instance
        """
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
        return cls._instance

    def _initialize(self) -> None:
        """Initialize the database engine and session factory."""
        async_conn_str = get_async_connection_string(settings.PG_CONNSTR)

        # Configure connection pool settings
        pool_size = 5
        max_overflow = 10
        pool_timeout = 30
        pool_recycle = 1800  # 30 minutes

        self._engine = create_async_engine(
            async_conn_str,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            echo=False,
        )

        self._sessionmaker = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )

        logger.info(f"Database manager initialized with connection pool (size={pool_size}, max_overflow={max_overflow})")

    @property
    def engine(self) -> AsyncEngine:
        """
        Get the SQLAlchemy async engine.

        Returns:
            AsyncEngine instance
        """
        if self._engine is None:
            self._initialize()
        return cast(AsyncEngine, self._engine)

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """
        Get the SQLAlchemy async session maker.

        Returns:
            async_sessionmaker instance
        """
        if self._sessionmaker is None:
            self._initialize()
        return cast(async_sessionmaker[AsyncSession], self._sessionmaker)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session as an async context manager.

        Yields:
            AsyncSession: Database session

        Example:
            ```python
            async with db_manager.session() as session:
                submission = await submission_repository.get_by_registration_number(session, "40003000000")
            ```
        """
        session = self.sessionmaker()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error: {str(e)}")
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """
        Create all tables defined in the models.

        This method should be called during application startup.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created")

    async def close(self) -> None:
        """
        Close the database connection pool.

        This method should be called during application shutdown.
        """
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connection pool closed")
            self._engine = None
            self._sessionmaker = None


# Create a global database manager instance
db_manager = DatabaseManager()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session as an async generator.

    This function is intended to be used as a FastAPI dependency.

    Yields:
        AsyncSession: Database session
    """
    async with db_manager.session() as session:
        yield session
