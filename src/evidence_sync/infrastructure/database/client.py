"""
Database Client

Async SQLAlchemy database connection and session management.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from evidence_sync.config.settings import Settings, settings as default_settings
from evidence_sync.infrastructure.database.models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite only honours ON DELETE CASCADE with this pragma set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseClient:
    """Database client for managing async connections"""

    def __init__(self, database_url: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.database_url = database_url or self.settings.database_url
        self.engine: Optional[AsyncEngine] = None
        self.session_maker = None

    async def verify_connection(self):
        """Verify database connection with retry logic.

        Retries with exponential backoff; the last error propagates so the
        caller can fall back to offline mode.
        """
        if not self.engine:
            raise RuntimeError("Engine not initialized. Call initialize() first.")

        attempts = max(1, self.settings.db_connect_attempts)
        for attempt in range(attempts):
            try:
                async with self.engine.begin() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.info("Database connection verified")
                return
            except (SQLAlchemyError, OSError) as e:
                if attempt == attempts - 1:
                    raise
                delay = self.settings.db_connect_base_delay * (2 ** attempt)
                logger.warning(
                    f"Database connection attempt {attempt + 1}/{attempts} failed: {e}; "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def initialize(self):
        """Initialize database engine and create tables"""
        if not self.database_url:
            raise RuntimeError("No database URL configured")

        logger.info(f"Initializing database: {self.database_url}")

        is_sqlite = self.database_url.startswith("sqlite")
        self.engine = create_async_engine(
            self.database_url,
            echo=False,
            poolclass=NullPool if is_sqlite else None,
        )
        if is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        await self.verify_connection()

        # Alembic owns the schema in deployments; create_all() covers
        # fresh local stores and tests
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialized successfully")

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            logger.info("Database connections closed")

    def get_session(self) -> AsyncSession:
        """Get database session"""
        if not self.session_maker:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.session_maker()

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False
