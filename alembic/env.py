"""Alembic environment configuration (Async Mode) for evidence-sync.

Resolves the database URL from the service settings (DATABASE_URL / .env) so
migrations always target the same store the sync layer uses.
"""

import asyncio
import logging
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from evidence_sync.config.settings import settings
from evidence_sync.infrastructure.database.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

if not settings.is_offline:
    config.set_main_option("sqlalchemy.url", settings.database_url)
    logger.info(f"Using DATABASE_URL from settings: {settings.database_url}")
elif not config.get_main_option("sqlalchemy.url"):
    fallback = "sqlite+aiosqlite:///./data/evidence_sync.db"
    config.set_main_option("sqlalchemy.url", fallback)
    logger.warning(f"No DATABASE_URL configured, using fallback: {fallback}")


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
