"""
Alembic environment for the Beyond Trips schema.

The connection string is taken from application settings (DATABASE_URL), so
alembic.ini never holds credentials. Online runs go through an asyncpg
engine; Alembic itself only ever sees the synchronous facade that
`AsyncConnection.run_sync()` hands it.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

import beyondtrips.models  # noqa: F401  (populates Base.metadata)
from beyondtrips.config import settings
from beyondtrips.database import Base

alembic_cfg = context.config
if alembic_cfg.config_file_name:
    fileConfig(alembic_cfg.config_file_name)


def _configure(**options) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **options)


def _migrate(sync_connection) -> None:
    _configure(connection=sync_connection)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_async_engine(settings.database_url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as conn:
            await conn.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    # `alembic upgrade --sql`: render DDL only
    _configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_migrate_online())
