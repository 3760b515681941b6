import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

import fellis.models  # noqa: F401  registers every table on Base.metadata
from fellis.config import settings
from fellis.database import Base, build_engine

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def configure_and_run(**options) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def migrate_offline() -> None:
    """Emit SQL for the configured database URL without connecting."""
    configure_and_run(url=settings.database_url, literal_binds=True, dialect_opts={"paramstyle": "named"})


def migrate_sync_connection(connection: Connection) -> None:
    configure_and_run(connection=connection, render_as_batch=connection.dialect.name == "sqlite")


async def migrate_online() -> None:
    """Apply migrations over the application's async engine."""
    migration_engine = build_engine(settings.database_url)
    try:
        async with migration_engine.connect() as connection:
            await connection.run_sync(migrate_sync_connection)
    finally:
        await migration_engine.dispose()


if context.is_offline_mode():
    migrate_offline()
else:
    asyncio.run(migrate_online())
