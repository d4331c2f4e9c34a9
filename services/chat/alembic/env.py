import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

# Import all models so they are registered with metadata
from services.chat import history_manager  # noqa: F401
from services.chat.database import (
    MIGRATION_POOL_SIZE,
    create_engine_for_profile,
    normalize_database_url,
    profile_from_settings,
    resolve_connection_profile,
)
from services.chat.history_manager import chat_registry
from services.chat.settings import get_settings

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
# The migration runner configures logging itself and passes no ini file.
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = chat_registry.metadata


def _database_url() -> str:
    # Passed as an attribute rather than a main option so '%' in passwords
    # needs no escaping
    return config.attributes.get("database_url") or get_settings().db_url_chat


def _connection_profile(url: str):  # type: ignore[no-untyped-def]
    profile = config.attributes.get("connection_profile")
    if profile is not None:
        return profile
    if "database_url" in config.attributes:
        return resolve_connection_profile(url, pool_size=MIGRATION_POOL_SIZE)
    return profile_from_settings(get_settings(), pool_size=MIGRATION_POOL_SIZE)


def run_migrations_offline() -> None:
    url, _ = normalize_database_url(_database_url())
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    url = _database_url()
    connectable = create_engine_for_profile(url, _connection_profile(url))
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
