"""
Shared database configuration utilities.

Normalizes connection URLs for the async drivers and applies the SQLite
specific connection arguments that aiosqlite needs.
"""

from typing import Any, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from services.common import get_async_database_url


def get_sqlite_connect_args() -> Dict[str, Any]:
    """
    Get SQLite connection arguments with basic configuration.

    Note: aiosqlite doesn't support the 'pragmas' parameter directly,
    so PRAGMA values are set on connect instead.
    """
    return {
        "check_same_thread": False,
        "timeout": 30,
    }


def is_sqlite_database(database_url: str) -> bool:
    """Check if the given database URL is for SQLite (any driver)."""
    return database_url.lower().startswith("sqlite")


def get_database_type(database_url: str) -> str:
    """
    Get the database type from a database URL.

    Returns:
        The database type ('sqlite', 'postgresql' or 'unknown')
    """
    url_lower = database_url.lower()
    if url_lower.startswith("sqlite"):
        return "sqlite"
    elif url_lower.startswith("postgresql") or url_lower.startswith("postgres://"):
        return "postgresql"
    else:
        return "unknown"


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_configured_async_engine(
    database_url: str, echo: bool = False, **kwargs: Any
) -> AsyncEngine:
    """
    Create an async database engine for the given URL.

    SQLite URLs get the aiosqlite driver, SQLite connect args and foreign
    key enforcement. Pool sizing arguments only make sense for server
    databases and are dropped for SQLite.

    Args:
        database_url: The database URL (sync or async form)
        echo: Whether to echo SQL statements
        **kwargs: Additional arguments to pass to create_async_engine
    """
    database_url = get_async_database_url(database_url)
    existing_connect_args = kwargs.pop("connect_args", {})

    if is_sqlite_database(database_url):
        for pool_arg in ("pool_size", "max_overflow", "pool_timeout"):
            kwargs.pop(pool_arg, None)
        connect_args = {**get_sqlite_connect_args(), **existing_connect_args}
    else:
        connect_args = existing_connect_args

    engine = create_async_engine(
        database_url, echo=echo, connect_args=connect_args, **kwargs
    )

    if is_sqlite_database(database_url):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine
