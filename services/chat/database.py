"""
Connection provider for the chat service.

Builds the pooled async engine from the configured connection string. The
connection profile (SSL mode, connection lifetime, pool limits) comes from
explicit settings when they are present and is otherwise inferred from the
host in the URL:

- local: the URL mentions a loopback host; SSL off, 1 hour lifetime
- managed: the URL points at a known managed provider; SSL required,
  30 minute lifetime
- unspecified: anything else; driver defaults

The ``Database`` handle owns the engine and session factory. It is created
once in the application lifespan, stored on ``app.state`` and disposed at
shutdown.
"""

import json
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from fastapi import Request
from sqlalchemy import event, exc
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.chat.history_manager import chat_registry
from services.chat.settings import Settings
from services.common import get_async_database_url
from services.common.database_config import (
    create_configured_async_engine,
    is_sqlite_database,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)

LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")
MANAGED_HOST_MARKERS = ("neon.tech",)

POOL_SIZE = 20
MIGRATION_POOL_SIZE = 1
IDLE_TIMEOUT_SECONDS = 20
CONNECT_TIMEOUT_SECONDS = 10
LOCAL_MAX_LIFETIME_SECONDS = 60 * 60
MANAGED_MAX_LIFETIME_SECONDS = 60 * 30

# libpq options asyncpg does not accept as URL query parameters
_LIBPQ_ONLY_OPTIONS = ("sslmode", "channel_binding")


class DatabaseEnvironment(str, Enum):
    LOCAL = "local"
    MANAGED = "managed"
    UNSPECIFIED = "unspecified"


@dataclass(frozen=True)
class ConnectionProfile:
    environment: DatabaseEnvironment
    ssl_mode: Optional[str]
    max_lifetime_seconds: Optional[int]
    pool_size: int = POOL_SIZE
    idle_timeout_seconds: int = IDLE_TIMEOUT_SECONDS
    connect_timeout_seconds: int = CONNECT_TIMEOUT_SECONDS


def classify_connection_url(url: str) -> DatabaseEnvironment:
    """Infer the environment from the connection string. Loopback wins."""
    if any(marker in url for marker in LOCAL_HOST_MARKERS):
        return DatabaseEnvironment.LOCAL
    if any(marker in url for marker in MANAGED_HOST_MARKERS):
        return DatabaseEnvironment.MANAGED
    return DatabaseEnvironment.UNSPECIFIED


def resolve_connection_profile(
    url: str,
    environment: Optional[str] = None,
    ssl_mode: Optional[str] = None,
    max_lifetime_seconds: Optional[int] = None,
    pool_size: int = POOL_SIZE,
) -> ConnectionProfile:
    """
    Resolve the connection profile for ``url``.

    Explicit values win over anything inferred from the URL.

    Raises:
        ValueError: If ``environment`` is not a known environment name
    """
    env = (
        DatabaseEnvironment(environment.lower())
        if environment
        else classify_connection_url(url)
    )
    if env is DatabaseEnvironment.LOCAL:
        profile = ConnectionProfile(env, "disable", LOCAL_MAX_LIFETIME_SECONDS)
    elif env is DatabaseEnvironment.MANAGED:
        profile = ConnectionProfile(env, "require", MANAGED_MAX_LIFETIME_SECONDS)
    else:
        profile = ConnectionProfile(env, None, None)

    overrides: Dict[str, Any] = {"pool_size": pool_size}
    if ssl_mode:
        overrides["ssl_mode"] = ssl_mode
    if max_lifetime_seconds is not None:
        overrides["max_lifetime_seconds"] = max_lifetime_seconds
    return replace(profile, **overrides)


def profile_from_settings(
    settings: Settings, pool_size: int = POOL_SIZE
) -> ConnectionProfile:
    return resolve_connection_profile(
        settings.db_url_chat,
        environment=settings.db_environment,
        ssl_mode=settings.db_ssl_mode,
        max_lifetime_seconds=settings.db_max_lifetime_seconds,
        pool_size=pool_size,
    )


def normalize_database_url(url: str) -> Tuple[str, Optional[str]]:
    """
    Convert ``url`` for the async drivers.

    Returns:
        The async URL and the ``sslmode`` found in its query string, if any
    """
    async_url = make_url(get_async_database_url(url))
    url_ssl_mode = async_url.query.get("sslmode")
    if isinstance(url_ssl_mode, tuple):
        url_ssl_mode = url_ssl_mode[0]
    if async_url.get_backend_name() == "postgresql":
        async_url = async_url.difference_update_query(_LIBPQ_ONLY_OPTIONS)
    return async_url.render_as_string(hide_password=False), url_ssl_mode


def describe_connection(url: str, profile: ConnectionProfile) -> Dict[str, str]:
    """
    Non-secret description of the connection, for diagnostics.

    Environment and SSL come from the resolved profile, so explicit settings
    are reported rather than what the URL suggests.
    """
    host = url.split("@", 1)[1].split("/", 1)[0] if "@" in url else "unknown"
    database = url.rsplit("/", 1)[-1].split("?", 1)[0] or "unknown"
    ssl_mode = profile.ssl_mode or normalize_database_url(url)[1]
    ssl = "disabled" if ssl_mode in (None, "disable") else "required"
    return {
        "environment": profile.environment.value,
        "host": host,
        "database": database,
        "ssl": ssl,
    }


def _json_serializer(value: Any) -> str:
    # Non-ASCII text stays literal so substring prefilters can match it
    return json.dumps(value, ensure_ascii=False)


def _driver_connect_args(
    profile: ConnectionProfile, url_ssl_mode: Optional[str]
) -> Dict[str, Any]:
    connect_args: Dict[str, Any] = {"timeout": profile.connect_timeout_seconds}
    ssl_mode = profile.ssl_mode or url_ssl_mode
    if ssl_mode == "disable":
        connect_args["ssl"] = False
    elif ssl_mode:
        connect_args["ssl"] = ssl_mode
    return connect_args


def install_idle_timeout(engine: AsyncEngine, idle_timeout_seconds: float) -> None:
    """Discard pooled connections that sat idle longer than the timeout."""

    @event.listens_for(engine.sync_engine, "checkin")
    def _mark_idle(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["idle_since"] = time.monotonic()

    @event.listens_for(engine.sync_engine, "checkout")
    def _reject_stale(
        dbapi_connection: Any, connection_record: Any, connection_proxy: Any
    ) -> None:
        idle_since = connection_record.info.pop("idle_since", None)
        if idle_since is None:
            return
        if time.monotonic() - idle_since > idle_timeout_seconds:
            # The pool replaces the connection and retries the checkout
            raise exc.DisconnectionError("Connection exceeded idle timeout")


def create_engine_for_profile(
    url: str, profile: ConnectionProfile, echo: bool = False
) -> AsyncEngine:
    async_url, url_ssl_mode = normalize_database_url(url)
    engine_kwargs: Dict[str, Any] = {"json_serializer": _json_serializer}

    if not is_sqlite_database(async_url):
        engine_kwargs.update(
            pool_size=profile.pool_size,
            max_overflow=0,
            pool_pre_ping=False,
            connect_args=_driver_connect_args(profile, url_ssl_mode),
        )
        if profile.max_lifetime_seconds is not None:
            engine_kwargs["pool_recycle"] = profile.max_lifetime_seconds

    engine = create_configured_async_engine(async_url, echo=echo, **engine_kwargs)
    install_idle_timeout(engine, profile.idle_timeout_seconds)
    return engine


class Database:
    """Owns the engine and session factory for one connection profile."""

    def __init__(self, url: str, profile: ConnectionProfile, echo: bool = False):
        self.url = url
        self.profile = profile
        self.engine = create_engine_for_profile(url, profile, echo=echo)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, pool_size: int = POOL_SIZE
    ) -> "Database":
        profile = profile_from_settings(settings, pool_size=pool_size)
        description = describe_connection(settings.db_url_chat, profile)
        logger.info(
            f"Connecting to {profile.environment.value} database",
            host=description["host"],
            database=description["database"],
            ssl_mode=profile.ssl_mode,
            max_lifetime_seconds=profile.max_lifetime_seconds,
            pool_size=profile.pool_size,
        )
        return cls(settings.db_url_chat, profile)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def create_all(self) -> None:
        """Create tables directly. Only for development and tests."""
        async with self.engine.begin() as conn:
            await conn.run_sync(chat_registry.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session from the application's Database."""
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
