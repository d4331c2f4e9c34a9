"""
Migration runner for the chat service.

Applies the Alembic revisions under ``services/chat/alembic`` to the
configured database over a single pooled connection. Alembic's version table
makes every revision run exactly once.

Usage:
    python -m services.chat.migrate
    python -m services.chat.migrate --revision 0001
    python -m services.chat.migrate --refresh-search-index
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import text

from services.chat.database import (
    MIGRATION_POOL_SIZE,
    ConnectionProfile,
    create_engine_for_profile,
    describe_connection,
    profile_from_settings,
)
from services.chat.settings import get_settings
from services.common.logging_config import get_logger, setup_service_logging

logger = get_logger(__name__)

ALEMBIC_DIR = Path(__file__).resolve().parent / "alembic"


def build_alembic_config(
    database_url: str, profile: Optional[ConnectionProfile] = None
) -> Config:
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.attributes["database_url"] = database_url
    if profile is not None:
        config.attributes["connection_profile"] = profile
    return config


def run_migrations(
    database_url: str,
    revision: str = "head",
    profile: Optional[ConnectionProfile] = None,
) -> float:
    """
    Upgrade the database to ``revision``.

    Must be called outside a running event loop; the Alembic environment
    drives the async engine itself.

    Returns:
        Elapsed time in milliseconds
    """
    start = time.perf_counter()
    command.upgrade(build_alembic_config(database_url, profile), revision)
    return (time.perf_counter() - start) * 1000


async def refresh_search_index(
    database_url: str, profile: ConnectionProfile
) -> None:
    """Refresh the precomputed search view (PostgreSQL only)."""
    engine = create_engine_for_profile(database_url, profile)
    try:
        if engine.dialect.name != "postgresql":
            logger.info(
                "Search index view only exists on PostgreSQL, nothing to refresh",
                dialect=engine.dialect.name,
            )
            return
        async with engine.begin() as conn:
            await conn.execute(text("SELECT refresh_thread_search_index()"))
    finally:
        await engine.dispose()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply chat database migrations")
    parser.add_argument(
        "--revision",
        default="head",
        help="Target revision (default: head)",
    )
    parser.add_argument(
        "--refresh-search-index",
        action="store_true",
        help="Refresh the search materialized view after migrating",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_service_logging(
        service_name="chat-migrations",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )

    profile = profile_from_settings(settings, pool_size=MIGRATION_POOL_SIZE)
    description = describe_connection(settings.db_url_chat, profile)
    logger.info(
        f"Running migrations on {profile.environment.value} database",
        host=description["host"],
        database=description["database"],
        revision=args.revision,
    )

    try:
        elapsed_ms = run_migrations(settings.db_url_chat, args.revision, profile)
        logger.info(f"Migrations completed in {elapsed_ms:.0f} ms")
        if args.refresh_search_index:
            asyncio.run(refresh_search_index(settings.db_url_chat, profile))
            logger.info("Search index refreshed")
    except Exception as e:
        logger.error(
            "Migration failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
