"""
Base classes for Chat Service tests.

Provides common setup and teardown for all chat service tests, including
required settings, a throwaway SQLite database seeded with a small set of
threads, and HTTP call prevention.
"""

import asyncio
import os
import shutil
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import jwt
from sqlalchemy import text

from services.common.test_utils import BaseSelectiveHTTPIntegrationTest

TEST_AUTH_SECRET = "test-auth-secret-for-session-tokens"


def ts(day: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, 10, minute, tzinfo=timezone.utc)


def text_parts(*texts: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": value} for value in texts]


# Newest thread last; list endpoints return them in reverse.
SEED_THREADS = [
    {
        "id": "thread-python",
        "title": "Python tips",
        "user_id": "alice",
        "created_at": ts(1),
        "visibility": "private",
    },
    {
        "id": "thread-cooking",
        "title": "Cooking ideas",
        "user_id": "bob",
        "created_at": ts(2),
        "visibility": "public",
    },
    {
        "id": "thread-empty",
        "title": "Empty thread",
        "user_id": "alice",
        "created_at": ts(3),
        "visibility": "private",
    },
    {
        "id": "thread-broken",
        "title": "Broken payload",
        "user_id": "bob",
        "created_at": ts(4),
        "visibility": "private",
    },
    {
        "id": "thread-image",
        "title": "Image share",
        "user_id": "bob",
        "created_at": ts(5),
        "visibility": "private",
    },
]

SEED_MESSAGES = [
    {
        "id": "msg-python-1",
        "thread_id": "thread-python",
        "role": "user",
        "parts": text_parts("How do I use asyncio in Python?"),
        "created_at": ts(1, 1),
    },
    {
        "id": "msg-python-2",
        "thread_id": "thread-python",
        "role": "assistant",
        "parts": text_parts("Use asyncio.run", "for the entry point"),
        "created_at": ts(1, 2),
    },
    {
        "id": "msg-cooking-1",
        "thread_id": "thread-cooking",
        "role": "user",
        "parts": text_parts("I love python recipes, café style"),
        "created_at": ts(2, 1),
    },
    {
        "id": "msg-broken-1",
        "thread_id": "thread-broken",
        "role": "user",
        "parts": text_parts("placeholder"),
        "created_at": ts(4, 1),
    },
    {
        "id": "msg-image-1",
        "thread_id": "thread-image",
        "role": "user",
        "parts": [{"type": "image", "url": "python-logo.png"}],
        "created_at": ts(5, 1),
    },
]

MALFORMED_PARTS = '{"type": "text", "text": unterminated'


def make_session_token(
    email: str = "alice@example.com",
    user_id: str = "alice",
    secret: str = TEST_AUTH_SECRET,
    **claims: Any,
) -> str:
    payload = {"id": user_id, "email": email, "type": "regular", **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


async def seed_database(database_url: str) -> None:
    """Create the tables and insert the seed threads and messages."""
    from services.chat.database import Database, resolve_connection_profile
    from services.chat.history_manager import Message, Thread

    database = Database(database_url, resolve_connection_profile(database_url))
    try:
        await database.create_all()
        async with database.session() as session:
            session.add_all([Thread(**row) for row in SEED_THREADS])
            await session.flush()
            session.add_all([Message(**row) for row in SEED_MESSAGES])
            await session.commit()

            # Stored payloads are not guaranteed to be valid JSON
            await session.execute(
                text("UPDATE messages SET parts = :parts WHERE id = :id"),
                {"parts": MALFORMED_PARTS, "id": "msg-broken-1"},
            )
            await session.commit()
    finally:
        await database.dispose()


async def insert_raw_thread(
    database_url: str, thread: Dict[str, Any], raw_messages: Dict[str, str]
) -> None:
    """Add a thread whose message parts are written verbatim, as another writer would."""
    from services.chat.database import Database, resolve_connection_profile
    from services.chat.history_manager import Message, Thread

    database = Database(database_url, resolve_connection_profile(database_url))
    try:
        async with database.session() as session:
            session.add(Thread(**thread))
            await session.flush()
            session.add_all(
                [
                    Message(
                        id=message_id,
                        thread_id=thread["id"],
                        role="user",
                        parts=text_parts("placeholder"),
                        created_at=thread["created_at"],
                    )
                    for message_id in raw_messages
                ]
            )
            await session.commit()

            for message_id, raw_parts in raw_messages.items():
                await session.execute(
                    text("UPDATE messages SET parts = :parts WHERE id = :id"),
                    {"parts": raw_parts, "id": message_id},
                )
            await session.commit()
    finally:
        await database.dispose()


class BaseChatTest(BaseSelectiveHTTPIntegrationTest):
    """Base class for all Chat Service tests with HTTP call prevention."""

    seed = True

    def setup_method(self, method: object = None) -> None:
        """Set up Chat Service test environment with required settings."""
        # Call parent setup to enable HTTP call detection
        super().setup_method(method)

        import services.chat.settings as chat_settings

        # Store original settings singleton for cleanup
        self._original_settings = chat_settings._settings

        self.temp_dir = tempfile.mkdtemp()
        self.database_url = (
            f"sqlite+aiosqlite:///{os.path.join(self.temp_dir, 'chat.db')}"
        )

        test_settings = chat_settings.Settings(
            db_url_chat=self.database_url,
            auto_create_tables=True,
            auth_secret=TEST_AUTH_SECRET,
            environment="test",
            llm_provider="fake",
            openai_api_key=None,
            log_level="INFO",
            log_format="json",
            **self.settings_overrides(),
        )

        # Set the test settings as the singleton
        chat_settings._settings = test_settings

        if self.seed:
            asyncio.run(seed_database(self.database_url))

    def settings_overrides(self) -> Dict[str, Any]:
        return {}

    def teardown_method(self, method: object = None) -> None:
        """Clean up Chat Service test environment."""
        super().teardown_method(method)

        import services.chat.settings as chat_settings

        chat_settings._settings = self._original_settings
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def auth_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token or make_session_token()}"}
