"""
History manager for the chat service: thread and message storage using SQLModel.

This module defines the database models and the read-side data access layer.
Database models are kept separate from the API response models in
``services.chat.models``; the query service in ``services.chat.chat_queries``
converts between the two.

Every function takes an explicit ``AsyncSession`` owned by the caller. The
engine and session factory live on the ``Database`` handle created at startup.
"""

import datetime
import json
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import JSON, Text, cast, desc, exists, func, or_
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import registry
from sqlmodel import Column, DateTime, Field, SQLModel, select

# Create a separate registry for chat service models
chat_registry = registry()


class ChatSQLModel(SQLModel, registry=chat_registry):
    pass


class Visibility(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Thread(ChatSQLModel, table=True):
    """
    Database model for chat threads.

    Threads are created by the conversation flow, which lives outside this
    service; here they are read-only.
    """

    __tablename__ = "threads"  # type: ignore[assignment]
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    title: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime.datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    visibility: str = Field(default=Visibility.PRIVATE.value, max_length=16)

    # User identifier - indexed for query performance
    user_id: str = Field(index=True, max_length=128)


class Message(ChatSQLModel, table=True):
    """
    Database model for chat messages.

    ``parts`` is the ordered list of typed content fragments exactly as the
    conversation flow stored it. It is decoded lazily by
    ``services.chat.content_parts`` so a malformed payload never breaks a read.
    """

    __tablename__ = "messages"  # type: ignore[assignment]
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    thread_id: str = Field(foreign_key="threads.id", index=True, max_length=64)
    role: str = Field(default="user", max_length=32)
    parts: Any = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime.datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


def _raw_parts() -> Any:
    # Selecting the serialized text keeps undecodable rows readable
    return cast(Message.parts, Text)


def _searchable_parts(dialect_name: str) -> Any:
    if dialect_name == "postgresql":
        # jsonb output writes non-ASCII characters literally
        return cast(cast(Message.parts, JSONB), Text)
    return _raw_parts()


def message_text_patterns(query: str) -> List[str]:
    """
    Forms ``query`` can take inside serialized parts.

    Writers may store non-ASCII text literally or as ``\\uXXXX`` escapes, and
    escapes only compare case-insensitively on their ASCII letters, so the
    escaped lower and upper case variants are included as well.
    """
    patterns = [json.dumps(query, ensure_ascii=False)[1:-1]]
    if not query.isascii():
        for variant in (query, query.lower(), query.upper()):
            escaped = json.dumps(variant)[1:-1]
            if escaped not in patterns:
                patterns.append(escaped)
    return patterns


async def list_threads(
    session: AsyncSession,
    limit: int = 20,
    offset: int = 0,
    user_id: Optional[str] = None,
) -> List[Thread]:
    """Threads ordered by creation time, newest first."""
    query = select(Thread)
    if user_id:
        query = query.where(Thread.user_id == user_id)
    query = (
        query.order_by(desc(Thread.created_at))  # type: ignore[arg-type]
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_thread(session: AsyncSession, thread_id: str) -> Optional[Thread]:
    result = await session.execute(select(Thread).where(Thread.id == thread_id))
    return result.scalar_one_or_none()


async def count_messages(
    session: AsyncSession, thread_ids: Sequence[str]
) -> Dict[str, int]:
    """Message count per thread. Threads without messages are absent."""
    if not thread_ids:
        return {}
    result = await session.execute(
        select(Message.thread_id, func.count(Message.id))  # type: ignore[arg-type]
        .where(Message.thread_id.in_(thread_ids))  # type: ignore[attr-defined]
        .group_by(Message.thread_id)
    )
    return {thread_id: count for thread_id, count in result.all()}


async def latest_messages(
    session: AsyncSession, thread_ids: Sequence[str]
) -> Dict[str, Tuple[str, datetime.datetime]]:
    """
    Raw serialized parts and timestamp of the newest message of each thread.

    Ties on ``created_at`` are resolved by whichever row the database ranks
    first.
    """
    if not thread_ids:
        return {}
    ranked = (
        select(
            Message.thread_id,
            Message.created_at,
            _raw_parts().label("raw_parts"),
            func.row_number()
            .over(
                partition_by=Message.thread_id,
                order_by=desc(Message.created_at),  # type: ignore[arg-type]
            )
            .label("position"),
        )
        .where(Message.thread_id.in_(thread_ids))  # type: ignore[attr-defined]
        .subquery()
    )
    result = await session.execute(
        select(ranked.c.thread_id, ranked.c.raw_parts, ranked.c.created_at).where(
            ranked.c.position == 1
        )
    )
    return {
        thread_id: (raw_parts, created_at)
        for thread_id, raw_parts, created_at in result.all()
    }


async def message_parts_for_threads(
    session: AsyncSession, thread_ids: Sequence[str]
) -> Dict[str, List[str]]:
    """Raw serialized parts of every message, grouped by thread."""
    if not thread_ids:
        return {}
    result = await session.execute(
        select(Message.thread_id, _raw_parts()).where(
            Message.thread_id.in_(thread_ids)  # type: ignore[attr-defined]
        )
    )
    grouped: Dict[str, List[str]] = {}
    for thread_id, raw_parts in result.all():
        grouped.setdefault(thread_id, []).append(raw_parts)
    return grouped


async def find_search_candidates(
    session: AsyncSession, query: str, titles_only: bool = False
) -> List[Thread]:
    """
    Threads that may match ``query``.

    This is a coarse prefilter: a title substring match, or (unless
    ``titles_only``) a message whose serialized parts contain the query in
    one of its JSON-encoded forms. Candidates matched through JSON keys or
    non-text fragments are removed later, once the parts are decoded.
    """
    title_match = Thread.title.icontains(query, autoescape=True)  # type: ignore[attr-defined]
    if titles_only:
        condition = title_match
    else:
        parts = _searchable_parts(session.get_bind().dialect.name)
        message_match = exists().where(
            Message.thread_id == Thread.id,
            or_(
                *(
                    parts.icontains(pattern, autoescape=True)
                    for pattern in message_text_patterns(query)
                )
            ),
        )
        condition = or_(title_match, message_match)
    result = await session.execute(
        select(Thread)
        .where(condition)
        .order_by(desc(Thread.created_at))  # type: ignore[arg-type]
    )
    return list(result.scalars().all())


async def list_threads_around(
    session: AsyncSession,
    limit: int,
    user_id: Optional[str] = None,
    starting_after: Optional[Thread] = None,
    ending_before: Optional[Thread] = None,
) -> List[Thread]:
    """
    Cursor page of threads, newest first.

    ``starting_after`` selects threads created after the cursor thread,
    ``ending_before`` threads created before it. One extra row is fetched so
    callers can tell whether another page exists.
    """
    query = select(Thread)
    if user_id:
        query = query.where(Thread.user_id == user_id)
    if starting_after is not None:
        query = query.where(Thread.created_at > starting_after.created_at)
    elif ending_before is not None:
        query = query.where(Thread.created_at < ending_before.created_at)
    result = await session.execute(
        query.order_by(desc(Thread.created_at)).limit(limit + 1)  # type: ignore[arg-type]
    )
    return list(result.scalars().all())


async def user_has_threads(session: AsyncSession, user_id: str) -> bool:
    result = await session.execute(
        select(func.count(Thread.id)).where(Thread.user_id == user_id)  # type: ignore[arg-type]
    )
    return (result.scalar() or 0) > 0


async def table_counts(session: AsyncSession) -> Dict[str, int]:
    threads = await session.execute(select(func.count(Thread.id)))  # type: ignore[arg-type]
    messages = await session.execute(select(func.count(Message.id)))  # type: ignore[arg-type]
    return {"threads": threads.scalar() or 0, "messages": messages.scalar() or 0}


async def recent_messages(session: AsyncSession, limit: int = 20) -> List[Any]:
    """Newest message rows with their parts left serialized."""
    result = await session.execute(
        select(
            Message.id,
            Message.thread_id,
            Message.role,
            _raw_parts().label("raw_parts"),
            Message.created_at,
        )
        .order_by(desc(Message.created_at))  # type: ignore[arg-type]
        .limit(limit)
    )
    return list(result.all())
