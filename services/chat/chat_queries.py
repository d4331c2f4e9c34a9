"""
Chat query service: read-only projections over threads and messages.

Each operation takes the caller's ``AsyncSession`` and returns API models.
Database failures are logged with their detail and re-raised as
``UpstreamError`` so the caller only sees a generic message.
"""

from datetime import datetime
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.chat import history_manager
from services.chat.content_parts import NO_MESSAGES, searchable_fragments, summarize
from services.chat.history_manager import Thread
from services.chat.models import (
    ChatSummary,
    HistoryResponse,
    SearchResult,
)
from services.chat.relevance import calculate_relevance, matches, title_score
from services.common.http_errors import (
    ErrorCode,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)

MIN_QUERY_LENGTH = 2
DEFAULT_LIST_LIMIT = 20
DEFAULT_SEARCH_LIMIT = 10
DEFAULT_HISTORY_LIMIT = 10

T = TypeVar("T")


def database_errors(operation: str) -> Callable:
    """Turn SQLAlchemy failures into a masked UpstreamError."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                raise UpstreamError(
                    f"Database error during {operation}: {e}",
                    code=ErrorCode.DATABASE_ERROR,
                ) from e

        return wrapper

    return decorator


def normalize_query(query: Optional[str]) -> str:
    """
    Trim and lower-case a search query.

    Raises:
        ValidationError: If fewer than 2 characters remain
    """
    normalized = (query or "").strip().lower()
    if len(normalized) < MIN_QUERY_LENGTH:
        raise ValidationError(
            "Query must be at least 2 characters long", field="q", value=query
        )
    return normalized


def _summary_fields(
    thread: Thread,
    counts: Dict[str, int],
    latest: Dict[str, Tuple[str, datetime]],
) -> Dict[str, Any]:
    last_message = NO_MESSAGES
    last_message_at = None
    if thread.id in latest:
        raw_parts, last_message_at = latest[thread.id]
        last_message = summarize(raw_parts)
    return {
        "id": thread.id,
        "title": thread.title,
        "created_at": thread.created_at,
        "visibility": thread.visibility,
        "message_count": counts.get(thread.id, 0),
        "last_message": last_message,
        "last_message_at": last_message_at,
    }


async def _summarize_threads(
    session: AsyncSession, threads: List[Thread]
) -> List[ChatSummary]:
    thread_ids = [thread.id for thread in threads]
    counts = await history_manager.count_messages(session, thread_ids)
    latest = await history_manager.latest_messages(session, thread_ids)
    return [
        ChatSummary(**_summary_fields(thread, counts, latest)) for thread in threads
    ]


@database_errors("list chats")
async def list_chats(
    session: AsyncSession,
    limit: int = DEFAULT_LIST_LIMIT,
    offset: int = 0,
    user_id: Optional[str] = None,
) -> List[ChatSummary]:
    """Page of threads, newest first, with message count and last message."""
    threads = await history_manager.list_threads(
        session, limit=limit, offset=offset, user_id=user_id
    )
    return await _summarize_threads(session, threads)


@database_errors("get chat")
async def get_chat(session: AsyncSession, chat_id: str) -> ChatSummary:
    """
    Raises:
        NotFoundError: If no thread has ``chat_id``
    """
    thread = await history_manager.get_thread(session, chat_id)
    if thread is None:
        raise NotFoundError("Chat", chat_id)
    summaries = await _summarize_threads(session, [thread])
    return summaries[0]


async def _rank(
    session: AsyncSession,
    candidates: List[Thread],
    query: str,
    titles_only: bool,
) -> List[Tuple[int, Thread]]:
    if titles_only:
        return [
            (title_score(thread.title, query), thread)
            for thread in candidates
            if query in thread.title.lower()
        ]

    parts_by_thread = await history_manager.message_parts_for_threads(
        session, [thread.id for thread in candidates]
    )
    ranked = []
    for thread in candidates:
        texts = [
            fragment
            for raw in parts_by_thread.get(thread.id, [])
            for fragment in searchable_fragments(raw)
        ]
        if matches(thread.title, texts, query):
            ranked.append((calculate_relevance(thread.title, texts, query), thread))
    return ranked


async def _search(
    session: AsyncSession,
    query: str,
    limit: int,
    offset: int,
    titles_only: bool,
) -> List[SearchResult]:
    candidates = await history_manager.find_search_candidates(
        session, query, titles_only=titles_only
    )
    ranked = await _rank(session, candidates, query, titles_only)
    # Score descending, newest first within a score
    ranked.sort(key=lambda item: item[1].created_at, reverse=True)
    ranked.sort(key=lambda item: item[0], reverse=True)
    page = ranked[offset : offset + limit]

    threads = [thread for _, thread in page]
    thread_ids = [thread.id for thread in threads]
    counts = await history_manager.count_messages(session, thread_ids)
    latest = await history_manager.latest_messages(session, thread_ids)

    logger.info(
        "Search completed",
        query=query,
        titles_only=titles_only,
        candidates=len(candidates),
        matched=len(ranked),
        returned=len(page),
    )
    return [
        SearchResult(
            **_summary_fields(thread, counts, latest), relevance_score=score
        )
        for score, thread in page
    ]


@database_errors("search chats")
async def search_chats(
    session: AsyncSession,
    query: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
    offset: int = 0,
) -> List[SearchResult]:
    """
    Threads whose title or message text contains ``query``, best match first.

    ``query`` must already be normalized with ``normalize_query``.
    """
    return await _search(session, query, limit, offset, titles_only=False)


@database_errors("search chat titles")
async def search_chat_titles(
    session: AsyncSession,
    query: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
    offset: int = 0,
) -> List[SearchResult]:
    """Like ``search_chats`` but only looks at titles."""
    return await _search(session, query, limit, offset, titles_only=True)


@database_errors("chat history")
async def get_chat_history(
    session: AsyncSession,
    limit: int = DEFAULT_HISTORY_LIMIT,
    user_id: Optional[str] = None,
    starting_after: Optional[str] = None,
    ending_before: Optional[str] = None,
) -> HistoryResponse:
    """
    Cursor-paginated threads for the sidebar history.

    Without a user, or for a user who owns no threads, every thread is
    listed.

    Raises:
        ValidationError: If both cursors are given
        NotFoundError: If a cursor names an unknown thread
    """
    if starting_after and ending_before:
        raise ValidationError(
            "Only one of starting_after or ending_before can be provided."
        )

    cursor_id = starting_after or ending_before
    cursor = None
    if cursor_id:
        cursor = await history_manager.get_thread(session, cursor_id)
        if cursor is None:
            raise NotFoundError("Chat", cursor_id)

    owner = None
    if user_id and await history_manager.user_has_threads(session, user_id):
        owner = user_id

    threads = await history_manager.list_threads_around(
        session,
        limit=limit,
        user_id=owner,
        starting_after=cursor if starting_after else None,
        ending_before=cursor if ending_before else None,
    )
    has_more = len(threads) > limit
    chats = await _summarize_threads(session, threads[:limit])
    return HistoryResponse(chats=chats, has_more=has_more)


@database_errors("database overview")
async def table_overview(session: AsyncSession) -> Dict[str, int]:
    return await history_manager.table_counts(session)


@database_errors("table rows")
async def table_rows(
    session: AsyncSession, table: str, limit: int = 20
) -> List[Dict[str, Any]]:
    """
    Recent rows of ``table`` ("chats" or "messages") for the database viewer.

    Raises:
        ValidationError: If the table name is unknown
    """
    if table == "chats":
        threads = await history_manager.list_threads(session, limit=limit)
        return [thread.model_dump(mode="json") for thread in threads]
    elif table == "messages":
        rows = await history_manager.recent_messages(session, limit=limit)
        return [
            {
                "id": row.id,
                "thread_id": row.thread_id,
                "role": row.role,
                "summary": summarize(row.raw_parts),
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }
            for row in rows
        ]
    raise ValidationError(f"Unknown table: {table}", field="table", value=table)
