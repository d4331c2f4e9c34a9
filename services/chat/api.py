"""
Chat service API endpoints.

Handlers stay thin: they validate input, call the query or autosuggest
service, and wrap the result in the response models. Errors are raised as
``services.common.http_errors`` exceptions and rendered by the registered
exception handlers.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.chat import chat_queries
from services.chat.auth import SessionToken, get_optional_session
from services.chat.autosuggest import AutosuggestService, get_autosuggest_service
from services.chat.database import describe_connection, get_db_session
from services.chat.models import (
    AutosuggestRequest,
    AutosuggestResponse,
    ChatDetailResponse,
    ChatListResponse,
    ConnectionInfo,
    DatabaseOverview,
    HistoryResponse,
    SearchResponse,
    SessionDebugInfo,
    StarterSuggestionsResponse,
    TableRows,
    TitleSearchResponse,
)
from services.chat.settings import get_settings
from services.common.http_errors import NotFoundError
from services.common.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

DB_VIEWER_ROW_LIMIT = 20


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/chats", response_model=ChatListResponse)
async def list_chats(
    limit: int = Query(default=chat_queries.DEFAULT_LIST_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    session: AsyncSession = Depends(get_db_session),
) -> ChatListResponse:
    """List threads, newest first."""
    chats = await chat_queries.list_chats(
        session, limit=limit, offset=offset, user_id=user_id
    )
    return ChatListResponse(chats=chats, total=len(chats), limit=limit, offset=offset)


@router.get("/chats/{chat_id}", response_model=ChatDetailResponse)
async def get_chat(
    chat_id: str, session: AsyncSession = Depends(get_db_session)
) -> ChatDetailResponse:
    chat = await chat_queries.get_chat(session, chat_id)
    return ChatDetailResponse(chat=chat)


@router.get("/search", response_model=SearchResponse)
async def search_chats(
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=chat_queries.DEFAULT_SEARCH_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_db_session),
) -> SearchResponse:
    """Search thread titles and message text."""
    query = chat_queries.normalize_query(q)
    chats = await chat_queries.search_chats(session, query, limit=limit, offset=offset)
    return SearchResponse(
        chats=chats, total=len(chats), query=query, limit=limit, offset=offset
    )


@router.get("/search/titles", response_model=TitleSearchResponse)
async def search_chat_titles(
    q: Optional[str] = Query(default=None),
    limit: int = Query(default=chat_queries.DEFAULT_SEARCH_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_db_session),
) -> TitleSearchResponse:
    query = chat_queries.normalize_query(q)
    chats = await chat_queries.search_chat_titles(
        session, query, limit=limit, offset=offset
    )
    return TitleSearchResponse(
        chats=chats, total=len(chats), query=query, limit=limit, offset=offset
    )


@router.get("/history", response_model=HistoryResponse)
async def chat_history(
    limit: int = Query(default=chat_queries.DEFAULT_HISTORY_LIMIT, ge=1),
    starting_after: Optional[str] = Query(default=None),
    ending_before: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_db_session),
    auth_session: Optional[SessionToken] = Depends(get_optional_session),
) -> HistoryResponse:
    return await chat_queries.get_chat_history(
        session,
        limit=limit,
        user_id=auth_session.user_id if auth_session else None,
        starting_after=starting_after,
        ending_before=ending_before,
    )


@router.post(
    "/autosuggest",
    response_model=AutosuggestResponse,
    response_model_exclude_none=True,
)
async def autosuggest(
    payload: AutosuggestRequest = Body(...),
    service: AutosuggestService = Depends(get_autosuggest_service),
) -> AutosuggestResponse:
    """Suggest completions for partially typed text."""
    suggestions = await service.suggest(
        payload.text, payload.model_id, payload.max_suggestions
    )
    if len(payload.text) < service.min_chars:
        return AutosuggestResponse(suggestions=[])
    return AutosuggestResponse(
        suggestions=suggestions,
        query=payload.text,
        model=payload.model_id,
        timestamp=_timestamp(),
    )


@router.get("/autosuggest/starter", response_model=StarterSuggestionsResponse)
async def starter_suggestions(
    model_id: str = Query(default="chat-model", alias="modelId"),
    max_suggestions: int = Query(default=5, ge=1, alias="maxSuggestions"),
    service: AutosuggestService = Depends(get_autosuggest_service),
) -> StarterSuggestionsResponse:
    """Suggestions for an empty composer."""
    suggestions = await service.starter_suggestions(model_id, max_suggestions)
    return StarterSuggestionsResponse(
        suggestions=suggestions, model=model_id, timestamp=_timestamp()
    )


@router.get("/db-viewer", response_model=None)
async def db_viewer(
    request: Request,
    table: str = Query(default="overview"),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """Row counts, connection details and recent rows for quick inspection."""
    if table == "overview":
        counts = await chat_queries.table_overview(session)
        database = request.app.state.database
        connection = describe_connection(database.url, database.profile)
        return DatabaseOverview(
            counts=counts, connection=ConnectionInfo(**connection)
        ).model_dump(by_alias=True)

    rows = await chat_queries.table_rows(session, table, limit=DB_VIEWER_ROW_LIMIT)
    return TableRows(table=table, rows=rows, limit=DB_VIEWER_ROW_LIMIT).model_dump(
        by_alias=True
    )


@router.get("/debug-session", response_model=SessionDebugInfo)
async def debug_session(
    request: Request,
    auth_session: Optional[SessionToken] = Depends(get_optional_session),
) -> SessionDebugInfo:
    """Report what the service sees of the caller's session. Debug mode only."""
    if not get_settings().debug:
        raise NotFoundError("Route", request.url.path)
    if auth_session is None:
        return SessionDebugInfo(has_session=False)
    return SessionDebugInfo(
        has_session=True,
        user_id=auth_session.user_id,
        email=auth_session.email,
        user_type=auth_session.user_type,
    )
