"""
API request and response models for the chat service.

Database models (Thread, Message) live in ``history_manager`` and are never
returned directly; the query service projects them into the models below.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SuggestionType = Literal["completion", "question", "command", "suggestion"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatSummary(CamelModel):
    """A thread projected with message count and last-message summary."""

    id: str
    title: str
    created_at: datetime
    visibility: str
    message_count: int = 0
    last_message: str
    last_message_at: Optional[datetime] = None


class SearchResult(ChatSummary):
    relevance_score: int


class ChatListResponse(CamelModel):
    chats: List[ChatSummary]
    # Length of the returned page, not the number of stored threads
    total: int
    limit: int
    offset: int


class ChatDetailResponse(CamelModel):
    chat: ChatSummary


class SearchResponse(CamelModel):
    chats: List[SearchResult]
    total: int
    query: str
    limit: int
    offset: int


class TitleSearchResponse(SearchResponse):
    search_type: str = "title-only"


class HistoryResponse(CamelModel):
    chats: List[ChatSummary]
    has_more: bool


class Suggestion(CamelModel):
    """A single completion suggestion. Computed per request, never stored."""

    id: str
    text: str
    type: SuggestionType = "completion"
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class AutosuggestRequest(CamelModel):
    # Validated by the endpoint so a missing or non-string value gets the
    # dedicated error message
    text: Any = None
    model_id: str = "chat-model"
    max_suggestions: int = Field(default=5, ge=1)


class AutosuggestResponse(CamelModel):
    suggestions: List[Suggestion]
    query: Optional[str] = None
    model: Optional[str] = None
    timestamp: Optional[str] = None


class StarterSuggestionsResponse(CamelModel):
    suggestions: List[Suggestion]
    model: str
    timestamp: str


class ConnectionInfo(CamelModel):
    environment: str
    host: str
    database: str
    ssl: str


class DatabaseOverview(CamelModel):
    table: Literal["overview"] = "overview"
    counts: dict
    connection: ConnectionInfo


class TableRows(CamelModel):
    table: str
    rows: List[dict]
    limit: int


class SessionDebugInfo(CamelModel):
    has_session: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    user_type: Optional[str] = None
