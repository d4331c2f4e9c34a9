"""
HTTP client for the chat service API.

Search and autosuggest calls each go through their own
``CancellableRequest`` so a newer keystroke always wins.
"""

import types
from typing import Any, Callable, Dict, Optional, Type

import httpx

from services.chat.client.request_coordinator import CancellableRequest
from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


class ChatServiceClient:
    """Async context manager wrapping the chat service endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session_token: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout)
        self.transport = transport
        self.session_token = session_token
        self.http_client: Optional[httpx.AsyncClient] = None
        self.search_requests: Optional[CancellableRequest] = None
        self.suggestion_requests: Optional[CancellableRequest] = None

    async def __aenter__(self) -> "ChatServiceClient":
        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers=self._headers(),
        )
        self.search_requests = CancellableRequest(self.http_client)
        self.suggestion_requests = CancellableRequest(self.http_client)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[types.TracebackType],
    ) -> None:
        for coordinator in (self.search_requests, self.suggestion_requests):
            if coordinator is not None:
                coordinator.cancel_current_request()
        if self.http_client:
            await self.http_client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}

        # Propagate request ID for distributed tracing
        request_id = request_id_var.get()
        if request_id and request_id != "uninitialized":
            headers["X-Request-Id"] = request_id
        if self.session_token:
            headers["Authorization"] = f"Bearer {self.session_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            raise RuntimeError(
                "ChatServiceClient must be used as an async context manager"
            )
        return self.http_client

    async def list_chats(
        self, limit: int = 20, offset: int = 0, user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit, "offset": offset}
        if user_id:
            params["userId"] = user_id
        response = await self._client().get("/api/chats", params=params)
        response.raise_for_status()
        return response.json()

    async def get_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        """The chat, or None if it does not exist."""
        response = await self._client().get(f"/api/chats/{chat_id}")
        if response.status_code == 404:
            logger.warning(f"Chat {chat_id} not found")
            return None
        response.raise_for_status()
        return response.json()["chat"]

    async def search(
        self,
        query: str,
        limit: int = 10,
        offset: int = 0,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Search chats; supersedes any search still in flight."""
        self._client()
        assert self.search_requests is not None
        return await self.search_requests.request(
            "GET",
            "/api/search",
            params={"q": query, "limit": limit, "offset": offset},
            on_success=on_success,
            on_error=on_error,
            on_cancel=on_cancel,
        )

    async def autosuggest(
        self,
        text: str,
        model_id: str = "chat-model",
        max_suggestions: int = 5,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Suggestions for ``text``; supersedes any suggestion request in flight."""
        self._client()
        assert self.suggestion_requests is not None
        return await self.suggestion_requests.request(
            "POST",
            "/api/autosuggest",
            json={
                "text": text,
                "modelId": model_id,
                "maxSuggestions": max_suggestions,
            },
            on_success=on_success,
            on_error=on_error,
            on_cancel=on_cancel,
        )

    async def starter_suggestions(
        self, model_id: str = "chat-model", max_suggestions: int = 5
    ) -> Dict[str, Any]:
        response = await self._client().get(
            "/api/autosuggest/starter",
            params={"modelId": model_id, "maxSuggestions": max_suggestions},
        )
        response.raise_for_status()
        return response.json()
