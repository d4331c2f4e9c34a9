"""Async client for the chat service HTTP API."""

from services.chat.client.chat_client import ChatServiceClient
from services.chat.client.request_coordinator import CancellableRequest, RequestHandle

__all__ = ["CancellableRequest", "ChatServiceClient", "RequestHandle"]
