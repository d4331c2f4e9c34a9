"""
Access gate middleware.

Runs in front of every route:

1. ``/ping`` answers "pong" directly.
2. Paths on the bypass list pass through untouched.
3. Without a usable session token the caller is redirected to guest-session
   creation, carrying the original URL. The game page is the only page
   served without a session.
4. A signed-in, non-guest user visiting login or register is sent to ``/``.
5. Everything else passes through.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from services.chat.auth import SessionToken, resolve_session
from services.chat.settings import get_settings
from services.common.logging_config import get_logger

logger = get_logger(__name__)

PING_PATH = "/ping"
GUEST_SIGN_IN_PATH = "/api/auth/guest"
GAME_PAGE_PATH = "/tic-tac-toe"
ACCOUNT_PAGES = ("/login", "/register")

BYPASS_PREFIXES: Tuple[str, ...] = (
    "/health",
    "/ready",
    "/api/auth",
    "/api/test",
    "/api/db-viewer",
    "/api/debug-session",
    "/api/autosuggest",
    "/api/tic-tac-toe",
)
CHAT_READ_PREFIXES: Tuple[str, ...] = (
    "/api/search",
    "/api/chats",
    "/api/history",
)
BYPASS_EXACT: Tuple[str, ...] = ("/db-viewer.html", "/db-viewer")

# Characters encodeURIComponent leaves unescaped besides alphanumerics and _.-~
URI_COMPONENT_SAFE = "!'()*"


@dataclass(frozen=True)
class GateDecision:
    action: str  # "pong", "allow" or "redirect"
    location: Optional[str] = None


ALLOW = GateDecision("allow")


def is_bypassed(path: str, public_chat_read_access: bool = True) -> bool:
    prefixes = BYPASS_PREFIXES
    if public_chat_read_access:
        prefixes = prefixes + CHAT_READ_PREFIXES
    return path.startswith(prefixes) or path in BYPASS_EXACT


def guest_sign_in_location(original_url: str) -> str:
    redirect_url = quote(original_url, safe=URI_COMPONENT_SAFE)
    return f"{GUEST_SIGN_IN_PATH}?redirectUrl={redirect_url}"


def decide(
    path: str,
    original_url: str,
    session: Optional[SessionToken],
    public_chat_read_access: bool = True,
) -> GateDecision:
    if path.startswith(PING_PATH):
        return GateDecision("pong")
    if is_bypassed(path, public_chat_read_access):
        return ALLOW

    if session is None:
        if path == GAME_PAGE_PATH:
            return ALLOW
        return GateDecision("redirect", guest_sign_in_location(original_url))

    if not session.is_guest and path in ACCOUNT_PAGES:
        return GateDecision("redirect", "/")
    return ALLOW


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Applies ``decide`` to every request."""

    def __init__(self, app: ASGIApp, public_chat_read_access: Optional[bool] = None):
        super().__init__(app)
        self.public_chat_read_access = public_chat_read_access

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
        settings = get_settings()
        public_read = (
            settings.public_chat_read_access
            if self.public_chat_read_access is None
            else self.public_chat_read_access
        )
        path = request.url.path

        # Only resolve the token when the path is not decided without it
        session = None
        if not path.startswith(PING_PATH) and not is_bypassed(path, public_read):
            session = resolve_session(request, settings)

        decision = decide(path, str(request.url), session, public_read)
        if decision.action == "pong":
            return PlainTextResponse("pong")
        if decision.action == "redirect":
            logger.info(
                "Access gate redirect",
                path=path,
                location=decision.location,
                has_session=session is not None,
            )
            return RedirectResponse(decision.location or "/", status_code=307)
        return await call_next(request)
