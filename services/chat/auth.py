"""
Session token resolution for the chat service.

Session tokens are HS256 JWTs signed with ``AUTH_SECRET``. They arrive either
as a Bearer token or in the session cookie. A token that fails verification
is treated exactly like a missing one.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt
from fastapi import Request

from services.chat.settings import Settings, get_settings
from services.common.http_errors import AuthError, ErrorCode
from services.common.logging_config import get_logger

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "authjs.session-token"
SECURE_COOKIE_PREFIX = "__Secure-"
GUEST_EMAIL_PATTERN = re.compile(r"^guest-\d+$")


@dataclass(frozen=True)
class SessionToken:
    user_id: Optional[str]
    email: Optional[str]
    user_type: Optional[str]

    @property
    def is_guest(self) -> bool:
        return bool(GUEST_EMAIL_PATTERN.match(self.email or ""))


def session_cookie_name(settings: Settings) -> str:
    """Outside development the cookie carries the ``__Secure-`` prefix."""
    if settings.is_development:
        return SESSION_COOKIE_NAME
    return f"{SECURE_COOKIE_PREFIX}{SESSION_COOKIE_NAME}"


def extract_token(request: Request, settings: Settings) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(session_cookie_name(settings))


def verify_session_token(token: str, secret: str) -> Dict[str, Any]:
    """
    Verify and decode a session token.

    Raises:
        AuthError: If the token is expired, malformed or wrongly signed
    """
    try:
        return jwt.decode(
            token,
            key=secret,
            algorithms=["HS256"],
            options={"verify_exp": True, "verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}", code=ErrorCode.TOKEN_INVALID)


def session_from_claims(claims: Dict[str, Any]) -> SessionToken:
    user = claims.get("user") if isinstance(claims.get("user"), dict) else {}
    return SessionToken(
        user_id=claims.get("id") or claims.get("sub") or user.get("id"),
        email=claims.get("email") or user.get("email"),
        user_type=claims.get("type") or user.get("type"),
    )


def resolve_session(
    request: Request, settings: Optional[Settings] = None
) -> Optional[SessionToken]:
    """Session of the caller, or None when absent or invalid."""
    settings = settings or get_settings()
    token = extract_token(request, settings)
    if not token:
        return None
    if not settings.auth_secret:
        logger.warning("AUTH_SECRET not configured - session tokens cannot be verified")
        return None
    try:
        claims = verify_session_token(token, settings.auth_secret)
    except AuthError as e:
        logger.info("Ignoring unusable session token", reason=e.message)
        return None
    return session_from_claims(claims)


async def get_optional_session(request: Request) -> Optional[SessionToken]:
    """FastAPI dependency: the caller's session, if any."""
    return resolve_session(request)
