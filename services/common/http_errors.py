"""
Shared HTTP error classes and utilities for the chat services.

Provides:
- Base exception class for API errors
- Common subclasses (Validation, NotFound, Auth, Upstream)
- Shared error response model
- Utility to convert exceptions to error responses
- FastAPI exception handler registration

Common Usage Patterns:
=====================

Basic Exception Usage:
>>> from services.common.http_errors import ValidationError, NotFoundError
>>>
>>> # Validation error with field context
>>> error = ValidationError("Query must be at least 2 characters long", field="q")
>>>
>>> # Resource not found
>>> error = NotFoundError("Chat", "chat-123")

FastAPI Integration:
>>> from fastapi import FastAPI
>>> from services.common.http_errors import register_exception_handlers
>>>
>>> app = FastAPI()
>>> register_exception_handlers(app)
>>>
>>> @app.get("/chats/{chat_id}")
>>> async def get_chat(chat_id: str):
...     if not chat_exists(chat_id):
...         raise NotFoundError("Chat", chat_id)
...     return {"chat_id": chat_id}

Every error body carries an ``error`` string so callers can rely on a single
field regardless of the error type. Upstream failures (database, model
provider) never expose internal detail to the caller; the detail is logged
server-side instead.

Error Code Taxonomy:
===================
- VALIDATION_FAILED : Input validation errors (400)
- AUTH_* : Authentication errors (401)
- NOT_FOUND : Resource not found (404)
- UPSTREAM_* / DATABASE_ERROR : Database or provider failures (500)
- INTERNAL_ERROR : Anything unhandled (500)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel

from services.common.logging_config import get_logger, log_http_error

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class ErrorCode(str, Enum):
    """
    Standardized error codes for the chat services.

    Categories:
        - General: Common errors that apply across all endpoints
        - Authentication: Session token errors
        - Upstream: Database and model-provider failures
    """

    # ==========================================
    # GENERAL ERRORS (4xx client errors)
    # ==========================================
    VALIDATION_FAILED = "VALIDATION_FAILED"  # HTTP 400 - Input validation failed
    NOT_FOUND = "NOT_FOUND"  # HTTP 404 - Resource not found
    INTERNAL_ERROR = "INTERNAL_ERROR"  # HTTP 500 - Generic internal error

    # ==========================================
    # AUTHENTICATION ERRORS (401 Unauthorized)
    # ==========================================
    AUTH_FAILED = "AUTH_FAILED"  # Generic authentication failure
    TOKEN_EXPIRED = "TOKEN_EXPIRED"  # Session token has expired
    TOKEN_INVALID = "TOKEN_INVALID"  # Token format or signature invalid

    # ==========================================
    # UPSTREAM ERRORS (500 masked)
    # ==========================================
    DATABASE_ERROR = "DATABASE_ERROR"  # Database connectivity/operation error
    UPSTREAM_ERROR = "UPSTREAM_ERROR"  # Generic upstream failure
    PROVIDER_ERROR = "PROVIDER_ERROR"  # Language-model provider failure


class ErrorResponse(BaseModel):
    """
    Standardized error response model.

    Attributes:
        error: Human-readable error message for end users
        type: Error type categorization (e.g., "validation_error", "not_found")
        details: Optional dictionary containing additional error context
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Unique identifier for tracing and debugging purposes

    Example:
        >>> error = ErrorResponse(
        ...     error="Query must be at least 2 characters long",
        ...     type="validation_error",
        ...     details={"field": "q"},
        ...     timestamp="2024-01-15T10:30:00Z",
        ...     request_id="req-abc123"
        ... )
    """

    error: str
    type: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


class APIException(Exception):
    """
    Base exception class for all API errors.

    Carries an HTTP status code, an error category and an optional
    ``ErrorCode``, and converts itself to an ``ErrorResponse``.

    Args:
        message: The error message to display to users
        details: Optional dictionary with additional error context
        error_type: Error category string (defaults to "internal_error")
        error_code: Specific error code from ErrorCode enum
        status_code: HTTP status code (defaults to 500)
        request_id: Optional request ID (auto-generated if not provided)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or str(uuid.uuid4())
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """
        Convert exception to ErrorResponse Pydantic model.

        Includes the error code in details if present.

        Example:
            >>> error = ValidationError("Text input is required", field="text")
            >>> error.to_error_response().model_dump()
            {
                'error': 'Text input is required',
                'type': 'validation_error',
                'details': {'field': 'text', 'code': 'VALIDATION_FAILED'},
                'timestamp': '2024-01-15T10:30:00Z',
                'request_id': 'req-abc123'
            }
        """
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            error=self.message,
            type=self.error_type,
            details=details if details else None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class ValidationError(APIException):
    """
    Exception for bad or missing input (HTTP 400).

    Args:
        message: Human-readable description of the validation failure
        field: Optional field name that failed validation
        value: Optional invalid value that was provided
        details: Optional additional validation context

    Examples:
        >>> error = ValidationError("Text input is required", field="text")
        >>> error = ValidationError(
        ...     "Query must be at least 2 characters long",
        ...     field="q",
        ...     value="a",
        ... )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        validation_details = details or {}
        if field:
            validation_details["field"] = field
        if value is not None:
            validation_details["value"] = str(value)
        super().__init__(
            message=message,
            details=validation_details,
            error_type="validation_error",
            error_code=ErrorCode.VALIDATION_FAILED,
            status_code=400,
        )
        self.field = field
        self.value = value


class NotFoundError(APIException):
    """
    Exception for unknown identifiers (HTTP 404).

    Examples:
        >>> error = NotFoundError("Chat", "chat-123")
        >>> print(error.message)
        Chat chat-123 not found

        >>> error = NotFoundError("Chat")
        >>> print(error.message)
        Chat not found
    """

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if identifier:
            message = f"{resource} {identifier} not found"
        else:
            message = f"{resource} not found"
        notfound_details = {
            **(details or {}),
            "resource": resource,
            "identifier": identifier,
        }
        super().__init__(
            message=message,
            details=notfound_details,
            error_type="not_found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
        )
        self.resource = resource
        self.identifier = identifier


class AuthError(APIException):
    """
    Exception for authentication errors (HTTP 401).

    Raised when a session token cannot be verified. The access gate treats
    it as "no token" rather than surfacing it.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.AUTH_FAILED,
        status_code: int = 401,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="auth_error",
            error_code=code,
            status_code=status_code,
        )


class UpstreamError(APIException):
    """
    Exception for database or model-provider failures (HTTP 500).

    The caller only ever sees the generic message; ``detail`` is kept for
    server-side logging.

    Examples:
        >>> error = UpstreamError(
        ...     "Failed to query chats",
        ...     code=ErrorCode.DATABASE_ERROR,
        ... )
        >>> error.to_error_response().error
        'Internal server error'
    """

    def __init__(
        self,
        detail: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.UPSTREAM_ERROR,
        status_code: int = 500,
    ):
        super().__init__(
            message=GENERIC_ERROR_MESSAGE,
            details=details,
            error_type="upstream_error",
            error_code=code,
            status_code=status_code,
        )
        self.detail = detail


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    1. APIException: Uses the built-in to_error_response() method
    2. HTTPException: Extracts detail information and normalizes format
    3. Generic Exception: Creates a masked internal error response

    Note:
        Generic exceptions never expose their message. The original exception
        type is kept in the details for debugging.
    """
    if isinstance(exc, APIException):
        return exc.to_error_response()
    elif isinstance(exc, HTTPException):
        detail = (
            exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
        )
        return ErrorResponse(
            error=detail.get("message", "HTTP error"),
            type="http_error",
            details=detail,
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=str(uuid.uuid4()),
        )
    else:
        return ErrorResponse(
            error=GENERIC_ERROR_MESSAGE,
            type="internal_error",
            details={"error_type": type(exc).__name__},
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=str(uuid.uuid4()),
        )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers for a FastAPI application.

    1. APIException: Returns the exception's status code and error body
    2. RequestValidationError: Malformed query/body parameters become 400s
    3. HTTPException: Converts FastAPI HTTP exceptions to the standard format
    4. Generic Exception: Returns a masked 500 and logs the traceback

    Call once during application initialization, right after creating the app.
    """
    from fastapi import Request
    from fastapi.responses import JSONResponse

    @app.exception_handler(APIException)
    async def api_exception_handler(
        request: Request, exc: APIException
    ) -> JSONResponse:
        error_response = exc.to_error_response()
        log_http_error(
            exc.error_type,
            getattr(exc, "detail", exc.message),
            exc.status_code,
            request_id=exc.request_id,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code, content=error_response.model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        error = ValidationError(
            first.get("msg", "Invalid request"),
            field=field,
            details={"errors": len(errors)},
        )
        log_http_error(
            error.error_type, error.message, 400, request_id=error.request_id
        )
        return JSONResponse(
            status_code=400, content=error.to_error_response().model_dump()
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        error_response = exception_to_response(exc)
        return JSONResponse(
            status_code=exc.status_code, content=error_response.model_dump()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}",
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        error_response = exception_to_response(exc)
        return JSONResponse(status_code=500, content=error_response.model_dump())
