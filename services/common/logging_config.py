"""
Logging setup shared by the chat service and its migration runner.

Log lines are produced by structlog and written through the stdlib root
logger, so third-party libraries end up in the same stream. Every line
carries the request ID of the HTTP request being served, and the caller's
user ID when the request names one.

Usage:
    from services.common.logging_config import setup_service_logging

    setup_service_logging(
        service_name="chat-service",
        log_level="INFO",
        log_format="json"
    )
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

import structlog
from fastapi import Request, Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="uninitialized")
user_id_var: ContextVar[str] = ContextVar("user_id", default="anonymous")

# Health checks hit these constantly; they are logged at debug level only
QUIET_PATHS = ("/health", "/ready", "/ping")

_RENDERED_KEYS = ("timestamp", "level", "logger", "event", "service", "request_id")


def add_request_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Add request and user ID to all log entries."""
    request_id = request_id_var.get()
    user_id = user_id_var.get()
    if request_id and request_id != "uninitialized":
        event_dict["request_id"] = request_id
    if user_id and user_id != "anonymous":
        event_dict["user_id"] = user_id
    return event_dict


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    # "services.chat.chat_queries" -> "chat"
    logger_name = event_dict.get("logger", "")
    if logger_name.startswith("services."):
        event_dict["service"] = logger_name.split(".")[1]
    return event_dict


class EnhancedTextRenderer:
    """
    One-line text rendering for local development.

    ``2024-01-01T00:00:00Z [chat-service] [INFO] [3456] chat.api - Search completed | matched=2``
    """

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> str:
        logger_name = event_dict.get("logger", "")
        if logger_name.startswith("services."):
            logger_name = logger_name[len("services.") :]

        # The last 4 characters are enough to correlate lines of one request
        request_id = event_dict.get("request_id", "")
        parts = [
            event_dict.get("timestamp", ""),
            f"[{event_dict.get('service', self.service_name)}]",
            f"[{event_dict.get('level', 'info').upper()}]",
            f"[{request_id[-4:]}]" if request_id else "",
            logger_name,
            f"- {event_dict.get('event', '')}",
        ]

        extra = []
        for key, value in event_dict.items():
            if key in _RENDERED_KEYS:
                continue
            if not isinstance(value, (str, int, float, bool)):
                value = str(value)[:150]
            extra.append(f"{key}={value}")
        if extra:
            parts.append(f"| {', '.join(extra)}")

        return " ".join(filter(None, parts))


def setup_service_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Name shown on text-format lines (e.g. "chat-service")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" or "text"
    """
    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(EnhancedTextRenderer(service_name))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog renders the final line; the stdlib formatter passes it through
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[handler],
        force=True,
    )

    # SQL echo and provider chatter stay out of the service log
    for noisy in ("httpx", "httpcore", "LiteLLM", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    get_logger(__name__).info(
        f"Logging configured for {service_name}",
        log_level=log_level,
        log_format=log_format,
    )


def create_request_logging_middleware() -> Callable:
    """
    HTTP middleware that binds the request ID and logs each response.

    The ``X-Request-Id`` header is reused when the caller sends one and is
    echoed back on the response. The ``userId`` query parameter of the chat
    listing routes becomes the user context.
    """

    async def log_requests(request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request_id_var.set(request_id)
        user_id_var.set(request.query_params.get("userId") or "anonymous")

        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code >= 500:
            level = logging.ERROR
        elif request.url.path.startswith(QUIET_PATHS):
            level = logging.DEBUG
        else:
            level = logging.INFO
        get_logger("http.requests").log(
            level,
            f"{request.method} {request.url.path} → {response.status_code}",
            status_code=response.status_code,
            elapsed_ms=round(elapsed_ms, 1),
        )

        response.headers["X-Request-Id"] = request_id
        return response

    return log_requests


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_service_startup(service_name: str, **kwargs: Any) -> None:
    """Log service startup with configuration details."""
    get_logger("startup").info(f"Starting {service_name}", **kwargs)


def log_service_shutdown(service_name: str) -> None:
    get_logger(__name__).info(f"Service {service_name} shutting down")


def log_http_error(
    error_type: str,
    message: str,
    status_code: int,
    request_id: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log an error response: 5xx as errors, 4xx as warnings.

    ``message`` may hold server-side detail that the response body masks.
    """
    log_context: Dict[str, Any] = {
        "error_type": error_type,
        "status_code": status_code,
        **kwargs,
    }
    if request_id:
        log_context["request_id"] = request_id

    logger = get_logger(__name__)
    event = f"HTTP {status_code} {error_type}: {message}"
    if status_code >= 500:
        logger.error(event, **log_context)
    else:
        logger.warning(event, **log_context)
