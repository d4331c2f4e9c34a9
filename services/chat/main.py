from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from services.chat.api import router
from services.chat.database import Database
from services.chat.middleware.access_gate import AccessGateMiddleware
from services.chat.settings import get_settings
from services.common.http_errors import register_exception_handlers
from services.common.logging_config import (
    create_request_logging_middleware,
    get_logger,
    log_service_shutdown,
    log_service_startup,
    setup_service_logging,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Set up centralized logging
    settings = get_settings()
    setup_service_logging(
        service_name="chat-service",
        log_level=settings.log_level,
        log_format=settings.log_format,
    )
    log_service_startup(
        "chat-service",
        environment=settings.environment,
        autosuggest_source=settings.autosuggest_source,
        starter_suggestion_source=settings.starter_suggestion_source,
        auth_secret="configured" if settings.auth_secret else "missing",
        public_chat_read_access=settings.public_chat_read_access,
    )

    if not settings.auth_secret:
        logger.warning("AUTH_SECRET not configured - every caller is unauthenticated")

    database = Database.from_settings(settings)
    if settings.auto_create_tables:
        await database.create_all()
    app.state.database = database

    yield  # The application runs here

    # Shutdown: Clean up connections
    log_service_shutdown("chat-service")
    await database.dispose()


app = FastAPI(title="Chat Service", version="0.1.0", lifespan=lifespan)

# Added first so it runs inside the request logging middleware
app.add_middleware(AccessGateMiddleware)

# Add centralized request logging middleware
app.middleware("http")(create_request_logging_middleware())

register_exception_handlers(app)


@app.get("/ready")
async def ready_check() -> JSONResponse:
    return JSONResponse(
        content={
            "status": "ok",
            "service": "chat-service",
        }
    )


app.include_router(router, prefix="/api")


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    try:
        # Simple query to verify database connection
        async with request.app.state.database.session() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(
            "Health check failed with exception",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "service": "chat-service",
                "database": "unavailable",
            },
        )

    return JSONResponse(
        content={
            "status": "ok",
            "service": "chat-service",
            "database": "connected",
        }
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "services.chat.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
        access_log=False,  # Request logging is handled by the middleware
    )
