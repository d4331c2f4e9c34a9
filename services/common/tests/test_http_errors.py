"""
Unit tests for HTTP error handling.

Covers the error body shape, masking of upstream and unhandled failures,
and conversion of request validation errors to 400 responses.
"""

from fastapi import FastAPI, HTTPException, Query
from fastapi.testclient import TestClient

from services.common.http_errors import (
    GENERIC_ERROR_MESSAGE,
    AuthError,
    ErrorCode,
    NotFoundError,
    UpstreamError,
    ValidationError,
    exception_to_response,
    register_exception_handlers,
)


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/validation")
    async def validation():
        raise ValidationError("Query must be at least 2 characters long", field="q")

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Chat", "chat-123")

    @app.get("/upstream")
    async def upstream():
        raise UpstreamError(
            "connection to db.internal:5432 refused", code=ErrorCode.DATABASE_ERROR
        )

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    @app.get("/http")
    async def http():
        raise HTTPException(status_code=409, detail="Conflict happened")

    @app.get("/typed")
    async def typed(limit: int = Query(ge=1)):
        return {"limit": limit}

    return app


class TestExceptionModels:
    def test_validation_error_details(self):
        error = ValidationError("Text input is required", field="text")
        body = error.to_error_response()
        assert body.error == "Text input is required"
        assert body.type == "validation_error"
        assert body.details == {"field": "text", "code": "VALIDATION_FAILED"}

    def test_not_found_message(self):
        error = NotFoundError("Chat", "chat-123")
        assert error.message == "Chat chat-123 not found"
        assert error.status_code == 404
        assert NotFoundError("Chat").message == "Chat not found"

    def test_upstream_error_masks_detail(self):
        error = UpstreamError("password authentication failed")
        assert error.to_error_response().error == GENERIC_ERROR_MESSAGE
        assert error.detail == "password authentication failed"
        assert "password" not in error.to_error_response().model_dump_json()

    def test_auth_error(self):
        error = AuthError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)
        assert error.status_code == 401
        assert error.to_error_response().details == {"code": "TOKEN_EXPIRED"}

    def test_generic_exception_is_masked(self):
        response = exception_to_response(ValueError("secret internals"))
        assert response.error == GENERIC_ERROR_MESSAGE
        assert response.details == {"error_type": "ValueError"}


class TestRegisteredHandlers:
    def setup_method(self):
        self.client = TestClient(build_app(), raise_server_exceptions=False)

    def test_validation_error(self):
        response = self.client.get("/validation")
        assert response.status_code == 400
        assert response.json()["error"] == "Query must be at least 2 characters long"

    def test_not_found(self):
        response = self.client.get("/missing")
        assert response.status_code == 404
        assert response.json()["type"] == "not_found"

    def test_upstream_error(self):
        response = self.client.get("/upstream")
        assert response.status_code == 500
        assert response.json()["error"] == GENERIC_ERROR_MESSAGE
        assert "db.internal" not in response.text

    def test_unhandled_exception(self):
        response = self.client.get("/boom")
        assert response.status_code == 500
        assert response.json()["error"] == GENERIC_ERROR_MESSAGE
        assert "secret internals" not in response.text

    def test_http_exception(self):
        response = self.client.get("/http")
        assert response.status_code == 409
        assert response.json()["error"] == "Conflict happened"

    def test_request_validation_becomes_400(self):
        response = self.client.get("/typed", params={"limit": 0})
        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "validation_error"
        assert body["details"]["field"] == "limit"
