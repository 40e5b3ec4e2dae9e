"""Test module for the shared error envelope."""
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.core.error_handlers import register_exception_handlers
from app.core.exceptions import (
    PushGatewayError,
    ResourceNotFoundException,
    TargetResolutionException,
    raise_not_found,
)


def _app(environment="test"):
    app = FastAPI()
    app.state.environment = environment
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise_not_found("Notification", 7)

    @app.get("/unresolved")
    async def unresolved():
        raise TargetResolutionException("Class not found", details={"class_id": 3})

    @app.get("/gateway")
    async def gateway():
        raise PushGatewayError("Push gateway responded with 503", status_code=503)

    @app.get("/db")
    async def db():
        raise OperationalError("SELECT 1", {}, Exception("gone"))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return app


def test_app_exception_envelope():
    """Test case for domain errors."""
    client = TestClient(_app())
    response = client.get("/missing")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"] == {
        "code": "not_found",
        "message": "Notification not found",
        "details": {"id": 7},
    }
    assert body["path"] == "/missing"
    assert "timestamp" in body


def test_target_resolution_and_gateway_errors():
    """Test case for notification-specific errors."""
    client = TestClient(_app())
    unresolved = client.get("/unresolved").json()
    assert unresolved["error"]["code"] == "notification_targets_unresolved"
    assert unresolved["error"]["details"] == {"class_id": 3}

    gateway = client.get("/gateway")
    assert gateway.status_code == 502
    assert gateway.json()["error"]["details"] == {"service": "push_gateway"}


def test_database_error_is_hidden():
    """Test case for SQLAlchemy errors."""
    client = TestClient(_app(), raise_server_exceptions=False)
    response = client.get("/db")
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "database_error"
    assert "gone" not in response.text


def test_unexpected_error_detail_depends_on_environment():
    """Test case for verbose errors outside production."""
    verbose = TestClient(_app("test"), raise_server_exceptions=False).get("/boom").json()
    assert verbose["error"]["message"] == "kaboom"
    assert verbose["error"]["details"]["error_type"] == "RuntimeError"

    quiet = TestClient(_app("production"), raise_server_exceptions=False).get("/boom").json()
    assert quiet["error"]["message"] != "kaboom"
    assert quiet["error"]["details"] == {}


def test_not_found_exception_without_identifier():
    """Test case for a resource error with no id."""
    exc = ResourceNotFoundException("Class")
    assert exc.details == {}
    assert exc.detail["message"] == "Class not found"
