"""Fixtures for API tests: a lifespan-free app over in-memory adapters."""

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from aurora.adapters.audit import InMemoryAuditSink
from aurora.adapters.auth.memory import InMemoryAuthRepository
from aurora.adapters.cache import NullRevocationCache
from aurora.core.auth.jwt import JwtConfig
from aurora.entrypoints.api.deps import Services, build_services
from aurora.entrypoints.api.errors import register_exception_handlers
from aurora.entrypoints.api.routes import api_router

PASSWORD = "correct-horse-battery"  # pragma: allowlist secret


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def services(
    repo: InMemoryAuthRepository, jwt_config: JwtConfig, audit_sink: InMemoryAuditSink
) -> Services:
    """Wired services over in-memory storage."""
    return build_services(repo, NullRevocationCache(), jwt_config, audit_sink)


@pytest.fixture
def app(services: Services) -> FastAPI:
    """Create test app with the API routes."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    app.state.services = services
    return app


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Create test client with a running event loop portal."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Register an account over HTTP and return the token response."""

    def _register(email: str = "user@example.com", password: str = PASSWORD) -> dict[str, Any]:
        response = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "name": "Test User"},
        )
        assert response.status_code == 201, response.text
        data: dict[str, Any] = response.json()
        return data

    return _register


@pytest.fixture
def flush_audit(client: TestClient, services: Services) -> Callable[[], None]:
    """Wait for background audit writes to land."""

    def _flush() -> None:
        client.portal.call(services.audit.drain)

    return _flush
