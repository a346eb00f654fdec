"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock

import pytest

from aurora.adapters.auth.memory import InMemoryAuthRepository
from aurora.core.auth.jwt import JwtConfig, TokenIssuer
from aurora.core.auth.password import hash_password
from aurora.core.auth.service import AuthService
from aurora.core.auth.types import AuthContext, User

DEFAULT_PASSWORD = "correct-horse-battery"  # pragma: allowlist secret

UserFactory = Callable[..., Awaitable[User]]


@pytest.fixture
def anyio_backend() -> str:
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def jwt_config() -> JwtConfig:
    """Signing configuration with distinct test secrets."""
    return JwtConfig(
        access_secret="test-access-secret",  # pragma: allowlist secret
        refresh_secret="test-refresh-secret",  # pragma: allowlist secret
    )


@pytest.fixture
def issuer(jwt_config: JwtConfig) -> TokenIssuer:
    """Token issuer using the test configuration."""
    return TokenIssuer(jwt_config)


@pytest.fixture
def repo() -> InMemoryAuthRepository:
    """Empty in-memory auth repository."""
    return InMemoryAuthRepository()


@pytest.fixture
def cache() -> AsyncMock:
    """Revocation cache double that knows nothing."""
    mock = AsyncMock()
    mock.is_valid.return_value = None
    return mock


@pytest.fixture
def auth_service(
    repo: InMemoryAuthRepository, issuer: TokenIssuer, cache: AsyncMock
) -> AuthService:
    """Auth service over the in-memory repository."""
    return AuthService(repo, issuer, cache)


@pytest.fixture
def make_user(repo: InMemoryAuthRepository) -> UserFactory:
    """Factory creating users directly in the repository."""

    async def _make_user(
        email: str = "user@example.com",
        password: str = DEFAULT_PASSWORD,
        *,
        name: str | None = None,
        is_super_admin: bool = False,
    ) -> User:
        user = await repo.create_user(
            email=email, name=name, password_hash=hash_password(password)
        )
        if is_super_admin:
            user = user.model_copy(update={"is_super_admin": True})
            repo.users[user.id] = user
        return user

    return _make_user


def context_for(user: User) -> AuthContext:
    """Request identity for a user."""
    return AuthContext(user_id=user.id, email=user.email, is_super_admin=user.is_super_admin)


@pytest.fixture
def identity_of() -> Callable[[User], AuthContext]:
    """Build the request identity for a user."""
    return context_for
