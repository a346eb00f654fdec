"""Tests for the auth service: registration, login and refresh rotation."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from aurora.adapters.auth.memory import InMemoryAuthRepository
from aurora.core.auth.jwt import TokenIssuer
from aurora.core.auth.service import AuthService
from aurora.core.auth.tokens import hash_token
from aurora.core.auth.types import DeviceInfo, Session, TokenPair, User
from aurora.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

PASSWORD = "correct-horse-battery"  # pragma: allowlist secret
LONG_PASSWORD = "p" * 80


class InterleavingRepository(InMemoryAuthRepository):
    """Suspends after every session read so concurrent refreshes overlap."""

    def __init__(self) -> None:
        super().__init__()
        self.rotation_attempts = 0

    async def get_live_session(self, user_id: UUID, token_id: str) -> Session | None:
        session = await super().get_live_session(user_id, token_id)
        await asyncio.sleep(0)
        return session

    async def rotate_session(
        self,
        session_id: UUID,
        expected_hash: str,
        new_token_id: str,
        new_hash: str,
        expires_at: datetime,
    ) -> Session | None:
        self.rotation_attempts += 1
        return await super().rotate_session(
            session_id, expected_hash, new_token_id, new_hash, expires_at
        )


class TestRegister:
    """Test account registration."""

    @pytest.mark.asyncio
    async def test_register_returns_tokens_and_session(
        self, auth_service: AuthService, repo: InMemoryAuthRepository, cache: AsyncMock
    ) -> None:
        """Registration should store the user, a hashed refresh token and mark it valid."""
        result = await auth_service.register(
            "New@Example.com",
            PASSWORD,
            name="New",
            device=DeviceInfo(user_agent="pytest", ip_address="10.0.0.1"),
        )

        assert result.user.email == "new@example.com"
        assert result.tokens.token_type == "bearer"
        session = repo.sessions[result.session_id]
        assert session.refresh_token_hash == hash_token(result.tokens.refresh_token)
        assert session.user_agent == "pytest"
        cache.mark_valid.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, auth_service: AuthService) -> None:
        """Email uniqueness is case-insensitive."""
        await auth_service.register("dup@example.com", PASSWORD)
        with pytest.raises(ConflictError, match="Email already registered"):
            await auth_service.register("DUP@example.com", PASSWORD)

    @pytest.mark.asyncio
    async def test_register_short_password(self, auth_service: AuthService) -> None:
        with pytest.raises(ValidationError):
            await auth_service.register("short@example.com", "1234")

    @pytest.mark.asyncio
    async def test_register_overlong_password(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        """bcrypt cannot hash it, so it is refused before anything is stored."""
        with pytest.raises(ValidationError, match="at most 72 bytes"):
            await auth_service.register("long@example.com", LONG_PASSWORD)
        assert repo.users == {}


class TestLogin:
    """Test email/password login."""

    @pytest.mark.asyncio
    async def test_login_success_updates_last_login(
        self, auth_service: AuthService, make_user: Callable[..., Awaitable[User]]
    ) -> None:
        user = await make_user("login@example.com", PASSWORD)
        assert user.last_login_at is None

        result = await auth_service.login("LOGIN@example.com", PASSWORD)

        assert result.user.id == user.id
        assert result.user.last_login_at is not None

    @pytest.mark.asyncio
    async def test_failures_are_indistinguishable(
        self,
        auth_service: AuthService,
        repo: InMemoryAuthRepository,
        make_user: Callable[..., Awaitable[User]],
    ) -> None:
        """Unknown email, wrong password and inactive account share one message."""
        user = await make_user("inactive@example.com", PASSWORD)
        await make_user("active@example.com", PASSWORD)
        await repo.update_user(user.id, is_active=False)

        messages = []
        for email, password in (
            ("nobody@example.com", PASSWORD),
            ("active@example.com", "wrong-password"),
            ("inactive@example.com", PASSWORD),
        ):
            with pytest.raises(AuthenticationError) as exc_info:
                await auth_service.login(email, password)
            messages.append(exc_info.value.message)

        assert set(messages) == {"Invalid email or password"}

    @pytest.mark.asyncio
    async def test_overlong_password_fails_like_any_other(
        self, auth_service: AuthService, make_user: Callable[..., Awaitable[User]]
    ) -> None:
        """Known and unknown emails reject an overlong password identically."""
        await make_user("known@example.com", PASSWORD)

        messages = []
        for email in ("known@example.com", "unknown@example.com"):
            with pytest.raises(AuthenticationError) as exc_info:
                await auth_service.login(email, LONG_PASSWORD)
            messages.append(exc_info.value.message)

        assert messages == ["Invalid email or password"] * 2

    @pytest.mark.asyncio
    async def test_deleted_user_cannot_login(
        self,
        auth_service: AuthService,
        repo: InMemoryAuthRepository,
        make_user: Callable[..., Awaitable[User]],
    ) -> None:
        user = await make_user("gone@example.com", PASSWORD)
        await repo.soft_delete_user(user.id)

        with pytest.raises(AuthenticationError):
            await auth_service.login("gone@example.com", PASSWORD)


class TestAuthenticate:
    """Test access token resolution."""

    @pytest.mark.asyncio
    async def test_valid_token(self, auth_service: AuthService) -> None:
        result = await auth_service.register("me@example.com", PASSWORD)
        user = await auth_service.authenticate(result.tokens.access_token)
        assert user.id == result.user.id

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        """A still-valid token stops working once the account is deactivated."""
        result = await auth_service.register("me@example.com", PASSWORD)
        await repo.update_user(result.user.id, is_active=False)

        with pytest.raises(AuthenticationError, match="Invalid or expired token"):
            await auth_service.authenticate(result.tokens.access_token)

    @pytest.mark.asyncio
    async def test_refresh_token_rejected_as_access(self, auth_service: AuthService) -> None:
        result = await auth_service.register("me@example.com", PASSWORD)
        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(result.tokens.refresh_token)


class TestRefreshRotation:
    """Test single-use refresh token rotation."""

    @pytest.mark.asyncio
    async def test_rotation_then_replay(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        """R0 rotates to R1; replaying R0 fails as revoked; R1 still rotates."""
        r0 = (await auth_service.register("rot@example.com", PASSWORD)).tokens.refresh_token

        pair1 = await auth_service.refresh(r0)
        assert pair1.refresh_token != r0

        with pytest.raises(AuthenticationError, match="Refresh token has been revoked"):
            await auth_service.refresh(r0)

        pair2 = await auth_service.refresh(pair1.refresh_token)
        assert pair2.refresh_token != pair1.refresh_token

        # Rotation updates the one session in place
        assert len(repo.sessions) == 1
        session = next(iter(repo.sessions.values()))
        assert session.refresh_token_hash == hash_token(pair2.refresh_token)

    @pytest.mark.asyncio
    async def test_concurrent_refresh_exactly_one_wins(
        self, issuer: TokenIssuer, cache: AsyncMock
    ) -> None:
        """Both refreshes pass the hash check; the conditional swap picks one winner."""
        repo = InterleavingRepository()
        service = AuthService(repo, issuer, cache)
        r0 = (await service.register("race@example.com", PASSWORD)).tokens.refresh_token

        results = await asyncio.gather(
            service.refresh(r0),
            service.refresh(r0),
            return_exceptions=True,
        )

        assert repo.rotation_attempts == 2
        successes = [r for r in results if isinstance(r, TokenPair)]
        failures = [r for r in results if isinstance(r, AuthenticationError)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].message == "Refresh token has been revoked"
        session = next(iter(repo.sessions.values()))
        assert session.refresh_token_hash == hash_token(successes[0].refresh_token)

    @pytest.mark.asyncio
    async def test_missing_token(self, auth_service: AuthService) -> None:
        with pytest.raises(AuthenticationError, match="Refresh token is required"):
            await auth_service.refresh(None)

    @pytest.mark.asyncio
    async def test_garbage_token(self, auth_service: AuthService) -> None:
        with pytest.raises(AuthenticationError):
            await auth_service.refresh("not-a-jwt")

    @pytest.mark.asyncio
    async def test_cache_does_not_override_store(
        self, auth_service: AuthService, cache: AsyncMock
    ) -> None:
        """A cache that says "not valid" is advisory; the store decides."""
        r0 = (await auth_service.register("cache@example.com", PASSWORD)).tokens.refresh_token
        cache.is_valid.return_value = False

        pair = await auth_service.refresh(r0)

        assert pair.access_token
        cache.revoke.assert_awaited()

    @pytest.mark.asyncio
    async def test_cache_saying_valid_does_not_resurrect_revoked(
        self, auth_service: AuthService, cache: AsyncMock
    ) -> None:
        """A stale cache entry cannot revive a logged-out session."""
        result = await auth_service.register("stale@example.com", PASSWORD)
        await auth_service.logout_all(result.user.id)
        cache.is_valid.return_value = True

        with pytest.raises(AuthenticationError, match="revoked"):
            await auth_service.refresh(result.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_expired_session_revoked(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        result = await auth_service.register("exp@example.com", PASSWORD)
        session = repo.sessions[result.session_id]
        repo.sessions[session.id] = session.model_copy(
            update={"expires_at": datetime.now(UTC) - timedelta(seconds=1)}
        )

        with pytest.raises(AuthenticationError, match="revoked"):
            await auth_service.refresh(result.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_hash_mismatch_is_revoked(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        """A token whose lineage exists but whose hash differs is treated as reuse."""
        result = await auth_service.register("reuse@example.com", PASSWORD)
        session = repo.sessions[result.session_id]
        repo.sessions[session.id] = session.model_copy(
            update={"refresh_token_hash": hash_token("something-else")}
        )

        with pytest.raises(AuthenticationError, match="revoked"):
            await auth_service.refresh(result.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_refresh(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        result = await auth_service.register("off@example.com", PASSWORD)
        await repo.update_user(result.user.id, is_active=False)

        with pytest.raises(AuthenticationError):
            await auth_service.refresh(result.tokens.refresh_token)


class TestLogout:
    """Test session termination."""

    @pytest.mark.asyncio
    async def test_logout_revokes_presented_session(self, auth_service: AuthService) -> None:
        result = await auth_service.register("out@example.com", PASSWORD)

        assert await auth_service.logout(result.user.id, result.tokens.refresh_token) is True
        with pytest.raises(AuthenticationError, match="revoked"):
            await auth_service.refresh(result.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_logout_ignores_foreign_token(self, auth_service: AuthService) -> None:
        """A user cannot log out someone else's session."""
        mine = await auth_service.register("a@example.com", PASSWORD)
        theirs = await auth_service.register("b@example.com", PASSWORD)

        assert await auth_service.logout(mine.user.id, theirs.tokens.refresh_token) is False
        assert await auth_service.refresh(theirs.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_logout_without_token(self, auth_service: AuthService) -> None:
        assert await auth_service.logout(uuid4(), None) is False

    @pytest.mark.asyncio
    async def test_logout_all(self, auth_service: AuthService, cache: AsyncMock) -> None:
        first = await auth_service.register("all@example.com", PASSWORD)
        second = await auth_service.login("all@example.com", PASSWORD)

        assert await auth_service.logout_all(first.user.id) == 2
        cache.revoke_all.assert_awaited_once_with(first.user.id)
        for tokens in (first.tokens, second.tokens):
            with pytest.raises(AuthenticationError):
                await auth_service.refresh(tokens.refresh_token)


class TestSessions:
    """Test session listing and revocation."""

    @pytest.mark.asyncio
    async def test_list_and_revoke(self, auth_service: AuthService) -> None:
        first = await auth_service.register("s@example.com", PASSWORD)
        await auth_service.login("s@example.com", PASSWORD)

        sessions = await auth_service.list_sessions(first.user.id)
        assert len(sessions) == 2

        await auth_service.revoke_session(first.user.id, first.session_id)

        remaining = await auth_service.list_sessions(first.user.id)
        assert [s.id for s in remaining] != [first.session_id]
        assert len(remaining) == 1

    @pytest.mark.asyncio
    async def test_revoke_unknown_session(self, auth_service: AuthService) -> None:
        result = await auth_service.register("s@example.com", PASSWORD)
        with pytest.raises(NotFoundError):
            await auth_service.revoke_session(result.user.id, uuid4())


class TestAccountManagement:
    """Test password change, deactivation and deletion."""

    @pytest.mark.asyncio
    async def test_change_password(self, auth_service: AuthService) -> None:
        result = await auth_service.register("pw@example.com", PASSWORD)

        await auth_service.change_password(result.user.id, PASSWORD, "new-password-123")

        with pytest.raises(AuthenticationError):
            await auth_service.login("pw@example.com", PASSWORD)
        assert await auth_service.login("pw@example.com", "new-password-123")

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, auth_service: AuthService) -> None:
        result = await auth_service.register("pw@example.com", PASSWORD)
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            await auth_service.change_password(result.user.id, "nope-nope", "new-password-123")

    @pytest.mark.asyncio
    async def test_change_password_too_short(self, auth_service: AuthService) -> None:
        result = await auth_service.register("pw@example.com", PASSWORD)
        with pytest.raises(ValidationError):
            await auth_service.change_password(result.user.id, PASSWORD, "short")

    @pytest.mark.asyncio
    async def test_deactivate_revokes_everything(
        self, auth_service: AuthService, cache: AsyncMock
    ) -> None:
        result = await auth_service.register("bye@example.com", PASSWORD)

        await auth_service.deactivate_account(result.user.id, PASSWORD)

        cache.revoke_all.assert_awaited_once_with(result.user.id)
        with pytest.raises(AuthenticationError):
            await auth_service.refresh(result.tokens.refresh_token)
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await auth_service.login("bye@example.com", PASSWORD)

    @pytest.mark.asyncio
    async def test_deactivate_requires_password(self, auth_service: AuthService) -> None:
        result = await auth_service.register("bye@example.com", PASSWORD)
        with pytest.raises(AuthenticationError):
            await auth_service.deactivate_account(result.user.id, "wrong-password")

    @pytest.mark.asyncio
    async def test_delete_account_frees_email(self, auth_service: AuthService) -> None:
        """A soft-deleted account no longer blocks its email address."""
        result = await auth_service.register("del@example.com", PASSWORD)

        await auth_service.delete_account(result.user.id, PASSWORD)

        again = await auth_service.register("del@example.com", PASSWORD)
        assert again.user.id != result.user.id


class TestRevocationCacheFailures:
    """A misbehaving cache never fails an auth flow."""

    @pytest.mark.asyncio
    async def test_refresh_survives_cache_errors(
        self, auth_service: AuthService, cache: AsyncMock
    ) -> None:
        r0 = (await auth_service.register("flaky@example.com", PASSWORD)).tokens.refresh_token
        cache.is_valid.side_effect = RuntimeError("cache down")
        cache.revoke.side_effect = RuntimeError("cache down")
        cache.mark_valid.side_effect = RuntimeError("cache down")

        with patch("aurora.core.detached.logger") as mock_logger:
            pair = await auth_service.refresh(r0)

        assert pair.refresh_token != r0
        events = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert events == ["revocation_cache_call_failed"] * 3
        ops = [c.kwargs["op"] for c in mock_logger.warning.call_args_list]
        assert ops == ["is_valid", "revoke", "mark_valid"]

    @pytest.mark.asyncio
    async def test_logout_all_survives_cache_errors(
        self, auth_service: AuthService, cache: AsyncMock
    ) -> None:
        result = await auth_service.register("flaky@example.com", PASSWORD)
        cache.revoke_all.side_effect = ConnectionError("cache down")

        assert await auth_service.logout_all(result.user.id) == 1

        with pytest.raises(AuthenticationError, match="revoked"):
            await auth_service.refresh(result.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_register_survives_cache_errors(
        self, auth_service: AuthService, cache: AsyncMock
    ) -> None:
        cache.mark_valid.side_effect = RuntimeError("cache down")

        result = await auth_service.register("flaky@example.com", PASSWORD)

        assert await auth_service.refresh(result.tokens.refresh_token)


class TestPasswordReset:
    """Test issuing and consuming password reset tokens."""

    @pytest.mark.asyncio
    async def test_reset_flow(
        self, auth_service: AuthService, repo: InMemoryAuthRepository
    ) -> None:
        """A reset sets the password, signs out everywhere and spends the token."""
        result = await auth_service.register("reset@example.com", PASSWORD)

        token = await auth_service.request_password_reset("Reset@Example.com")
        assert token is not None
        stored = await repo.get_reset_token(hash_token(token))
        assert stored is not None
        assert stored.user_id == result.user.id
        # Only the hash is kept
        assert all(t.token_hash != token for t in repo.reset_tokens.values())

        user = await auth_service.reset_password(token, "brand-new-password")

        assert user.id == result.user.id
        await auth_service.login("reset@example.com", "brand-new-password")
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await auth_service.login("reset@example.com", PASSWORD)
        with pytest.raises(AuthenticationError, match="revoked"):
            await auth_service.refresh(result.tokens.refresh_token)
        with pytest.raises(ValidationError, match="Invalid or expired reset link"):
            await auth_service.reset_password(token, "another-password")

    @pytest.mark.asyncio
    async def test_unknown_and_inactive_get_no_token(
        self,
        auth_service: AuthService,
        repo: InMemoryAuthRepository,
        make_user: Callable[..., Awaitable[User]],
    ) -> None:
        user = await make_user("inactive@example.com", PASSWORD)
        await repo.update_user(user.id, is_active=False)

        assert await auth_service.request_password_reset("nobody@example.com") is None
        assert await auth_service.request_password_reset("inactive@example.com") is None
        assert repo.reset_tokens == {}

    @pytest.mark.asyncio
    async def test_new_request_replaces_old_token(
        self, auth_service: AuthService, make_user: Callable[..., Awaitable[User]]
    ) -> None:
        await make_user("twice@example.com", PASSWORD)
        first = await auth_service.request_password_reset("twice@example.com")
        second = await auth_service.request_password_reset("twice@example.com")
        assert first is not None
        assert second is not None

        with pytest.raises(ValidationError, match="Invalid or expired reset link"):
            await auth_service.reset_password(first, "brand-new-password")
        await auth_service.reset_password(second, "brand-new-password")

    @pytest.mark.asyncio
    async def test_expired_token(
        self,
        auth_service: AuthService,
        repo: InMemoryAuthRepository,
        make_user: Callable[..., Awaitable[User]],
    ) -> None:
        user = await make_user("late@example.com", PASSWORD)
        await repo.create_reset_token(
            user.id, hash_token("stale-token"), datetime.now(UTC) - timedelta(minutes=1)
        )

        with pytest.raises(ValidationError, match="has expired"):
            await auth_service.reset_password("stale-token", "brand-new-password")

    @pytest.mark.asyncio
    async def test_used_token(
        self,
        auth_service: AuthService,
        repo: InMemoryAuthRepository,
        make_user: Callable[..., Awaitable[User]],
    ) -> None:
        user = await make_user("used@example.com", PASSWORD)
        record = await repo.create_reset_token(
            user.id, hash_token("used-token"), datetime.now(UTC) + timedelta(hours=1)
        )
        await repo.consume_reset_token(record.id)

        with pytest.raises(ValidationError, match="already been used"):
            await auth_service.reset_password("used-token", "brand-new-password")

    @pytest.mark.asyncio
    async def test_weak_new_password(
        self, auth_service: AuthService, make_user: Callable[..., Awaitable[User]]
    ) -> None:
        await make_user("weak@example.com", PASSWORD)
        token = await auth_service.request_password_reset("weak@example.com")
        assert token is not None

        with pytest.raises(ValidationError, match="at least 8"):
            await auth_service.reset_password(token, "short")
        with pytest.raises(ValidationError, match="at most 72 bytes"):
            await auth_service.reset_password(token, LONG_PASSWORD)
        # Rejected attempts do not spend the token
        await auth_service.reset_password(token, "brand-new-password")
