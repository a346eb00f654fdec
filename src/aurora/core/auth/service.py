"""Auth service for registration, login, token rotation and session management."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog

from aurora.adapters.cache.base import RevocationCache
from aurora.core.auth.jwt import TokenExpiredError, TokenInvalidError, TokenIssuer
from aurora.core.auth.password import hash_password, password_problem, verify_password
from aurora.core.auth.repository import AuthRepository
from aurora.core.auth.tokens import (
    generate_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
    token_matches,
)
from aurora.core.auth.types import DeviceInfo, Session, TokenPair, User
from aurora.core.detached import best_effort
from aurora.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_TOKEN = "Invalid or expired token"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
REVOKED_REFRESH_TOKEN = "Refresh token has been revoked"
INVALID_RESET_TOKEN = "Invalid or expired reset link"
CACHE_FAILED = "revocation_cache_call_failed"

RESET_TOKEN_TTL = timedelta(hours=1)


def _check_password(password: str) -> None:
    problem = password_problem(password)
    if problem is not None:
        raise ValidationError(problem)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    user: User
    tokens: TokenPair
    session_id: UUID


class AuthService:
    """Service for authentication operations."""

    def __init__(
        self,
        repo: AuthRepository,
        issuer: TokenIssuer,
        cache: RevocationCache,
    ) -> None:
        """Initialize the service.

        Args:
            repo: Auth repository for database operations.
            issuer: Mints and verifies JWTs.
            cache: Advisory revocation cache.
        """
        self._repo = repo
        self._issuer = issuer
        self._cache = cache

    @property
    def _cache_ttl_seconds(self) -> int:
        return int(self._issuer.refresh_ttl.total_seconds())

    async def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        device: DeviceInfo | None = None,
    ) -> AuthResult:
        """Create an account and open its first session.

        Raises:
            ValidationError: If the password is too short.
            ConflictError: If the email is already registered.
        """
        email = email.strip().lower()
        _check_password(password)

        if await self._repo.get_user_by_email(email):
            raise ConflictError("Email already registered")

        # The unique index still decides a concurrent registration race
        user = await self._repo.create_user(
            email=email,
            name=name,
            password_hash=hash_password(password),
        )
        tokens, session = await self._open_session(user, device)
        logger.info("user_registered", user_id=str(user.id))
        return AuthResult(user=user, tokens=tokens, session_id=session.id)

    async def login(
        self,
        email: str,
        password: str,
        device: DeviceInfo | None = None,
    ) -> AuthResult:
        """Authenticate with email and password.

        Unknown email, wrong password and inactive account all fail with the
        same message.

        Raises:
            AuthenticationError: If authentication fails.
        """
        user = await self._repo.get_user_by_email(email.strip().lower())
        password_ok = verify_password(password, user.password_hash if user else None)
        if user is None or not password_ok or not user.is_active:
            logger.info(
                "login_failed",
                reason="unknown_user" if user is None else "bad_credentials_or_inactive",
            )
            raise AuthenticationError(INVALID_CREDENTIALS)

        updated = await self._repo.update_user(user.id, last_login_at=datetime.now(UTC))
        user = updated or user
        tokens, session = await self._open_session(user, device)
        logger.info("user_logged_in", user_id=str(user.id), session_id=str(session.id))
        return AuthResult(user=user, tokens=tokens, session_id=session.id)

    async def authenticate(self, access_token: str) -> User:
        """Resolve an access token to a live, active user.

        Raises:
            AuthenticationError: If the token or its user is not valid.
        """
        try:
            claims = self._issuer.verify_access(access_token)
        except TokenExpiredError:
            logger.debug("access_token_expired")
            raise AuthenticationError(INVALID_TOKEN) from None
        except TokenInvalidError as e:
            logger.warning("access_token_invalid", error=str(e))
            raise AuthenticationError(INVALID_TOKEN) from None

        user = await self._load_active_user(claims.sub)
        if user is None:
            logger.warning("access_token_user_unavailable", user_id=claims.sub)
            raise AuthenticationError(INVALID_TOKEN)
        return user

    async def refresh(self, refresh_token: str | None) -> TokenPair:
        """Rotate a refresh token.

        The presented token is single-use: a successful call invalidates it,
        and presenting it again fails as revoked. The new pair is returned only
        once the session row holds the new hash.

        Raises:
            AuthenticationError: If the token is missing, invalid, expired,
                revoked, or lost a concurrent rotation.
        """
        if not refresh_token:
            raise AuthenticationError("Refresh token is required")

        try:
            claims = self._issuer.verify_refresh(refresh_token)
        except TokenExpiredError:
            logger.info("refresh_token_expired")
            raise AuthenticationError(INVALID_REFRESH_TOKEN) from None
        except TokenInvalidError as e:
            logger.warning("refresh_token_invalid", error=str(e))
            raise AuthenticationError(INVALID_REFRESH_TOKEN) from None

        user = await self._load_active_user(claims.sub)
        if user is None:
            logger.warning("refresh_user_unavailable", user_id=claims.sub)
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        cached = await best_effort(
            self._cache.is_valid(user.id, claims.token_id), CACHE_FAILED, op="is_valid"
        )
        if cached is False:
            logger.info("refresh_cache_miss", user_id=str(user.id), token_id=claims.token_id)

        session = await self._repo.get_live_session(user.id, claims.token_id)
        if session is None or not session.is_active or is_token_expired(session.expires_at):
            logger.warning("refresh_session_revoked", user_id=str(user.id))
            raise AuthenticationError(REVOKED_REFRESH_TOKEN)

        if not token_matches(refresh_token, session.refresh_token_hash):
            logger.warning(
                "refresh_token_reuse_detected",
                user_id=str(user.id),
                session_id=str(session.id),
            )
            raise AuthenticationError(REVOKED_REFRESH_TOKEN)

        access_token = self._issuer.issue_access(user)
        issued = self._issuer.issue_refresh(user)
        rotated = await self._repo.rotate_session(
            session.id,
            expected_hash=session.refresh_token_hash,
            new_token_id=issued.token_id,
            new_hash=hash_token(issued.token),
            expires_at=issued.expires_at,
        )
        if rotated is None:
            logger.warning(
                "refresh_rotation_conflict",
                user_id=str(user.id),
                session_id=str(session.id),
            )
            raise AuthenticationError(REVOKED_REFRESH_TOKEN)

        await best_effort(self._cache.revoke(user.id, claims.token_id), CACHE_FAILED, op="revoke")
        await self._mark_valid(user.id, issued.token_id)

        logger.info("refresh_token_rotated", user_id=str(user.id), session_id=str(session.id))
        return TokenPair(access_token=access_token, refresh_token=issued.token)

    async def logout(self, user_id: UUID, refresh_token: str | None = None) -> bool:
        """Close the session a refresh token belongs to.

        Tokens that are invalid or belong to someone else are ignored.

        Returns:
            True if a session was closed.
        """
        if not refresh_token:
            return False
        try:
            claims = self._issuer.verify_refresh(refresh_token)
        except (TokenExpiredError, TokenInvalidError):
            return False
        if claims.sub != str(user_id):
            logger.warning("logout_token_user_mismatch", user_id=str(user_id))
            return False

        session = await self._repo.get_live_session(user_id, claims.token_id)
        if session is None or not token_matches(refresh_token, session.refresh_token_hash):
            return False

        closed = await self._repo.deactivate_session(user_id, session.id)
        await best_effort(self._cache.revoke(user_id, claims.token_id), CACHE_FAILED, op="revoke")
        logger.info("user_logged_out", user_id=str(user_id), session_id=str(session.id))
        return closed

    async def logout_all(self, user_id: UUID) -> int:
        """Close every session of a user.

        Returns:
            Number of sessions closed.
        """
        count = await self._repo.deactivate_user_sessions(user_id)
        await best_effort(self._cache.revoke_all(user_id), CACHE_FAILED, op="revoke_all")
        logger.info("user_logged_out_everywhere", user_id=str(user_id), sessions=count)
        return count

    async def list_sessions(self, user_id: UUID) -> list[Session]:
        """List a user's live sessions."""
        return await self._repo.list_user_sessions(user_id)

    async def revoke_session(self, user_id: UUID, session_id: UUID) -> None:
        """Close one of the user's own sessions.

        Raises:
            NotFoundError: If the user has no such live session.
        """
        sessions = await self._repo.list_user_sessions(user_id)
        session = next((s for s in sessions if s.id == session_id), None)
        if session is None or not await self._repo.deactivate_session(user_id, session_id):
            raise NotFoundError("Session not found")
        await best_effort(self._cache.revoke(user_id, session.token_id), CACHE_FAILED, op="revoke")
        logger.info("session_revoked", user_id=str(user_id), session_id=str(session_id))

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change a user's password after verifying the current one.

        Raises:
            AuthenticationError: If the current password is wrong.
            ValidationError: If the new password is too short.
        """
        user = await self._require_user(user_id)
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        _check_password(new_password)
        await self._repo.update_user(user_id, password_hash=hash_password(new_password))
        logger.info("password_changed", user_id=str(user_id))

    async def deactivate_account(self, user_id: UUID, password: str) -> None:
        """Deactivate an account and revoke all of its sessions.

        Raises:
            AuthenticationError: If the password is wrong.
        """
        user = await self._require_user(user_id)
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Password is incorrect")
        await self._repo.update_user(user_id, is_active=False)
        await self.logout_all(user_id)
        logger.info("account_deactivated", user_id=str(user_id))

    async def delete_account(self, user_id: UUID, password: str) -> None:
        """Soft-delete an account and revoke all of its sessions.

        Raises:
            AuthenticationError: If the password is wrong.
        """
        user = await self._require_user(user_id)
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Password is incorrect")
        await self.logout_all(user_id)
        await self._repo.soft_delete_user(user_id)
        logger.info("account_deleted", user_id=str(user_id))

    async def request_password_reset(self, email: str) -> str | None:
        """Issue a single-use reset token for an active account.

        Earlier unused tokens of the user are discarded. Unknown and inactive
        accounts get no token; callers must answer both cases identically.

        Returns:
            The plaintext token for delivery, or None if no token was issued.
        """
        user = await self._repo.get_user_by_email(email.strip().lower())
        if user is None:
            logger.info("password_reset_requested_unknown_email")
            return None
        if not user.is_active:
            logger.info("password_reset_requested_inactive_user", user_id=str(user.id))
            return None

        await self._repo.delete_user_reset_tokens(user.id)
        token = generate_token()
        await self._repo.create_reset_token(
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=get_token_expiry(RESET_TOKEN_TTL),
        )
        logger.info("password_reset_token_issued", user_id=str(user.id))
        return token

    async def reset_password(self, token: str, new_password: str) -> User:
        """Set a new password using a reset token, then sign out everywhere.

        The token is consumed before the password changes, so of two concurrent
        requests with the same token only one succeeds.

        Returns:
            The user whose password was reset.

        Raises:
            ValidationError: Unknown, used or expired token, or a weak password.
        """
        _check_password(new_password)
        record = await self._repo.get_reset_token(hash_token(token))
        if record is None:
            logger.warning("password_reset_invalid_token")
            raise ValidationError(INVALID_RESET_TOKEN)
        if record.used_at is not None:
            logger.warning("password_reset_token_already_used", token_id=str(record.id))
            raise ValidationError("This reset link has already been used")
        if is_token_expired(record.expires_at):
            logger.warning("password_reset_token_expired", token_id=str(record.id))
            raise ValidationError("This reset link has expired")

        user = await self._load_active_user(str(record.user_id))
        if user is None:
            logger.warning("password_reset_user_unavailable", user_id=str(record.user_id))
            raise ValidationError(INVALID_RESET_TOKEN)

        if not await self._repo.consume_reset_token(record.id):
            logger.warning("password_reset_token_already_used", token_id=str(record.id))
            raise ValidationError("This reset link has already been used")

        await self._repo.update_user(user.id, password_hash=hash_password(new_password))
        await self._repo.delete_user_reset_tokens(user.id)
        await self.logout_all(user.id)
        logger.info("password_reset_successful", user_id=str(user.id))
        return user

    async def get_current_user(self, user_id: UUID) -> User:
        """Load the caller's own record."""
        return await self._require_user(user_id)

    async def _open_session(
        self, user: User, device: DeviceInfo | None
    ) -> tuple[TokenPair, Session]:
        access_token = self._issuer.issue_access(user)
        issued = self._issuer.issue_refresh(user)
        session = await self._repo.create_session(
            user_id=user.id,
            token_id=issued.token_id,
            refresh_token_hash=hash_token(issued.token),
            expires_at=issued.expires_at,
            device=device,
        )
        await self._mark_valid(user.id, issued.token_id)
        return TokenPair(access_token=access_token, refresh_token=issued.token), session

    async def _mark_valid(self, user_id: UUID, token_id: str) -> None:
        await best_effort(
            self._cache.mark_valid(user_id, token_id, self._cache_ttl_seconds),
            CACHE_FAILED,
            op="mark_valid",
        )

    async def _load_active_user(self, subject: str) -> User | None:
        try:
            user_id = UUID(subject)
        except ValueError:
            return None
        user = await self._repo.get_user_by_id(user_id)
        if user is None or user.deleted_at is not None or not user.is_active:
            return None
        return user

    async def _require_user(self, user_id: UUID) -> User:
        user = await self._repo.get_user_by_id(user_id)
        if user is None or user.deleted_at is not None:
            raise AuthenticationError(INVALID_TOKEN)
        return user
