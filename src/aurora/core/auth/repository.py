"""Auth repository protocol for database operations."""

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from aurora.core.auth.types import (
    DeviceInfo,
    Membership,
    MembershipStatus,
    Organization,
    PasswordResetToken,
    Session,
    User,
)


@runtime_checkable
class AuthRepository(Protocol):
    """Protocol for auth database operations.

    Implementations provide actual storage (PostgreSQL, in-memory). Every read
    and update ignores soft-deleted rows. Uniqueness violations surface as
    ``aurora.core.exceptions.ConflictError``.
    """

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get a live user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a live user by email address (case-insensitive)."""
        ...

    async def create_user(
        self,
        email: str,
        name: str | None = None,
        password_hash: str | None = None,
    ) -> User:
        """Create a new user."""
        ...

    async def update_user(
        self,
        user_id: UUID,
        name: str | None = None,
        password_hash: str | None = None,
        is_active: bool | None = None,
        last_login_at: datetime | None = None,
    ) -> User | None:
        """Update user fields."""
        ...

    async def soft_delete_user(self, user_id: UUID) -> bool:
        """Tombstone a user. Returns False if no live user matched."""
        ...

    # Organization operations
    async def get_org_by_id(self, org_id: UUID) -> Organization | None:
        """Get a live organization by ID."""
        ...

    async def get_org_by_slug(self, slug: str) -> Organization | None:
        """Get a live organization by slug."""
        ...

    async def create_org(
        self,
        name: str,
        slug: str,
        created_by: UUID | None = None,
        plan: str = "free",
    ) -> Organization:
        """Create a new organization."""
        ...

    async def create_org_with_owner(
        self,
        name: str,
        slug: str,
        owner_id: UUID,
        owner_role: str,
        plan: str = "free",
    ) -> tuple[Organization, Membership]:
        """Create an organization and its owner's active membership atomically.

        Raises:
            ConflictError: If the slug is taken.
        """
        ...

    async def update_org(
        self,
        org_id: UUID,
        name: str | None = None,
        plan: str | None = None,
    ) -> Organization | None:
        """Update organization fields."""
        ...

    async def soft_delete_org(self, org_id: UUID) -> bool:
        """Tombstone an organization together with its memberships.

        Returns False if no live organization matched.
        """
        ...

    # Membership operations
    async def get_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        """Get the live membership for a (user, organization) pair, in any status."""
        ...

    async def get_oldest_active_membership(self, user_id: UUID) -> Membership | None:
        """Get the earliest-created active membership of a user."""
        ...

    async def list_user_memberships(
        self, user_id: UUID
    ) -> list[tuple[Organization, Membership]]:
        """List a user's live memberships with their organizations."""
        ...

    async def add_membership(
        self,
        user_id: UUID,
        org_id: UUID,
        role: str,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        invited_by: UUID | None = None,
    ) -> Membership:
        """Insert a membership.

        Raises:
            ConflictError: If a live membership already exists for the pair.
        """
        ...

    async def activate_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        """Move an invited membership to active. Returns None if none was invited."""
        ...

    async def update_membership_role(
        self, user_id: UUID, org_id: UUID, role: str
    ) -> Membership | None:
        """Change the role of a live membership."""
        ...

    async def remove_membership(self, user_id: UUID, org_id: UUID) -> bool:
        """Soft-delete a live membership. Returns False if none matched."""
        ...

    async def list_org_members(self, org_id: UUID) -> list[tuple[User, Membership]]:
        """List live memberships of an organization, in any status, oldest first."""
        ...

    # Session operations
    async def create_session(
        self,
        user_id: UUID,
        token_id: str,
        refresh_token_hash: str,
        expires_at: datetime,
        device: DeviceInfo | None = None,
    ) -> Session:
        """Persist a new refresh-token lineage."""
        ...

    async def get_live_session(self, user_id: UUID, token_id: str) -> Session | None:
        """Get an active, non-deleted, unexpired session by lineage id."""
        ...

    async def rotate_session(
        self,
        session_id: UUID,
        expected_hash: str,
        new_token_id: str,
        new_hash: str,
        expires_at: datetime,
    ) -> Session | None:
        """Swap the stored refresh token, only if it still equals ``expected_hash``.

        Returns:
            The updated session, or None if another rotation won.
        """
        ...

    async def deactivate_session(self, user_id: UUID, session_id: UUID) -> bool:
        """Revoke one of the user's sessions."""
        ...

    async def deactivate_user_sessions(self, user_id: UUID) -> int:
        """Revoke every live session of a user. Returns the count revoked."""
        ...

    async def list_user_sessions(self, user_id: UUID) -> list[Session]:
        """List a user's live sessions, most recently active first."""
        ...

    async def purge_expired_sessions(self, before: datetime) -> int:
        """Physically delete sessions that expired before ``before``."""
        ...

    # Password reset operations
    async def create_reset_token(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetToken:
        """Store the hash of a newly issued reset token."""
        ...

    async def get_reset_token(self, token_hash: str) -> PasswordResetToken | None:
        """Look up a reset token by its hash, used or not."""
        ...

    async def consume_reset_token(self, token_id: UUID) -> bool:
        """Mark a reset token used, only if it is still unused.

        Returns:
            False if another request consumed it first.
        """
        ...

    async def delete_user_reset_tokens(self, user_id: UUID) -> int:
        """Delete every reset token of a user. Returns the count deleted."""
        ...

    async def purge_expired_reset_tokens(self, before: datetime) -> int:
        """Physically delete reset tokens that expired before ``before``."""
        ...
