"""PostgreSQL implementation of AuthRepository."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import asyncpg

from aurora.adapters.db.app_db import AppDatabase
from aurora.core.auth.types import (
    DeviceInfo,
    Membership,
    MembershipStatus,
    Organization,
    PasswordResetToken,
    Session,
    User,
)
from aurora.core.exceptions import ConflictError


def _affected(status: str) -> int:
    """Row count from an asyncpg command tag such as ``UPDATE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


class PostgresAuthRepository:
    """PostgreSQL implementation of auth repository."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_user(self, row: dict[str, Any]) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            email=row["email"],
            name=row.get("name"),
            password_hash=row.get("password_hash"),
            is_active=row.get("is_active", True),
            is_super_admin=row.get("is_super_admin", False),
            last_login_at=row.get("last_login_at"),
            created_at=row["created_at"],
            deleted_at=row.get("deleted_at"),
        )

    def _row_to_org(self, row: dict[str, Any]) -> Organization:
        """Convert database row to Organization model."""
        return Organization(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            plan=row.get("plan", "free"),
            created_by=row.get("created_by"),
            created_at=row["created_at"],
            deleted_at=row.get("deleted_at"),
        )

    def _row_to_membership(self, row: dict[str, Any]) -> Membership:
        """Convert database row to Membership model."""
        return Membership(
            id=row["id"],
            user_id=row["user_id"],
            org_id=row["org_id"],
            role=row["role"],
            status=MembershipStatus(row.get("status", "active")),
            invited_by=row.get("invited_by"),
            joined_at=row.get("joined_at"),
            created_at=row["created_at"],
            deleted_at=row.get("deleted_at"),
        )

    def _row_to_reset_token(self, row: dict[str, Any]) -> PasswordResetToken:
        """Convert database row to PasswordResetToken model."""
        return PasswordResetToken(
            id=row["id"],
            user_id=row["user_id"],
            token_hash=row["token_hash"],
            expires_at=row["expires_at"],
            used_at=row.get("used_at"),
            created_at=row["created_at"],
        )

    def _row_to_session(self, row: dict[str, Any]) -> Session:
        """Convert database row to Session model."""
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            token_id=row["token_id"],
            refresh_token_hash=row["refresh_token_hash"],
            user_agent=row.get("user_agent") or "Unknown",
            ip_address=row.get("ip_address") or "0.0.0.0",
            is_active=row.get("is_active", True),
            last_activity_at=row["last_activity_at"],
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            deleted_at=row.get("deleted_at"),
        )

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get a live user by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM users WHERE id = $1 AND deleted_at IS NULL",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a live user by email address."""
        row = await self._db.fetch_one(
            "SELECT * FROM users WHERE lower(email) = lower($1) AND deleted_at IS NULL",
            email,
        )
        return self._row_to_user(row) if row else None

    async def create_user(
        self,
        email: str,
        name: str | None = None,
        password_hash: str | None = None,
    ) -> User:
        """Create a new user."""
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO users (email, name, password_hash)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                email.lower(),
                name,
                password_hash,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Email already registered") from None
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_user(row)

    async def update_user(
        self,
        user_id: UUID,
        name: str | None = None,
        password_hash: str | None = None,
        is_active: bool | None = None,
        last_login_at: datetime | None = None,
    ) -> User | None:
        """Update user fields."""
        updates = []
        params: list[Any] = []
        param_idx = 1

        for column, value in (
            ("name", name),
            ("password_hash", password_hash),
            ("is_active", is_active),
            ("last_login_at", last_login_at),
        ):
            if value is not None:
                updates.append(f"{column} = ${param_idx}")
                params.append(value)
                param_idx += 1

        if not updates:
            return await self.get_user_by_id(user_id)

        updates.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(UTC))
        param_idx += 1

        params.append(user_id)
        query = f"""
            UPDATE users SET {", ".join(updates)}
            WHERE id = ${param_idx} AND deleted_at IS NULL
            RETURNING *
        """
        row = await self._db.fetch_one(query, *params)
        return self._row_to_user(row) if row else None

    async def soft_delete_user(self, user_id: UUID) -> bool:
        """Tombstone a user."""
        result = await self._db.execute(
            """
            UPDATE users SET deleted_at = NOW(), is_active = false, updated_at = NOW()
            WHERE id = $1 AND deleted_at IS NULL
            """,
            user_id,
        )
        return _affected(result) > 0

    # Organization operations
    async def get_org_by_id(self, org_id: UUID) -> Organization | None:
        """Get a live organization by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM organizations WHERE id = $1 AND deleted_at IS NULL",
            org_id,
        )
        return self._row_to_org(row) if row else None

    async def get_org_by_slug(self, slug: str) -> Organization | None:
        """Get a live organization by slug."""
        row = await self._db.fetch_one(
            "SELECT * FROM organizations WHERE slug = $1 AND deleted_at IS NULL",
            slug,
        )
        return self._row_to_org(row) if row else None

    async def create_org(
        self,
        name: str,
        slug: str,
        created_by: UUID | None = None,
        plan: str = "free",
    ) -> Organization:
        """Create a new organization."""
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO organizations (name, slug, plan, created_by)
                VALUES ($1, $2, $3, $4)
                RETURNING *
                """,
                name,
                slug,
                plan,
                created_by,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Organization slug already taken") from None
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_org(row)

    async def create_org_with_owner(
        self,
        name: str,
        slug: str,
        owner_id: UUID,
        owner_role: str,
        plan: str = "free",
    ) -> tuple[Organization, Membership]:
        """Insert an organization and its owner membership in one transaction."""
        try:
            async with self._db.transaction() as conn:
                org_row = await conn.fetchrow(
                    """
                    INSERT INTO organizations (name, slug, plan, created_by)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    """,
                    name,
                    slug,
                    plan,
                    owner_id,
                )
                assert org_row is not None, "INSERT RETURNING should always return a row"
                membership_row = await conn.fetchrow(
                    """
                    INSERT INTO memberships (user_id, org_id, role, status, joined_at)
                    VALUES ($1, $2, $3, 'active', NOW())
                    RETURNING *
                    """,
                    owner_id,
                    org_row["id"],
                    owner_role,
                )
                assert membership_row is not None, "INSERT RETURNING should always return a row"
        except asyncpg.UniqueViolationError:
            raise ConflictError("Organization slug already taken") from None
        return self._row_to_org(dict(org_row)), self._row_to_membership(dict(membership_row))

    async def update_org(
        self,
        org_id: UUID,
        name: str | None = None,
        plan: str | None = None,
    ) -> Organization | None:
        """Update organization fields."""
        updates = []
        params: list[Any] = []
        param_idx = 1

        for column, value in (("name", name), ("plan", plan)):
            if value is not None:
                updates.append(f"{column} = ${param_idx}")
                params.append(value)
                param_idx += 1

        if not updates:
            return await self.get_org_by_id(org_id)

        params.append(org_id)
        query = f"""
            UPDATE organizations SET {", ".join(updates)}, updated_at = NOW()
            WHERE id = ${param_idx} AND deleted_at IS NULL
            RETURNING *
        """
        row = await self._db.fetch_one(query, *params)
        return self._row_to_org(row) if row else None

    async def soft_delete_org(self, org_id: UUID) -> bool:
        """Tombstone an organization and its memberships in one transaction."""
        async with self._db.transaction() as conn:
            result = await conn.execute(
                """
                UPDATE organizations SET deleted_at = NOW(), updated_at = NOW()
                WHERE id = $1 AND deleted_at IS NULL
                """,
                org_id,
            )
            if _affected(result) == 0:
                return False
            await conn.execute(
                """
                UPDATE memberships SET deleted_at = NOW(), updated_at = NOW()
                WHERE org_id = $1 AND deleted_at IS NULL
                """,
                org_id,
            )
        return True

    # Membership operations
    async def get_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        """Get the live membership for a (user, organization) pair."""
        row = await self._db.fetch_one(
            """
            SELECT * FROM memberships
            WHERE user_id = $1 AND org_id = $2 AND deleted_at IS NULL
            """,
            user_id,
            org_id,
        )
        return self._row_to_membership(row) if row else None

    async def get_oldest_active_membership(self, user_id: UUID) -> Membership | None:
        """Get the earliest-created active membership in a live organization."""
        row = await self._db.fetch_one(
            """
            SELECT m.* FROM memberships m
            JOIN organizations o ON o.id = m.org_id AND o.deleted_at IS NULL
            WHERE m.user_id = $1 AND m.status = 'active' AND m.deleted_at IS NULL
            ORDER BY m.created_at ASC
            LIMIT 1
            """,
            user_id,
        )
        return self._row_to_membership(row) if row else None

    async def list_user_memberships(
        self, user_id: UUID
    ) -> list[tuple[Organization, Membership]]:
        """List a user's live memberships with their organizations."""
        rows = await self._db.fetch_all(
            """
            SELECT m.*, o.name AS org_name, o.slug AS org_slug, o.plan AS org_plan,
                   o.created_by AS org_created_by, o.created_at AS org_created_at
            FROM memberships m
            JOIN organizations o ON o.id = m.org_id AND o.deleted_at IS NULL
            WHERE m.user_id = $1 AND m.deleted_at IS NULL
            ORDER BY m.created_at ASC
            """,
            user_id,
        )
        return [
            (
                Organization(
                    id=row["org_id"],
                    name=row["org_name"],
                    slug=row["org_slug"],
                    plan=row["org_plan"],
                    created_by=row["org_created_by"],
                    created_at=row["org_created_at"],
                ),
                self._row_to_membership(row),
            )
            for row in rows
        ]

    async def add_membership(
        self,
        user_id: UUID,
        org_id: UUID,
        role: str,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        invited_by: UUID | None = None,
    ) -> Membership:
        """Insert a membership; the partial unique index rejects duplicates."""
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO memberships (user_id, org_id, role, status, invited_by, joined_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                user_id,
                org_id,
                role,
                status.value,
                invited_by,
                datetime.now(UTC) if status is MembershipStatus.ACTIVE else None,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("User is already a member of this organization") from None
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_membership(row)

    async def activate_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        """Conditionally move an invited membership to active."""
        row = await self._db.fetch_one(
            """
            UPDATE memberships
            SET status = 'active', joined_at = NOW(), updated_at = NOW()
            WHERE user_id = $1 AND org_id = $2
              AND status = 'invited' AND deleted_at IS NULL
            RETURNING *
            """,
            user_id,
            org_id,
        )
        return self._row_to_membership(row) if row else None

    async def update_membership_role(
        self, user_id: UUID, org_id: UUID, role: str
    ) -> Membership | None:
        """Change the role of a live membership."""
        row = await self._db.fetch_one(
            """
            UPDATE memberships SET role = $3, updated_at = NOW()
            WHERE user_id = $1 AND org_id = $2 AND deleted_at IS NULL
            RETURNING *
            """,
            user_id,
            org_id,
            role,
        )
        return self._row_to_membership(row) if row else None

    async def remove_membership(self, user_id: UUID, org_id: UUID) -> bool:
        """Soft-delete a live membership."""
        result = await self._db.execute(
            """
            UPDATE memberships SET deleted_at = NOW(), updated_at = NOW()
            WHERE user_id = $1 AND org_id = $2 AND deleted_at IS NULL
            """,
            user_id,
            org_id,
        )
        return _affected(result) > 0

    async def list_org_members(self, org_id: UUID) -> list[tuple[User, Membership]]:
        """List live memberships of an organization with their live users."""
        rows = await self._db.fetch_all(
            """
            SELECT m.*, u.email AS user_email, u.name AS user_name,
                   u.is_active AS user_is_active, u.is_super_admin AS user_is_super_admin,
                   u.last_login_at AS user_last_login_at, u.created_at AS user_created_at
            FROM memberships m
            JOIN users u ON u.id = m.user_id AND u.deleted_at IS NULL
            WHERE m.org_id = $1 AND m.deleted_at IS NULL
            ORDER BY m.created_at ASC
            """,
            org_id,
        )
        return [
            (
                User(
                    id=row["user_id"],
                    email=row["user_email"],
                    name=row["user_name"],
                    is_active=row["user_is_active"],
                    is_super_admin=row["user_is_super_admin"],
                    last_login_at=row["user_last_login_at"],
                    created_at=row["user_created_at"],
                ),
                self._row_to_membership(row),
            )
            for row in rows
        ]

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
        device = device or DeviceInfo()
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO sessions
                    (user_id, token_id, refresh_token_hash, user_agent, ip_address, expires_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                user_id,
                token_id,
                refresh_token_hash,
                device.user_agent,
                device.ip_address,
                expires_at,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Refresh token already recorded") from None
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_session(row)

    async def get_live_session(self, user_id: UUID, token_id: str) -> Session | None:
        """Get an active, non-deleted, unexpired session by lineage id."""
        row = await self._db.fetch_one(
            """
            SELECT * FROM sessions
            WHERE user_id = $1 AND token_id = $2
              AND is_active = true AND deleted_at IS NULL AND expires_at > NOW()
            """,
            user_id,
            token_id,
        )
        return self._row_to_session(row) if row else None

    async def rotate_session(
        self,
        session_id: UUID,
        expected_hash: str,
        new_token_id: str,
        new_hash: str,
        expires_at: datetime,
    ) -> Session | None:
        """Compare-and-swap the stored refresh token hash."""
        row = await self._db.fetch_one(
            """
            UPDATE sessions
            SET token_id = $3, refresh_token_hash = $4, expires_at = $5,
                last_activity_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND refresh_token_hash = $2
              AND is_active = true AND deleted_at IS NULL
            RETURNING *
            """,
            session_id,
            expected_hash,
            new_token_id,
            new_hash,
            expires_at,
        )
        return self._row_to_session(row) if row else None

    async def deactivate_session(self, user_id: UUID, session_id: UUID) -> bool:
        """Revoke one of the user's sessions."""
        result = await self._db.execute(
            """
            UPDATE sessions SET is_active = false, deleted_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL
            """,
            session_id,
            user_id,
        )
        return _affected(result) > 0

    async def deactivate_user_sessions(self, user_id: UUID) -> int:
        """Revoke every live session of a user."""
        result = await self._db.execute(
            """
            UPDATE sessions SET is_active = false, deleted_at = NOW(), updated_at = NOW()
            WHERE user_id = $1 AND deleted_at IS NULL
            """,
            user_id,
        )
        return _affected(result)

    async def list_user_sessions(self, user_id: UUID) -> list[Session]:
        """List a user's live sessions, most recently active first."""
        rows = await self._db.fetch_all(
            """
            SELECT * FROM sessions
            WHERE user_id = $1 AND is_active = true
              AND deleted_at IS NULL AND expires_at > NOW()
            ORDER BY last_activity_at DESC
            """,
            user_id,
        )
        return [self._row_to_session(row) for row in rows]

    async def purge_expired_sessions(self, before: datetime) -> int:
        """Physically delete sessions that expired before ``before``."""
        result = await self._db.execute(
            "DELETE FROM sessions WHERE expires_at < $1",
            before,
        )
        return _affected(result)

    # Password reset operations
    async def create_reset_token(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetToken:
        """Store the hash of a newly issued reset token."""
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO password_reset_tokens (user_id, token_hash, expires_at)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                user_id,
                token_hash,
                expires_at,
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Reset token already recorded") from None
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_reset_token(row)

    async def get_reset_token(self, token_hash: str) -> PasswordResetToken | None:
        """Look up a reset token by its hash."""
        row = await self._db.fetch_one(
            "SELECT * FROM password_reset_tokens WHERE token_hash = $1",
            token_hash,
        )
        return self._row_to_reset_token(row) if row else None

    async def consume_reset_token(self, token_id: UUID) -> bool:
        """Conditionally mark a reset token used."""
        result = await self._db.execute(
            """
            UPDATE password_reset_tokens SET used_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND used_at IS NULL
            """,
            token_id,
        )
        return _affected(result) > 0

    async def delete_user_reset_tokens(self, user_id: UUID) -> int:
        """Delete every reset token of a user."""
        result = await self._db.execute(
            "DELETE FROM password_reset_tokens WHERE user_id = $1",
            user_id,
        )
        return _affected(result)

    async def purge_expired_reset_tokens(self, before: datetime) -> int:
        """Physically delete reset tokens that expired before ``before``."""
        result = await self._db.execute(
            "DELETE FROM password_reset_tokens WHERE expires_at < $1",
            before,
        )
        return _affected(result)
