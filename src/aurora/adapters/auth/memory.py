"""In-memory implementation of AuthRepository.

Used by tests and local tooling. Each method performs its check-and-write
without awaiting in between, so under a single event loop it enforces the
same uniqueness and compare-and-swap guarantees the PostgreSQL indexes do.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from aurora.core.auth.types import (
    DeviceInfo,
    Membership,
    MembershipStatus,
    Organization,
    OrganizationPlan,
    PasswordResetToken,
    Session,
    User,
)
from aurora.core.exceptions import ConflictError


def _now() -> datetime:
    return datetime.now(UTC)


class InMemoryAuthRepository:
    """Dictionary-backed auth repository."""

    def __init__(self) -> None:
        """Start with empty tables."""
        self.users: dict[UUID, User] = {}
        self.orgs: dict[UUID, Organization] = {}
        self.memberships: dict[UUID, Membership] = {}
        self.sessions: dict[UUID, Session] = {}
        self.reset_tokens: dict[UUID, PasswordResetToken] = {}

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        user = self.users.get(user_id)
        return user if user and user.deleted_at is None else None

    async def get_user_by_email(self, email: str) -> User | None:
        email = email.lower()
        return next(
            (u for u in self.users.values() if u.deleted_at is None and u.email.lower() == email),
            None,
        )

    async def create_user(
        self,
        email: str,
        name: str | None = None,
        password_hash: str | None = None,
    ) -> User:
        email = email.lower()
        if any(u.deleted_at is None and u.email.lower() == email for u in self.users.values()):
            raise ConflictError("Email already registered")
        user = User(
            id=uuid4(),
            email=email,
            name=name,
            password_hash=password_hash,
            created_at=_now(),
        )
        self.users[user.id] = user
        return user

    async def update_user(
        self,
        user_id: UUID,
        name: str | None = None,
        password_hash: str | None = None,
        is_active: bool | None = None,
        last_login_at: datetime | None = None,
    ) -> User | None:
        user = await self.get_user_by_id(user_id)
        if user is None:
            return None
        changes = {
            key: value
            for key, value in (
                ("name", name),
                ("password_hash", password_hash),
                ("is_active", is_active),
                ("last_login_at", last_login_at),
            )
            if value is not None
        }
        updated = user.model_copy(update=changes)
        self.users[user_id] = updated
        return updated

    async def soft_delete_user(self, user_id: UUID) -> bool:
        user = self.users.get(user_id)
        if user is None or user.deleted_at is not None:
            return False
        self.users[user_id] = user.model_copy(update={"deleted_at": _now(), "is_active": False})
        return True

    # Organization operations
    async def get_org_by_id(self, org_id: UUID) -> Organization | None:
        org = self.orgs.get(org_id)
        return org if org and org.deleted_at is None else None

    async def get_org_by_slug(self, slug: str) -> Organization | None:
        return next(
            (o for o in self.orgs.values() if o.deleted_at is None and o.slug == slug),
            None,
        )

    def _insert_org(
        self, name: str, slug: str, created_by: UUID | None, plan: str
    ) -> Organization:
        if any(o.deleted_at is None and o.slug == slug for o in self.orgs.values()):
            raise ConflictError("Organization slug already taken")
        org = Organization(
            id=uuid4(),
            name=name,
            slug=slug,
            plan=OrganizationPlan(plan),
            created_by=created_by,
            created_at=_now(),
        )
        self.orgs[org.id] = org
        return org

    async def create_org(
        self,
        name: str,
        slug: str,
        created_by: UUID | None = None,
        plan: str = "free",
    ) -> Organization:
        return self._insert_org(name, slug, created_by, plan)

    async def create_org_with_owner(
        self,
        name: str,
        slug: str,
        owner_id: UUID,
        owner_role: str,
        plan: str = "free",
    ) -> tuple[Organization, Membership]:
        org = self._insert_org(name, slug, owner_id, plan)
        membership = self._insert_membership(
            owner_id, org.id, owner_role, MembershipStatus.ACTIVE, None
        )
        return org, membership

    async def update_org(
        self,
        org_id: UUID,
        name: str | None = None,
        plan: str | None = None,
    ) -> Organization | None:
        org = await self.get_org_by_id(org_id)
        if org is None:
            return None
        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = name
        if plan is not None:
            changes["plan"] = OrganizationPlan(plan)
        updated = org.model_copy(update=changes)
        self.orgs[org_id] = updated
        return updated

    async def soft_delete_org(self, org_id: UUID) -> bool:
        org = self.orgs.get(org_id)
        if org is None or org.deleted_at is not None:
            return False
        now = _now()
        self.orgs[org_id] = org.model_copy(update={"deleted_at": now})
        for m in list(self.memberships.values()):
            if m.org_id == org_id and m.deleted_at is None:
                self.memberships[m.id] = m.model_copy(update={"deleted_at": now})
        return True

    # Membership operations
    def _live_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        return next(
            (
                m
                for m in self.memberships.values()
                if m.user_id == user_id and m.org_id == org_id and m.deleted_at is None
            ),
            None,
        )

    async def get_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        return self._live_membership(user_id, org_id)

    async def get_oldest_active_membership(self, user_id: UUID) -> Membership | None:
        # dicts keep insertion order, which is creation order
        return next(
            (
                m
                for m in self.memberships.values()
                if m.user_id == user_id
                and m.is_active
                and self.orgs.get(m.org_id) is not None
                and self.orgs[m.org_id].deleted_at is None
            ),
            None,
        )

    async def list_user_memberships(
        self, user_id: UUID
    ) -> list[tuple[Organization, Membership]]:
        result = []
        for m in self.memberships.values():
            if m.user_id != user_id or m.deleted_at is not None:
                continue
            org = self.orgs.get(m.org_id)
            if org is not None and org.deleted_at is None:
                result.append((org, m))
        return result

    def _insert_membership(
        self,
        user_id: UUID,
        org_id: UUID,
        role: str,
        status: MembershipStatus,
        invited_by: UUID | None,
    ) -> Membership:
        if self._live_membership(user_id, org_id) is not None:
            raise ConflictError("User is already a member of this organization")
        now = _now()
        membership = Membership(
            id=uuid4(),
            user_id=user_id,
            org_id=org_id,
            role=role,
            status=status,
            invited_by=invited_by,
            joined_at=now if status is MembershipStatus.ACTIVE else None,
            created_at=now,
        )
        self.memberships[membership.id] = membership
        return membership

    async def add_membership(
        self,
        user_id: UUID,
        org_id: UUID,
        role: str,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        invited_by: UUID | None = None,
    ) -> Membership:
        return self._insert_membership(user_id, org_id, role, status, invited_by)

    async def activate_membership(self, user_id: UUID, org_id: UUID) -> Membership | None:
        membership = self._live_membership(user_id, org_id)
        if membership is None or membership.status is not MembershipStatus.INVITED:
            return None
        updated = membership.model_copy(
            update={"status": MembershipStatus.ACTIVE, "joined_at": _now()}
        )
        self.memberships[membership.id] = updated
        return updated

    async def update_membership_role(
        self, user_id: UUID, org_id: UUID, role: str
    ) -> Membership | None:
        membership = self._live_membership(user_id, org_id)
        if membership is None:
            return None
        updated = membership.model_copy(update={"role": role})
        self.memberships[membership.id] = updated
        return updated

    async def remove_membership(self, user_id: UUID, org_id: UUID) -> bool:
        membership = self._live_membership(user_id, org_id)
        if membership is None:
            return False
        self.memberships[membership.id] = membership.model_copy(update={"deleted_at": _now()})
        return True

    async def list_org_members(self, org_id: UUID) -> list[tuple[User, Membership]]:
        result = []
        for m in self.memberships.values():
            if m.org_id != org_id or m.deleted_at is not None:
                continue
            user = self.users.get(m.user_id)
            if user is not None and user.deleted_at is None:
                result.append((user, m))
        return result

    # Session operations
    async def create_session(
        self,
        user_id: UUID,
        token_id: str,
        refresh_token_hash: str,
        expires_at: datetime,
        device: DeviceInfo | None = None,
    ) -> Session:
        if any(s.refresh_token_hash == refresh_token_hash for s in self.sessions.values()):
            raise ConflictError("Refresh token already recorded")
        device = device or DeviceInfo()
        now = _now()
        session = Session(
            id=uuid4(),
            user_id=user_id,
            token_id=token_id,
            refresh_token_hash=refresh_token_hash,
            user_agent=device.user_agent,
            ip_address=device.ip_address,
            last_activity_at=now,
            expires_at=expires_at,
            created_at=now,
        )
        self.sessions[session.id] = session
        return session

    def _is_live(self, session: Session) -> bool:
        return session.is_active and session.deleted_at is None and session.expires_at > _now()

    async def get_live_session(self, user_id: UUID, token_id: str) -> Session | None:
        return next(
            (
                s
                for s in self.sessions.values()
                if s.user_id == user_id and s.token_id == token_id and self._is_live(s)
            ),
            None,
        )

    async def rotate_session(
        self,
        session_id: UUID,
        expected_hash: str,
        new_token_id: str,
        new_hash: str,
        expires_at: datetime,
    ) -> Session | None:
        session = self.sessions.get(session_id)
        if (
            session is None
            or session.refresh_token_hash != expected_hash
            or not session.is_active
            or session.deleted_at is not None
        ):
            return None
        updated = session.model_copy(
            update={
                "token_id": new_token_id,
                "refresh_token_hash": new_hash,
                "expires_at": expires_at,
                "last_activity_at": _now(),
            }
        )
        self.sessions[session_id] = updated
        return updated

    async def deactivate_session(self, user_id: UUID, session_id: UUID) -> bool:
        session = self.sessions.get(session_id)
        if session is None or session.user_id != user_id or session.deleted_at is not None:
            return False
        self.sessions[session_id] = session.model_copy(
            update={"is_active": False, "deleted_at": _now()}
        )
        return True

    async def deactivate_user_sessions(self, user_id: UUID) -> int:
        count = 0
        now = _now()
        for session in list(self.sessions.values()):
            if session.user_id == user_id and session.deleted_at is None:
                self.sessions[session.id] = session.model_copy(
                    update={"is_active": False, "deleted_at": now}
                )
                count += 1
        return count

    async def list_user_sessions(self, user_id: UUID) -> list[Session]:
        live = [s for s in self.sessions.values() if s.user_id == user_id and self._is_live(s)]
        return sorted(live, key=lambda s: s.last_activity_at, reverse=True)

    async def purge_expired_sessions(self, before: datetime) -> int:
        expired = [sid for sid, s in self.sessions.items() if s.expires_at < before]
        for sid in expired:
            del self.sessions[sid]
        return len(expired)

    # Password reset operations
    async def create_reset_token(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetToken:
        if any(t.token_hash == token_hash for t in self.reset_tokens.values()):
            raise ConflictError("Reset token already recorded")
        token = PasswordResetToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=_now(),
        )
        self.reset_tokens[token.id] = token
        return token

    async def get_reset_token(self, token_hash: str) -> PasswordResetToken | None:
        return next(
            (t for t in self.reset_tokens.values() if t.token_hash == token_hash),
            None,
        )

    async def consume_reset_token(self, token_id: UUID) -> bool:
        token = self.reset_tokens.get(token_id)
        if token is None or token.used_at is not None:
            return False
        self.reset_tokens[token_id] = token.model_copy(update={"used_at": _now()})
        return True

    async def delete_user_reset_tokens(self, user_id: UUID) -> int:
        doomed = [tid for tid, t in self.reset_tokens.items() if t.user_id == user_id]
        for tid in doomed:
            del self.reset_tokens[tid]
        return len(doomed)

    async def purge_expired_reset_tokens(self, before: datetime) -> int:
        expired = [tid for tid, t in self.reset_tokens.items() if t.expires_at < before]
        for tid in expired:
            del self.reset_tokens[tid]
        return len(expired)
