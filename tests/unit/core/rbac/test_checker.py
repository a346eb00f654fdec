"""Tests for the permission checker."""

from collections.abc import Awaitable, Callable
from uuid import uuid4

import pytest

from aurora.adapters.auth.memory import InMemoryAuthRepository
from aurora.core.auth.types import AuthContext, MembershipStatus, User
from aurora.core.rbac.checker import PermissionChecker
from aurora.core.rbac.permissions import (
    PERMISSION_ALIASES,
    ROLE_PERMISSIONS,
    Permission,
    resolve_action,
)
from aurora.core.rbac.roles import OrgRole

UserFactory = Callable[..., Awaitable[User]]
IdentityOf = Callable[[User], AuthContext]


@pytest.fixture
def checker(repo: InMemoryAuthRepository) -> PermissionChecker:
    return PermissionChecker(repo)


async def _member(
    repo: InMemoryAuthRepository,
    make_user: UserFactory,
    role: str,
    status: MembershipStatus = MembershipStatus.ACTIVE,
):
    owner = await make_user(f"owner-{uuid4().hex[:6]}@example.com")
    org = await repo.create_org("Acme", f"acme-{uuid4().hex[:6]}", created_by=owner.id)
    user = await make_user(f"{role}-{uuid4().hex[:6]}@example.com")
    await repo.add_membership(user.id, org.id, role, status=status)
    return user, org


class TestRoleTable:
    """Test the static grant table."""

    def test_company_admin_has_everything(self) -> None:
        assert ROLE_PERMISSIONS[OrgRole.COMPANY_ADMIN] == {p.value for p in Permission}

    def test_super_admin_has_no_org_permissions(self) -> None:
        """Global privilege comes from the user flag, not the role label."""
        assert OrgRole.SUPER_ADMIN not in ROLE_PERMISSIONS

    def test_client_is_read_only(self) -> None:
        assert all(token.endswith(":read") for token in ROLE_PERMISSIONS[OrgRole.CLIENT])

    def test_manage_members_expands(self) -> None:
        assert resolve_action("manage_members") == (
            "member:invite",
            "member:remove",
            "member:update_role",
        )

    def test_unknown_label_resolves_to_itself(self) -> None:
        assert resolve_action("project:read") == ("project:read",)
        assert "project:read" not in PERMISSION_ALIASES


class TestHasPermission:
    """Test permission evaluation."""

    @pytest.mark.asyncio
    async def test_client_cannot_create_task(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        user, org = await _member(repo, make_user, "client")
        identity = identity_of(user)

        assert await checker.has_permission(identity, org.id, "create_task") is False

    @pytest.mark.asyncio
    async def test_empty_action_list_means_membership(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        """No actions to check is the same as checking membership only."""
        user, org = await _member(repo, make_user, "client")
        outsider = identity_of(await make_user("outsider@example.com"))

        assert await checker.has_permission(identity_of(user), org.id, []) is True
        assert await checker.has_permission(identity_of(user), org.id, (), require_all=True)
        assert await checker.has_permission(outsider, org.id, []) is False

    @pytest.mark.asyncio
    async def test_empty_action_list_with_unknown_role(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        user, org = await _member(repo, make_user, "intern")

        assert await checker.has_permission(identity_of(user), org.id, []) is True
        assert await checker.has_permission(identity_of(user), org.id, "view_members") is False
        assert await checker.has_permission(identity, org.id, "task:read") is True

    @pytest.mark.asyncio
    async def test_legacy_member_is_employee(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        """A stored legacy label gets exactly the canonical role's grants."""
        user, org = await _member(repo, make_user, "member")
        identity = identity_of(user)

        assert await checker.has_permission(identity, org.id, "create_task") is True
        assert await checker.has_permission(identity, org.id, "create_project") is False

    @pytest.mark.asyncio
    async def test_legacy_owner_can_manage_members(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        user, org = await _member(repo, make_user, "owner")
        assert await checker.has_permission(
            identity_of(user), org.id, "manage_members", require_all=True
        )

    @pytest.mark.asyncio
    async def test_any_versus_all(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        """Manager can assign tasks but not delete them."""
        user, org = await _member(repo, make_user, "manager")
        identity = identity_of(user)
        actions = ["assign_task", "delete_task"]

        assert await checker.has_permission(identity, org.id, actions) is True
        assert await checker.has_permission(identity, org.id, actions, require_all=True) is False

    @pytest.mark.asyncio
    async def test_non_member_denied(
        self,
        checker: PermissionChecker,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        user = await make_user("stranger@example.com")
        assert await checker.has_permission(identity_of(user), uuid4()) is False

    @pytest.mark.asyncio
    async def test_membership_without_action_is_enough(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        user, org = await _member(repo, make_user, "client")
        assert await checker.has_permission(identity_of(user), org.id) is True

    @pytest.mark.asyncio
    async def test_invited_member_denied(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        """Pending invitations grant nothing."""
        user, org = await _member(repo, make_user, "manager", status=MembershipStatus.INVITED)
        assert await checker.has_permission(identity_of(user), org.id) is False

    @pytest.mark.asyncio
    async def test_unknown_role_denied(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        user, org = await _member(repo, make_user, "root")
        identity = identity_of(user)

        assert await checker.has_permission(identity, org.id, "task:read") is False
        assert await checker.permissions_for(identity, org.id) == []

    @pytest.mark.asyncio
    async def test_super_admin_role_label_grants_nothing(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        """A membership labelled super_admin is not a global super admin."""
        user, org = await _member(repo, make_user, "super_admin")
        assert await checker.has_permission(identity_of(user), org.id, "task:read") is False

    @pytest.mark.asyncio
    async def test_super_admin_flag_allows_anything(
        self,
        checker: PermissionChecker,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        admin = await make_user("root@example.com", is_super_admin=True)
        identity = identity_of(admin)

        assert await checker.has_permission(identity, uuid4(), "delete_organization") is True
        assert len(await checker.permissions_for(identity, uuid4())) == len(Permission)

    @pytest.mark.asyncio
    async def test_role_change_takes_effect_immediately(
        self,
        checker: PermissionChecker,
        repo: InMemoryAuthRepository,
        make_user: UserFactory,
        identity_of: IdentityOf,
    ) -> None:
        """No caching: a demotion applies to the next check."""
        user, org = await _member(repo, make_user, "manager")
        identity = identity_of(user)
        assert await checker.has_permission(identity, org.id, "create_project") is True

        await repo.update_membership_role(user.id, org.id, "client")

        assert await checker.has_permission(identity, org.id, "create_project") is False
