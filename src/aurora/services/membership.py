"""Organization and membership management."""

import re
from uuid import UUID

import structlog

from aurora.core.auth.repository import AuthRepository
from aurora.core.auth.types import (
    AuthContext,
    Membership,
    MembershipStatus,
    Organization,
    OrganizationPlan,
    User,
)
from aurora.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from aurora.core.rbac.checker import PermissionChecker
from aurora.core.rbac.roles import TOP_ROLE, OrgRole, is_top_role, normalize_role

logger = structlog.get_logger()

MAX_SLUG_LENGTH = 50
# Roles that can only be obtained by creating an organization or a transfer
_UNGRANTABLE_ROLES = {OrgRole.COMPANY_ADMIN, OrgRole.SUPER_ADMIN}


def generate_slug(name: str) -> str:
    """Generate a URL-safe slug from a name."""
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    return slug[:MAX_SLUG_LENGTH].strip("-") or "organization"


class MembershipService:
    """Creates organizations and manages who belongs to them with which role."""

    def __init__(self, repo: AuthRepository, checker: PermissionChecker) -> None:
        """Initialize the service.

        Args:
            repo: Auth repository for database operations.
            checker: Permission checker guarding member management.
        """
        self._repo = repo
        self._checker = checker

    async def create_organization(
        self,
        identity: AuthContext,
        name: str,
        plan: str = "free",
    ) -> tuple[Organization, Membership]:
        """Create an organization with the caller as its owner."""
        name = name.strip()
        if not name:
            raise ValidationError("Organization name is required")

        base_slug = generate_slug(name)
        slug = base_slug
        counter = 1
        while await self._repo.get_org_by_slug(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1

        org, membership = await self._repo.create_org_with_owner(
            name=name,
            slug=slug,
            owner_id=identity.user_id,
            owner_role=TOP_ROLE.value,
            plan=plan,
        )
        logger.info(
            "organization_created",
            org_id=str(org.id),
            slug=slug,
            user_id=str(identity.user_id),
        )
        return org, membership

    async def list_organizations(
        self, identity: AuthContext
    ) -> list[tuple[Organization, Membership]]:
        """List the caller's organizations with their memberships."""
        return await self._repo.list_user_memberships(identity.user_id)

    async def get_organization(self, identity: AuthContext, org_id: UUID) -> Organization:
        """Load an organization the caller belongs to.

        Raises:
            AuthorizationError: Caller has no active membership.
            NotFoundError: The organization does not exist.
        """
        if not await self._checker.has_permission(identity, org_id):
            raise AuthorizationError("Access denied to this organization")
        return await self._require_org(org_id)

    async def update_organization(
        self,
        identity: AuthContext,
        org_id: UUID,
        name: str | None = None,
        plan: str | None = None,
    ) -> tuple[Organization, Organization]:
        """Rename an organization or change its plan. The slug never changes.

        Returns:
            The organization before and after the change.

        Raises:
            AuthorizationError: Caller may not update the organization.
            ValidationError: Blank name or unknown plan.
            NotFoundError: The organization does not exist.
        """
        await self._require(identity, org_id, "update_organization")
        before = await self._require_org(org_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Organization name is required")
        if plan is not None and plan not in {p.value for p in OrganizationPlan}:
            raise ValidationError(f"Invalid plan: {plan}")

        after = await self._repo.update_org(org_id, name=name, plan=plan)
        if after is None:
            raise NotFoundError("Organization not found")
        logger.info(
            "organization_updated",
            org_id=str(org_id),
            user_id=str(identity.user_id),
        )
        return before, after

    async def delete_organization(self, identity: AuthContext, org_id: UUID) -> Organization:
        """Soft-delete an organization together with every membership in it.

        Returns:
            The organization as it was before deletion.

        Raises:
            AuthorizationError: Caller may not delete the organization.
            NotFoundError: The organization does not exist.
        """
        await self._require(identity, org_id, "delete_organization")
        org = await self._require_org(org_id)
        if not await self._repo.soft_delete_org(org_id):
            raise NotFoundError("Organization not found")
        if identity.organization_id == org_id:
            identity.organization_id = None
        logger.info("organization_deleted", org_id=str(org_id), user_id=str(identity.user_id))
        return org

    async def list_members(
        self, identity: AuthContext, org_id: UUID
    ) -> list[tuple[User, Membership]]:
        """List an organization's members, including pending invitations.

        Raises:
            AuthorizationError: Caller may not view members.
        """
        await self._require(identity, org_id, "view_members")
        return await self._repo.list_org_members(org_id)

    async def get_current_role(
        self, identity: AuthContext, org_id: UUID
    ) -> tuple[OrgRole | None, list[str]]:
        """Return the caller's canonical role and permission tokens in an organization."""
        permissions = await self._checker.permissions_for(identity, org_id)
        if identity.is_super_admin:
            return OrgRole.SUPER_ADMIN, permissions
        membership = await self._repo.get_membership(identity.user_id, org_id)
        if membership is None or not membership.is_active:
            return None, []
        return normalize_role(membership.role), permissions

    async def invite_member(
        self,
        identity: AuthContext,
        org_id: UUID,
        email: str,
        role: str = OrgRole.EMPLOYEE.value,
    ) -> Membership:
        """Invite an existing user into an organization.

        Raises:
            AuthorizationError: Caller may not invite, or the role is ungrantable.
            ValidationError: Unknown role.
            NotFoundError: No account with that email.
            ConflictError: The user already has a live membership.
        """
        await self._require(identity, org_id, "invite_member")
        canonical = self._grantable_role(role)

        invitee = await self._repo.get_user_by_email(email.strip().lower())
        if invitee is None:
            raise NotFoundError("User not found")

        membership = await self._repo.add_membership(
            invitee.id,
            org_id,
            canonical.value,
            status=MembershipStatus.INVITED,
            invited_by=identity.user_id,
        )
        logger.info(
            "member_invited",
            org_id=str(org_id),
            user_id=str(invitee.id),
            role=canonical.value,
            invited_by=str(identity.user_id),
        )
        return membership

    async def accept_invitation(self, identity: AuthContext, org_id: UUID) -> Membership:
        """Activate the caller's pending invitation.

        Raises:
            ConflictError: No pending invitation (never invited, or already accepted).
        """
        membership = await self._repo.activate_membership(identity.user_id, org_id)
        if membership is None:
            raise ConflictError("No pending invitation for this organization")
        logger.info("member_joined", org_id=str(org_id), user_id=str(identity.user_id))
        return membership

    async def update_member_role(
        self,
        identity: AuthContext,
        org_id: UUID,
        user_id: UUID,
        role: str,
    ) -> tuple[Membership, Membership]:
        """Change a member's role.

        Returns:
            The membership before and after the change.

        Raises:
            AuthorizationError: Caller may not manage members, the target is the
                owner, or the requested role is ungrantable.
            ValidationError: Unknown role.
            NotFoundError: Target is not a member.
        """
        await self._require(identity, org_id, "manage_members")
        target = await self._require_member(org_id, user_id)
        if is_top_role(target.role):
            raise AuthorizationError("Cannot change owner role")
        canonical = self._grantable_role(role)

        updated = await self._repo.update_membership_role(user_id, org_id, canonical.value)
        if updated is None:
            raise NotFoundError("Member not found")
        logger.info(
            "member_role_updated",
            org_id=str(org_id),
            user_id=str(user_id),
            old_role=target.role,
            new_role=canonical.value,
            updated_by=str(identity.user_id),
        )
        return target, updated

    async def remove_member(
        self, identity: AuthContext, org_id: UUID, user_id: UUID
    ) -> Membership:
        """Remove a member from an organization.

        Returns:
            The removed membership.

        Raises:
            AuthorizationError: Caller may not manage members, or the target is the owner.
            NotFoundError: Target is not a member.
        """
        await self._require(identity, org_id, "manage_members")
        target = await self._require_member(org_id, user_id)
        if is_top_role(target.role):
            raise AuthorizationError("Cannot remove organization owner")

        if not await self._repo.remove_membership(user_id, org_id):
            raise NotFoundError("Member not found")
        logger.info(
            "member_removed",
            org_id=str(org_id),
            user_id=str(user_id),
            removed_by=str(identity.user_id),
        )
        return target

    async def leave_organization(self, identity: AuthContext, org_id: UUID) -> Membership:
        """Remove the caller's own membership.

        Raises:
            AuthorizationError: Caller is not a member, or is the owner.
        """
        membership = await self._repo.get_membership(identity.user_id, org_id)
        if membership is None:
            raise AuthorizationError("Access denied to this organization")
        if is_top_role(membership.role):
            raise AuthorizationError("Owner cannot leave organization. Transfer ownership first.")

        await self._repo.remove_membership(identity.user_id, org_id)
        if identity.organization_id == org_id:
            identity.organization_id = None
        logger.info("member_left", org_id=str(org_id), user_id=str(identity.user_id))
        return membership

    async def _require(self, identity: AuthContext, org_id: UUID, action: str) -> None:
        if not await self._checker.has_permission(identity, org_id, action):
            raise AuthorizationError(f"Missing required permissions: {action}")

    async def _require_org(self, org_id: UUID) -> Organization:
        org = await self._repo.get_org_by_id(org_id)
        if org is None:
            raise NotFoundError("Organization not found")
        return org

    async def _require_member(self, org_id: UUID, user_id: UUID) -> Membership:
        membership = await self._repo.get_membership(user_id, org_id)
        if membership is None:
            raise NotFoundError("Member not found")
        return membership

    @staticmethod
    def _grantable_role(role: str) -> OrgRole:
        canonical = normalize_role(role)
        if canonical is None:
            raise ValidationError(f"Invalid role: {role}")
        if canonical in _UNGRANTABLE_ROLES:
            raise AuthorizationError(f"Role {canonical.value} cannot be granted")
        return canonical
