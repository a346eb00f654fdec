"""Organization and membership API routes."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, EmailStr, Field

from aurora.adapters.audit import AuditAction, AuditLogEntry, AuditRecorder
from aurora.core.auth.types import Membership, Organization, OrganizationPlan, User
from aurora.core.rbac.roles import OrgRole
from aurora.entrypoints.api.deps import (
    get_audit_recorder,
    get_audit_store,
    get_membership_service,
)
from aurora.entrypoints.api.middleware.jwt_auth import (
    AuthContext,
    CurrentOrganization,
    CurrentUser,
    require_permission,
)
from aurora.services.membership import MembershipService

router = APIRouter(prefix="/organizations", tags=["organizations"])


class CreateOrganizationRequest(BaseModel):
    """Organization creation body."""

    name: str = Field(..., min_length=1, max_length=100)
    plan: OrganizationPlan = OrganizationPlan.FREE


class UpdateOrganizationRequest(BaseModel):
    """Organization update body. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    plan: OrganizationPlan | None = None


class InviteMemberRequest(BaseModel):
    """Member invitation body."""

    email: EmailStr
    role: str = OrgRole.EMPLOYEE.value


class UpdateRoleRequest(BaseModel):
    """Member role change body."""

    role: str


class OrganizationResponse(BaseModel):
    """An organization as seen by one of its members."""

    id: UUID
    name: str
    slug: str
    plan: str
    role: str
    status: str
    created_at: datetime

    @classmethod
    def build(cls, org: Organization, membership: Membership) -> "OrganizationResponse":
        return cls(
            id=org.id,
            name=org.name,
            slug=org.slug,
            plan=org.plan.value,
            role=membership.role,
            status=membership.status.value,
            created_at=org.created_at,
        )


class OrganizationDetailResponse(BaseModel):
    """An organization's own fields."""

    id: UUID
    name: str
    slug: str
    plan: str
    created_by: UUID | None = None
    created_at: datetime

    @classmethod
    def from_org(cls, org: Organization) -> "OrganizationDetailResponse":
        return cls(
            id=org.id,
            name=org.name,
            slug=org.slug,
            plan=org.plan.value,
            created_by=org.created_by,
            created_at=org.created_at,
        )


class MemberResponse(BaseModel):
    """A membership record."""

    user_id: UUID
    organization_id: UUID
    role: str
    status: str
    invited_by: UUID | None = None
    joined_at: datetime | None = None

    @classmethod
    def from_membership(cls, membership: Membership) -> "MemberResponse":
        return cls(
            user_id=membership.user_id,
            organization_id=membership.org_id,
            role=membership.role,
            status=membership.status.value,
            invited_by=membership.invited_by,
            joined_at=membership.joined_at,
        )


class MemberDetailResponse(MemberResponse):
    """A membership with the member's identity."""

    email: str
    name: str | None = None

    @classmethod
    def build(cls, user: User, membership: Membership) -> "MemberDetailResponse":
        return cls(
            email=user.email,
            name=user.name,
            **MemberResponse.from_membership(membership).model_dump(),
        )


class CurrentRoleResponse(BaseModel):
    """The caller's role in the bound organization."""

    organization_id: UUID
    role: str | None
    permissions: list[str]


class AuditLogListResponse(BaseModel):
    """Paginated audit log entries."""

    items: list[AuditLogEntry]
    total: int
    limit: int
    offset: int


MembershipServiceDep = Annotated[MembershipService, Depends(get_membership_service)]
AuditDep = Annotated[AuditRecorder, Depends(get_audit_recorder)]


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    body: CreateOrganizationRequest,
    request: Request,
    auth: CurrentUser,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> OrganizationResponse:
    """Create an organization owned by the caller."""
    org, membership = await service.create_organization(auth, body.name, plan=body.plan.value)
    audit.record_request(
        request,
        AuditAction.ORGANIZATION_CREATED,
        org_id=org.id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="organization",
        entity_id=org.id,
        changes={"after": {"name": org.name, "slug": org.slug, "plan": org.plan.value}},
    )
    return OrganizationResponse.build(org, membership)


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    auth: CurrentUser,
    service: MembershipServiceDep,
) -> list[OrganizationResponse]:
    """List the caller's organizations."""
    rows = await service.list_organizations(auth)
    return [OrganizationResponse.build(org, membership) for org, membership in rows]


@router.get("/current/role", response_model=CurrentRoleResponse)
async def get_current_role(
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
) -> CurrentRoleResponse:
    """Get the caller's role and permissions in the bound organization."""
    role, permissions = await service.get_current_role(auth, org_id)
    return CurrentRoleResponse(
        organization_id=org_id,
        role=role.value if role else None,
        permissions=permissions,
    )


@router.get("/{organization_id}", response_model=OrganizationDetailResponse)
async def get_organization(
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
) -> OrganizationDetailResponse:
    """Get an organization the caller belongs to."""
    org = await service.get_organization(auth, org_id)
    return OrganizationDetailResponse.from_org(org)


@router.put("/{organization_id}", response_model=OrganizationDetailResponse)
async def update_organization(
    body: UpdateOrganizationRequest,
    request: Request,
    auth: Annotated[AuthContext, Depends(require_permission("update_organization"))],
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> OrganizationDetailResponse:
    """Rename the organization or change its plan."""
    before, after = await service.update_organization(
        auth,
        org_id,
        name=body.name,
        plan=body.plan.value if body.plan else None,
    )
    audit.record_request(
        request,
        AuditAction.ORGANIZATION_UPDATED,
        org_id=org_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="organization",
        entity_id=org_id,
        changes={
            "before": {"name": before.name, "plan": before.plan.value},
            "after": {"name": after.name, "plan": after.plan.value},
        },
    )
    return OrganizationDetailResponse.from_org(after)


@router.delete("/{organization_id}", status_code=204)
async def delete_organization(
    request: Request,
    auth: Annotated[AuthContext, Depends(require_permission("delete_organization"))],
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> Response:
    """Soft-delete the organization. Every membership in it ends."""
    org = await service.delete_organization(auth, org_id)
    audit.record_request(
        request,
        AuditAction.ORGANIZATION_DELETED,
        org_id=org_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="organization",
        entity_id=org_id,
        changes={"before": {"name": org.name, "slug": org.slug}},
    )
    return Response(status_code=204)


@router.get("/{organization_id}/members", response_model=list[MemberDetailResponse])
async def list_members(
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
) -> list[MemberDetailResponse]:
    """List the organization's members and pending invitations."""
    rows = await service.list_members(auth, org_id)
    return [MemberDetailResponse.build(user, membership) for user, membership in rows]


@router.post("/{organization_id}/members", response_model=MemberResponse, status_code=201)
async def invite_member(
    body: InviteMemberRequest,
    request: Request,
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> MemberResponse:
    """Invite an existing user into the organization."""
    membership = await service.invite_member(auth, org_id, body.email, body.role)
    audit.record_request(
        request,
        AuditAction.MEMBER_INVITED,
        org_id=org_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="membership",
        entity_id=membership.user_id,
        changes={"after": {"role": membership.role, "status": membership.status.value}},
    )
    return MemberResponse.from_membership(membership)


@router.post("/{organization_id}/accept", response_model=MemberResponse)
async def accept_invitation(
    organization_id: UUID,
    request: Request,
    auth: CurrentUser,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> MemberResponse:
    """Accept a pending invitation. The caller is not yet an active member."""
    membership = await service.accept_invitation(auth, organization_id)
    audit.record_request(
        request,
        AuditAction.MEMBER_JOINED,
        org_id=organization_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="membership",
        entity_id=auth.user_id,
        changes={"before": {"status": "invited"}, "after": {"status": "active"}},
    )
    return MemberResponse.from_membership(membership)


@router.put("/{organization_id}/members/{user_id}", response_model=MemberResponse)
async def update_member_role(
    user_id: UUID,
    body: UpdateRoleRequest,
    request: Request,
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> MemberResponse:
    """Change a member's role."""
    before, after = await service.update_member_role(auth, org_id, user_id, body.role)
    audit.record_request(
        request,
        AuditAction.MEMBER_ROLE_UPDATED,
        org_id=org_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="membership",
        entity_id=user_id,
        changes={"before": {"role": before.role}, "after": {"role": after.role}},
    )
    return MemberResponse.from_membership(after)


@router.delete("/{organization_id}/members/{user_id}", status_code=204)
async def remove_member(
    user_id: UUID,
    request: Request,
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> Response:
    """Remove a member from the organization."""
    removed = await service.remove_member(auth, org_id, user_id)
    audit.record_request(
        request,
        AuditAction.MEMBER_REMOVED,
        org_id=org_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="membership",
        entity_id=user_id,
        changes={"before": {"role": removed.role, "status": removed.status.value}},
    )
    return Response(status_code=204)


@router.post("/{organization_id}/leave", status_code=204)
async def leave_organization(
    request: Request,
    auth: CurrentUser,
    org_id: CurrentOrganization,
    service: MembershipServiceDep,
    audit: AuditDep,
) -> Response:
    """Leave the organization."""
    membership = await service.leave_organization(auth, org_id)
    audit.record_request(
        request,
        AuditAction.MEMBER_LEFT,
        org_id=org_id,
        actor_id=auth.user_id,
        actor_email=auth.email,
        entity_type="membership",
        entity_id=auth.user_id,
        changes={"before": {"role": membership.role}},
    )
    return Response(status_code=204)


@router.get("/{organization_id}/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    auth: Annotated[AuthContext, Depends(require_permission("update_organization"))],
    org_id: CurrentOrganization,
    store: Annotated[Any, Depends(get_audit_store)],
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    action: str | None = None,
) -> AuditLogListResponse:
    """List the organization's audit trail. Organization admins only."""
    items, total = await store.list(org_id, limit=limit, offset=offset, action=action)
    return AuditLogListResponse(items=items, total=total, limit=limit, offset=offset)
