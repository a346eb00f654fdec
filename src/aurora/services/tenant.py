"""Tenant binding: which organization a request operates against."""

from typing import Any
from uuid import UUID

import structlog

from aurora.core.auth.repository import AuthRepository
from aurora.core.auth.types import AuthContext
from aurora.core.exceptions import (
    AuthorizationError,
    NoOrganizationError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

ORGANIZATION_HEADER = "x-organization-id"
ORGANIZATION_PARAM = "organization_id"


def _parse_org_id(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        raise ValidationError("Invalid organization id") from None


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and not value.strip())


class TenantResolver:
    """Resolves and authorizes the organization id of a request.

    Candidates are taken in order: path parameter, query parameter, body
    field, ``x-organization-id`` header, then the id already bound to the
    identity. The first present candidate wins, even if it turns out to be
    invalid.
    """

    def __init__(self, repo: AuthRepository) -> None:
        """Initialize with auth repository.

        Args:
            repo: Repository used to check organizations and memberships.
        """
        self._repo = repo

    async def resolve(
        self,
        identity: AuthContext,
        *,
        path: Any = None,
        query: Any = None,
        body: Any = None,
        header: Any = None,
    ) -> UUID:
        """Bind the identity to exactly one organization.

        Args:
            identity: The authenticated caller. Its ``organization_id`` is
                updated with the result.
            path: Organization id from the route path.
            query: Organization id from the query string.
            body: Organization id from the JSON body.
            header: Value of the ``x-organization-id`` header.

        Returns:
            The resolved organization id.

        Raises:
            ValidationError: Malformed id, or a super admin supplied none.
            NotFoundError: A super admin named an organization that does not exist.
            NoOrganizationError: An ordinary user has no active membership at all.
            AuthorizationError: An ordinary user is not an active member.
        """
        candidate = next(
            (c for c in (path, query, body, header, identity.organization_id) if _present(c)),
            None,
        )

        if identity.is_super_admin:
            if candidate is None:
                raise ValidationError("Organization id is required")
            org_id = _parse_org_id(candidate)
            if await self._repo.get_org_by_id(org_id) is None:
                raise NotFoundError("Organization not found")
            identity.organization_id = org_id
            return org_id

        if candidate is None:
            fallback = await self._repo.get_oldest_active_membership(identity.user_id)
            if fallback is None:
                raise NoOrganizationError()
            org_id = fallback.org_id
        else:
            org_id = _parse_org_id(candidate)

        membership = await self._repo.get_membership(identity.user_id, org_id)
        if membership is None or not membership.is_active:
            logger.info(
                "tenant_access_denied",
                user_id=str(identity.user_id),
                org_id=str(org_id),
            )
            raise AuthorizationError("Access denied to this organization")

        identity.organization_id = org_id
        return org_id
