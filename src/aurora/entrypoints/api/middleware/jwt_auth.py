"""JWT authentication, tenant binding and permission dependencies.

Per-request order: ``verify_jwt`` establishes identity, ``require_tenant``
binds one organization, ``require_permission`` authorizes the action.
"""

import json
from collections.abc import Callable
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from aurora.core.auth.service import AuthService
from aurora.core.auth.types import AuthContext
from aurora.core.exceptions import AuthenticationError, AuthorizationError
from aurora.core.rbac.checker import PermissionChecker
from aurora.entrypoints.api.deps import (
    get_auth_service,
    get_permission_checker,
    get_tenant_resolver,
)
from aurora.services.tenant import ORGANIZATION_HEADER, ORGANIZATION_PARAM, TenantResolver

logger = structlog.get_logger()

# Use Bearer token authentication
bearer_scheme = HTTPBearer(auto_error=False)


async def verify_jwt(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> AuthContext:
    """Verify the access token and return the caller's identity.

    Args:
        request: The current request.
        service: Auth service used to validate the token and load the user.
        credentials: Bearer token credentials.

    Returns:
        AuthContext with user info, also stored on ``request.state.user``.

    Raises:
        AuthenticationError: If the token is missing, invalid, expired, or its
            user no longer exists or is inactive.
    """
    if not credentials:
        raise AuthenticationError("Missing authentication token")

    user = await service.authenticate(credentials.credentials)

    context = AuthContext(
        user_id=user.id,
        email=user.email,
        is_super_admin=user.is_super_admin,
    )
    request.state.user = context
    logger.debug("jwt_verified", user_id=str(context.user_id))
    return context


async def optional_jwt(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> AuthContext | None:
    """Optionally verify JWT, returning None if not provided or invalid."""
    if not credentials:
        return None
    try:
        return await verify_jwt(request, service, credentials)
    except AuthenticationError:
        return None


async def _body_organization_id(request: Request) -> Any:
    if request.method in ("GET", "HEAD", "DELETE", "OPTIONS"):
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    raw = await request.body()
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    return payload.get(ORGANIZATION_PARAM) if isinstance(payload, dict) else None


async def require_tenant(
    request: Request,
    identity: Annotated[AuthContext, Depends(verify_jwt)],
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
) -> UUID:
    """Bind the request to one organization the caller may act in.

    Returns:
        The organization id, also stored on ``request.state.organization_id``.
    """
    org_id = await resolver.resolve(
        identity,
        path=request.path_params.get(ORGANIZATION_PARAM),
        query=request.query_params.get(ORGANIZATION_PARAM),
        body=await _body_organization_id(request),
        header=request.headers.get(ORGANIZATION_HEADER),
    )
    request.state.organization_id = org_id
    return org_id


def require_permission(*actions: str, require_all: bool = False) -> Callable[..., Any]:
    """Dependency requiring permission for one or more actions in the bound organization.

    Usage:
        @router.delete("/{organization_id}/projects/{id}")
        async def delete_project(
            auth: Annotated[AuthContext, Depends(require_permission("delete_project"))],
        ):
            ...

    Args:
        *actions: Action labels or permission tokens.
        require_all: Require every action instead of any one.

    Returns:
        Dependency function that returns the caller's identity.
    """
    if not actions:
        raise ValueError("require_permission needs at least one action")

    async def permission_checker(
        identity: Annotated[AuthContext, Depends(verify_jwt)],
        org_id: Annotated[UUID, Depends(require_tenant)],
        checker: Annotated[PermissionChecker, Depends(get_permission_checker)],
    ) -> AuthContext:
        if not await checker.has_permission(
            identity, org_id, list(actions), require_all=require_all
        ):
            logger.info(
                "permission_denied",
                user_id=str(identity.user_id),
                org_id=str(org_id),
                actions=list(actions),
            )
            raise AuthorizationError(f"Missing required permissions: {', '.join(actions)}")
        return identity

    return permission_checker


CurrentUser = Annotated[AuthContext, Depends(verify_jwt)]
CurrentOrganization = Annotated[UUID, Depends(require_tenant)]

__all__ = [
    "AuthContext",
    "CurrentOrganization",
    "CurrentUser",
    "bearer_scheme",
    "optional_jwt",
    "require_permission",
    "require_tenant",
    "verify_jwt",
]
