"""Auth API routes for registration, login, token rotation and sessions."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field

from aurora.adapters.audit import AuditAction, AuditRecorder, get_client_ip
from aurora.core.auth.password import MIN_PASSWORD_LENGTH
from aurora.core.auth.service import AuthService
from aurora.core.auth.types import DeviceInfo, Session, User
from aurora.entrypoints.api.deps import (
    Settings,
    get_audit_recorder,
    get_auth_service,
    get_settings,
)
from aurora.entrypoints.api.middleware.jwt_auth import CurrentUser

router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response models
class RegisterRequest(BaseModel):
    """Registration request body."""

    email: EmailStr
    password: str
    name: str | None = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Token refresh request body."""

    refresh_token: str | None = None


class LogoutRequest(BaseModel):
    """Logout request body. Without a token nothing is revoked server-side."""

    refresh_token: str | None = None


class ChangePasswordRequest(BaseModel):
    """Password change request body."""

    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class PasswordResetRequest(BaseModel):
    """Password reset request body."""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Password reset confirmation body."""

    token: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class PasswordResetResponse(BaseModel):
    """Reset acknowledgement. ``reset_token`` is only filled in development."""

    success: bool = True
    message: str
    reset_token: str | None = None


class PasswordConfirmation(BaseModel):
    """Body for actions that require re-entering the password."""

    password: str


class UserResponse(BaseModel):
    """Public view of a user."""

    id: UUID
    email: str
    name: str | None = None
    is_super_admin: bool = False
    last_login_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            is_super_admin=user.is_super_admin,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


class TokenResponse(BaseModel):
    """Token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse | None = None


class SessionResponse(BaseModel):
    """One of the caller's active sessions."""

    id: UUID
    user_agent: str
    ip_address: str
    last_activity_at: datetime
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            id=session.id,
            user_agent=session.user_agent,
            ip_address=session.ip_address,
            last_activity_at=session.last_activity_at,
            expires_at=session.expires_at,
            created_at=session.created_at,
        )


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    success: bool = True
    message: str


def _device(request: Request) -> DeviceInfo:
    return DeviceInfo(
        user_agent=request.headers.get("user-agent") or "Unknown",
        ip_address=get_client_ip(request) or "0.0.0.0",
    )


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
AuditDep = Annotated[AuditRecorder, Depends(get_audit_recorder)]


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    service: AuthServiceDep,
) -> TokenResponse:
    """Create an account and sign it in."""
    result = await service.register(
        email=body.email,
        password=body.password,
        name=body.name,
        device=_device(request),
    )
    return TokenResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserResponse.from_user(result.user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    service: AuthServiceDep,
    audit: AuditDep,
) -> TokenResponse:
    """Authenticate with email and password.

    Args:
        body: Login credentials.
        request: The current request, for device info.
        service: Auth service.
        audit: Audit recorder.

    Returns:
        Access and refresh tokens with user info.
    """
    result = await service.login(email=body.email, password=body.password, device=_device(request))
    audit.record_request(
        request,
        AuditAction.USER_LOGIN,
        actor_id=result.user.id,
        actor_email=result.user.email,
        entity_type="session",
        entity_id=result.session_id,
    )
    return TokenResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserResponse.from_user(result.user),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, service: AuthServiceDep) -> TokenResponse:
    """Exchange a refresh token for a new token pair. The old one stops working."""
    tokens = await service.refresh(body.refresh_token)
    return TokenResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    body: LogoutRequest,
    request: Request,
    auth: CurrentUser,
    service: AuthServiceDep,
    audit: AuditDep,
) -> MessageResponse:
    """Close the session the presented refresh token belongs to."""
    await service.logout(auth.user_id, body.refresh_token)
    audit.record_request(
        request, AuditAction.USER_LOGOUT, actor_id=auth.user_id, actor_email=auth.email
    )
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    request: Request,
    auth: CurrentUser,
    service: AuthServiceDep,
    audit: AuditDep,
) -> MessageResponse:
    """Close every session of the caller."""
    count = await service.logout_all(auth.user_id)
    audit.record_request(
        request,
        AuditAction.USER_LOGOUT_ALL,
        actor_id=auth.user_id,
        actor_email=auth.email,
        metadata={"sessions_revoked": count},
    )
    return MessageResponse(message=f"Logged out from {count} session(s)")


@router.get("/me", response_model=UserResponse)
async def get_current_user(auth: CurrentUser, service: AuthServiceDep) -> UserResponse:
    """Get the caller's own profile."""
    user = await service.get_current_user(auth.user_id)
    return UserResponse.from_user(user)


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(auth: CurrentUser, service: AuthServiceDep) -> list[SessionResponse]:
    """List the caller's active sessions."""
    sessions = await service.list_sessions(auth.user_id)
    return [SessionResponse.from_session(s) for s in sessions]


@router.delete("/sessions/{session_id}", status_code=204)
async def revoke_session(
    session_id: UUID,
    auth: CurrentUser,
    service: AuthServiceDep,
) -> Response:
    """Close one of the caller's sessions."""
    await service.revoke_session(auth.user_id, session_id)
    return Response(status_code=204)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    auth: CurrentUser,
    service: AuthServiceDep,
) -> MessageResponse:
    """Change the caller's password."""
    await service.change_password(auth.user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/deactivate", response_model=MessageResponse)
async def deactivate_account(
    body: PasswordConfirmation,
    auth: CurrentUser,
    service: AuthServiceDep,
) -> MessageResponse:
    """Deactivate the caller's account and sign out everywhere."""
    await service.deactivate_account(auth.user_id, body.password)
    return MessageResponse(message="Account deactivated")


@router.post("/password-reset/request", response_model=PasswordResetResponse)
async def request_password_reset(
    body: PasswordResetRequest,
    service: AuthServiceDep,
    settings: Annotated[Settings, Depends(get_settings)],
) -> PasswordResetResponse:
    """Issue a password reset token.

    The answer is the same whether or not the email belongs to an account.
    Delivering the token is left to the deployment; in development it is
    returned in the response.
    """
    token = await service.request_password_reset(body.email)
    return PasswordResetResponse(
        message="If an account exists with that email, a password reset link has been sent",
        reset_token=token if settings.is_development else None,
    )


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    body: PasswordResetConfirm,
    request: Request,
    service: AuthServiceDep,
    audit: AuditDep,
) -> MessageResponse:
    """Set a new password with a reset token. Every session is signed out."""
    user = await service.reset_password(body.token, body.new_password)
    audit.record_request(
        request,
        AuditAction.USER_PASSWORD_RESET,
        actor_id=user.id,
        actor_email=user.email,
        entity_type="user",
        entity_id=user.id,
    )
    return MessageResponse(message="Password has been reset successfully")
