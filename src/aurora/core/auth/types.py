"""Auth domain types."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

# Widths of the columns that store client-supplied request headers
MAX_USER_AGENT_LENGTH = 500
MAX_IP_ADDRESS_LENGTH = 64


def clip(value: str | None, limit: int) -> str | None:
    """Cut a client-supplied string down to its column width."""
    if value is None:
        return None
    return value[:limit]


class MembershipStatus(str, Enum):
    """Lifecycle state of an organization membership."""

    ACTIVE = "active"
    INVITED = "invited"
    SUSPENDED = "suspended"


class OrganizationPlan(str, Enum):
    """Organization plan tiers."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class User(BaseModel):
    """User identity record."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: EmailStr
    name: str | None = None
    password_hash: str | None = None
    is_active: bool = True
    is_super_admin: bool = False
    last_login_at: datetime | None = None
    created_at: datetime
    deleted_at: datetime | None = None


class Organization(BaseModel):
    """Organization (tenant) record."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    slug: str
    plan: OrganizationPlan = OrganizationPlan.FREE
    created_by: UUID | None = None
    created_at: datetime
    deleted_at: datetime | None = None


class Membership(BaseModel):
    """A user's membership in an organization.

    ``role`` is kept as the raw stored label, which may be a legacy spelling.
    Use ``aurora.core.rbac.normalize_role`` before reasoning about privilege.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    org_id: UUID
    role: str
    status: MembershipStatus = MembershipStatus.ACTIVE
    invited_by: UUID | None = None
    joined_at: datetime | None = None
    created_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        """Whether the membership currently grants access."""
        return self.status == MembershipStatus.ACTIVE and self.deleted_at is None


class Session(BaseModel):
    """Server-side record of one refresh-token lineage."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    token_id: str
    refresh_token_hash: str
    user_agent: str = "Unknown"
    ip_address: str = "0.0.0.0"
    is_active: bool = True
    last_activity_at: datetime
    expires_at: datetime
    created_at: datetime
    deleted_at: datetime | None = None


class PasswordResetToken(BaseModel):
    """Single-use password reset grant. Only the token's hash is stored."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    token_hash: str
    expires_at: datetime
    used_at: datetime | None = None
    created_at: datetime


class DeviceInfo(BaseModel):
    """Client device descriptor captured at login. Headers are clipped to fit storage."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = "Unknown"
    ip_address: str = "0.0.0.0"

    @field_validator("user_agent", mode="before")
    @classmethod
    def _clip_user_agent(cls, value: str) -> str:
        return clip(value, MAX_USER_AGENT_LENGTH) or "Unknown"

    @field_validator("ip_address", mode="before")
    @classmethod
    def _clip_ip_address(cls, value: str) -> str:
        return clip(value, MAX_IP_ADDRESS_LENGTH) or "0.0.0.0"


class AccessClaims(BaseModel):
    """Access token claims."""

    sub: str
    email: str
    iss: str
    aud: str
    exp: int
    iat: int


class RefreshClaims(AccessClaims):
    """Refresh token claims."""

    token_id: str


class TokenPair(BaseModel):
    """Credential pair returned to the caller once."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


@dataclass
class AuthContext:
    """Identity established for the current request.

    ``organization_id`` is filled in once the tenant has been resolved and is
    reused as the lowest-precedence candidate on later resolutions.
    """

    user_id: UUID
    email: str
    is_super_admin: bool = False
    organization_id: UUID | None = None
