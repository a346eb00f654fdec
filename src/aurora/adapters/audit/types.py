"""Audit log types."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from aurora.core.auth.types import MAX_IP_ADDRESS_LENGTH, MAX_USER_AGENT_LENGTH, clip


class AuditAction:
    """Action names recorded by the core flows."""

    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"
    USER_LOGOUT_ALL = "user.logout_all"
    USER_PASSWORD_RESET = "user.password_reset"
    ORGANIZATION_CREATED = "organization.created"
    ORGANIZATION_UPDATED = "organization.updated"
    ORGANIZATION_DELETED = "organization.deleted"
    MEMBER_INVITED = "member.invited"
    MEMBER_JOINED = "member.joined"
    MEMBER_ROLE_UPDATED = "member.role_updated"
    MEMBER_REMOVED = "member.removed"
    MEMBER_LEFT = "member.left"


class AuditLogCreate(BaseModel):
    """Request to create an audit log entry. Request headers are clipped to fit storage."""

    model_config = ConfigDict(frozen=True)

    org_id: UUID | None = None
    actor_id: UUID | None = None
    actor_email: str | None = None
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    changes: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @field_validator("user_agent", mode="before")
    @classmethod
    def _clip_user_agent(cls, value: str | None) -> str | None:
        return clip(value, MAX_USER_AGENT_LENGTH)

    @field_validator("ip_address", mode="before")
    @classmethod
    def _clip_ip_address(cls, value: str | None) -> str | None:
        return clip(value, MAX_IP_ADDRESS_LENGTH)


class AuditLogEntry(BaseModel):
    """Audit log entry from database."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    org_id: UUID | None = None
    actor_id: UUID | None = None
    actor_email: str | None = None
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    changes: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime
    expires_at: datetime | None = None
