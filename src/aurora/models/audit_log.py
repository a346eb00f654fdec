"""Immutable audit log for compliance."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import BaseModel


class AuditLog(BaseModel):
    """Immutable audit log entry."""

    __tablename__ = "audit_logs"

    # Who
    org_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    actor_id: Mapped[UUID | None] = mapped_column(nullable=True)  # Null for system actions
    actor_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # What
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # "member.role_updated"
    entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Details
    changes: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # When
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now() + interval '365 days'"),
        index=True,
    )
