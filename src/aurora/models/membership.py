"""Organization memberships."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import BaseModel, SoftDeleteMixin


class Membership(SoftDeleteMixin, BaseModel):
    """Links a user to an organization with a role.

    ``role`` holds either a canonical role or a legacy alias.
    """

    __tablename__ = "memberships"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    org_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="active")
    invited_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# At most one live membership per (user, organization)
Index(
    "uq_memberships_user_org_live",
    Membership.user_id,
    Membership.org_id,
    unique=True,
    postgresql_where=Membership.deleted_at.is_(None),
)
