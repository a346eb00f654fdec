"""Organizations (tenants)."""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import BaseModel, SoftDeleteMixin


class Organization(SoftDeleteMixin, BaseModel):
    """A tenant. Every business entity belongs to exactly one."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False)
    plan: Mapped[str] = mapped_column(String(20), nullable=False, server_default="free")
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)


Index(
    "uq_organizations_slug_live",
    Organization.slug,
    unique=True,
    postgresql_where=Organization.deleted_at.is_(None),
)
