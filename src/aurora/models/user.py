"""User accounts."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, false, func, true
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import BaseModel, SoftDeleteMixin


class User(SoftDeleteMixin, BaseModel):
    """A person who can authenticate."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=true())
    is_super_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# One live account per email, compared case-insensitively
Index(
    "uq_users_email_live",
    func.lower(User.email),
    unique=True,
    postgresql_where=User.deleted_at.is_(None),
)
