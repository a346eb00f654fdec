"""Refresh-token sessions."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func, true
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import BaseModel, SoftDeleteMixin


class Session(SoftDeleteMixin, BaseModel):
    """One refresh-token lineage. Only the SHA-256 of the token is stored."""

    __tablename__ = "sessions"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    token_id: Mapped[str] = mapped_column(String(64), nullable=False)
    refresh_token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False, server_default="Unknown")
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, server_default="0.0.0.0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=true())
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


Index("ix_sessions_user_token", Session.user_id, Session.token_id)
Index("ix_sessions_expires_at", Session.expires_at)
