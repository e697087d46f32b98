# backend/app/models/user.py
"""
User model for the dance school platform.

Authentication lives with the identity provider; this row only carries
what the ledger needs: tenant membership and a single tenant role.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.enums import RoleName
from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A person known to one tenant.

    Attributes:
        id: Identity-provider subject (ULID for locally created users)
        tenant_id: Owning tenant; NULL only for platform operators
        role: One of admin, instructor, student
        is_platform_admin: May act on any tenant
    """

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'instructor', 'student')", name="ck_users_role"),
        Index("ix_users_tenant_email", "tenant_id", "email", unique=True),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("tenants.id"), nullable=True, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=RoleName.STUDENT.value)
    is_platform_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    tenant = relationship("Tenant", back_populates="users")

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
