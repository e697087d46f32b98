"""Tenant (dance school) model."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.core.enums import TenantStatus
from app.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Tenant(Base):
    """An isolated dance-school account. Every other row is scoped to one tenant."""

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    school_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TenantStatus.ACTIVE.value)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="Europe/Oslo")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    users = relationship("User", back_populates="tenant")

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Tenant {self.slug}>"
