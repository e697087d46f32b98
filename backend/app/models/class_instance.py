"""Class instance model: one bookable occurrence with a capacity counter."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ClassInstance(Base):
    """
    A concrete class occurrence.

    ``booked_count`` is only changed with conditional UPDATEs so that
    ``0 <= booked_count <= capacity`` holds under concurrent bookings; the
    check constraint is the last line of enforcement.
    """

    __tablename__ = "class_instances"

    __table_args__ = (
        CheckConstraint(
            "booked_count >= 0 AND booked_count <= capacity",
            name="ck_class_instances_booked_count",
        ),
        UniqueConstraint("template_id", "starts_at", name="uq_class_instances_template_start"),
        Index("ix_class_instances_tenant_starts_at", "tenant_id", "starts_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id: Mapped[str] = mapped_column(String(26), ForeignKey("tenants.id"), nullable=False)
    template_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("class_templates.id"), nullable=False, index=True
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    template = relationship("ClassTemplate")

    @property
    def remaining_capacity(self) -> int:
        return max(self.capacity - self.booked_count, 0)

    def __repr__(self) -> str:
        return f"<ClassInstance {self.id} {self.starts_at} {self.booked_count}/{self.capacity}>"
