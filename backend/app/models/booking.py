# backend/app/models/booking.py
"""
Booking model for the dance school platform.

A booking ties one user to one class instance and records which
subscription paid for it, so cancellation can restore the credit to the
same subscription.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.enums import BookingStatus
from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """
    A seat on a class instance.

    Status moves confirmed -> cancelled exactly once. Cancelled bookings are
    kept for history; only hard deletion of a template removes rows. At most
    one confirmed booking exists per (instance, user).
    """

    __tablename__ = "bookings"

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'cancelled')",
            name="ck_bookings_status",
        ),
        Index("ix_bookings_instance_status", "class_instance_id", "status"),
        Index("ix_bookings_tenant_user", "tenant_id", "user_id"),
        Index(
            "uq_bookings_confirmed_instance_user",
            "class_instance_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID())
    )
    tenant_id: Mapped[str] = mapped_column(String(26), ForeignKey("tenants.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    class_instance_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("class_instances.id"), nullable=False
    )
    subscription_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("subscriptions.id"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.CONFIRMED.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancelled_by_role: Mapped[str | None] = mapped_column(String(20), nullable=True)

    class_instance = relationship("ClassInstance")
    subscription = relationship("Subscription")

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    def __repr__(self) -> str:
        return f"<Booking {self.id} instance={self.class_instance_id} {self.status}>"
