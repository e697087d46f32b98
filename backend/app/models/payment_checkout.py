"""Checkout sessions started with a payment provider."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from app.core.enums import CheckoutStatus
from app.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PaymentCheckout(Base):
    """
    Record of an outbound checkout.

    ``reference`` is the provider's identifier (Stripe session id, Vipps order
    id) and becomes the subscription's ``external_payment_reference``.
    """

    __tablename__ = "payment_checkouts"

    __table_args__ = (
        UniqueConstraint("provider", "reference", name="uq_payment_checkouts_provider_reference"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    reference: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(26), ForeignKey("tenants.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    pass_definition_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("pass_definitions.id"), nullable=False
    )
    amount_minor_units: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CheckoutStatus.PENDING.value
    )
    subscription_id: Mapped[str | None] = mapped_column(String(26), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
