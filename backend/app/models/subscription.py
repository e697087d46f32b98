"""
Subscription model: a user's purchased pass with live credit and expiry state.

Rows are created exactly once per successful payment (unique
``external_payment_reference``) and never deleted. ``remaining_credits`` and
``is_active`` only move through the conditional updates in
``SubscriptionRepository``.
"""

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
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.core.enums import PassKind
from app.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(Base):
    __tablename__ = "subscriptions"

    __table_args__ = (
        CheckConstraint(
            "remaining_credits IS NULL OR remaining_credits >= 0",
            name="ck_subscriptions_remaining_credits",
        ),
        CheckConstraint(
            "remaining_credits IS NULL OR credit_limit IS NULL OR remaining_credits <= credit_limit",
            name="ck_subscriptions_credit_cap",
        ),
        Index("ix_subscriptions_tenant_user", "tenant_id", "user_id"),
        Index("ix_subscriptions_pass_active", "pass_definition_id", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id: Mapped[str] = mapped_column(String(26), ForeignKey("tenants.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False)
    pass_definition_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("pass_definitions.id"), nullable=False
    )

    # Snapshot of the pass at purchase time
    pass_name: Mapped[str] = mapped_column(String(120), nullable=False)
    pass_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    pass_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    purchase_price_minor_units: Mapped[int] = mapped_column(Integer, nullable=False)
    credit_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    remaining_credits: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deactivation_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)

    payment_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="internal")
    external_payment_reference: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_now_utc
    )

    pass_definition = relationship("PassDefinition")

    @property
    def is_unlimited(self) -> bool:
        return PassKind(self.pass_kind).is_unlimited

    def __repr__(self) -> str:
        return (
            f"<Subscription {self.id} {self.pass_kind} "
            f"credits={self.remaining_credits} active={self.is_active}>"
        )
