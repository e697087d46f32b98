"""
Pass catalog model.

A pass is a purchasable product: price, validity rule and class-credit terms.
Subscriptions snapshot the terms at purchase time, so editing a pass bumps
``version`` and never touches existing subscriptions.
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
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from app.core.enums import PassKind, ValidityType
from app.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PassDefinition(Base):
    __tablename__ = "pass_definitions"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('single', 'multi-pass', 'clipcard', 'unlimited')",
            name="ck_pass_definitions_kind",
        ),
        CheckConstraint("validity_type IN ('days', 'date')", name="ck_pass_definitions_validity"),
        CheckConstraint("price_minor_units >= 0", name="ck_pass_definitions_price"),
        CheckConstraint(
            "class_credit_limit IS NULL OR class_credit_limit >= 1",
            name="ck_pass_definitions_credit_limit",
        ),
        Index("ix_pass_definitions_tenant_active_price", "tenant_id", "is_active", "price_minor_units"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id: Mapped[str] = mapped_column(String(26), ForeignKey("tenants.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    price_minor_units: Mapped[int] = mapped_column(Integer, nullable=False)
    validity_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ValidityType.DAYS.value
    )
    validity_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # NULL means unlimited
    class_credit_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_now_utc
    )

    @property
    def pass_kind(self) -> PassKind:
        return PassKind(self.kind)

    @property
    def is_unlimited(self) -> bool:
        return self.pass_kind.is_unlimited

    def __repr__(self) -> str:
        return f"<PassDefinition {self.name} ({self.kind}, v{self.version})>"
