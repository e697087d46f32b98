"""
Class template and weekly schedule models.

A template describes a recurring (or one-off) class. Concrete, bookable
occurrences are ``ClassInstance`` rows generated from it.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from app.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ClassTemplate(Base):
    __tablename__ = "class_templates"

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_class_templates_capacity"),
        CheckConstraint("duration_minutes >= 1", name="ck_class_templates_duration"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructor_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=True
    )
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    price_minor_units: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    # Recurrence window (inclusive); both NULL for one-off classes
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # One-off classes only
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_now_utc
    )

    schedule: Mapped[list["WeeklyScheduleEntry"]] = relationship(
        "WeeklyScheduleEntry",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="WeeklyScheduleEntry.day_of_week",
    )

    @property
    def is_recurring(self) -> bool:
        return bool(self.schedule)

    def __repr__(self) -> str:
        return f"<ClassTemplate {self.title} cap={self.capacity}>"


class WeeklyScheduleEntry(Base):
    """One weekly slot: a lowercase weekday name and a local start time."""

    __tablename__ = "class_template_schedule"

    __table_args__ = (
        UniqueConstraint(
            "template_id", "day_of_week", "start_time", name="uq_class_template_schedule_slot"
        ),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    template_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("class_templates.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[str] = mapped_column(String(10), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)

    template: Mapped[ClassTemplate] = relationship("ClassTemplate", back_populates="schedule")
