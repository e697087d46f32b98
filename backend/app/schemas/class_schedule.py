"""Class template, schedule and instance schemas."""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
import pytz

from ..core.constants import DAYS_OF_WEEK, MAX_GENERATION_WEEKS, MAX_REASON_LENGTH
from ._strict_base import StrictModel, StrictRequestModel


class WeeklyScheduleItem(StrictRequestModel):
    day_of_week: str = Field(..., description="Lowercase weekday name, e.g. monday")
    start_time: time

    @field_validator("day_of_week")
    @classmethod
    def _known_day(cls, value: str) -> str:
        day = value.strip().lower()
        if day not in DAYS_OF_WEEK:
            raise ValueError(f"day_of_week must be one of {', '.join(DAYS_OF_WEEK)}")
        return day


class ClassTemplateCreate(StrictRequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    instructor_id: Optional[str] = None
    capacity: int = Field(..., ge=1, le=1000)
    duration_minutes: int = Field(60, ge=1, le=24 * 60)
    price_minor_units: Optional[int] = Field(None, ge=0)
    timezone: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    starts_at: Optional[datetime] = Field(None, description="One-off classes only")
    weekly_schedule: List[WeeklyScheduleItem] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @model_validator(mode="after")
    def _recurrence_shape(self) -> "ClassTemplateCreate":
        if self.weekly_schedule:
            if self.start_date is None or self.end_date is None:
                raise ValueError("A weekly schedule needs start_date and end_date")
            if self.end_date < self.start_date:
                raise ValueError("end_date must not be before start_date")
            if (self.end_date - self.start_date).days > MAX_GENERATION_WEEKS * 7:
                raise ValueError(
                    f"A weekly schedule may span at most {MAX_GENERATION_WEEKS} weeks"
                )
        return self


class WeeklyScheduleResponse(StrictModel):
    day_of_week: str
    start_time: time


class ClassTemplateResponse(StrictModel):
    id: str
    tenant_id: str
    title: str
    description: Optional[str] = None
    instructor_id: Optional[str] = None
    capacity: int
    duration_minutes: int
    price_minor_units: Optional[int] = None
    timezone: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    starts_at: Optional[datetime] = None
    is_active: bool
    schedule: List[WeeklyScheduleResponse] = Field(default_factory=list)


class ClassInstanceResponse(StrictModel):
    id: str
    template_id: str
    tenant_id: str
    starts_at: datetime
    duration_minutes: int
    capacity: int
    booked_count: int
    remaining_capacity: int
    is_cancelled: bool
    cancellation_reason: Optional[str] = None


class ClassInstanceListResponse(StrictModel):
    instances: List[ClassInstanceResponse]


class GenerateInstancesResponse(StrictModel):
    instances_created: int
    instances: List[ClassInstanceResponse]


class CancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class CancelInstanceResponse(StrictModel):
    cancelled_instances: int
    affected_bookings: int


class CancelSeriesResponse(StrictModel):
    cancelled_instances: int


class DeleteTemplateResponse(StrictModel):
    instances_deleted: int
    bookings_deleted: int
