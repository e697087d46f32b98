# backend/app/services/class_schedule_service.py
"""
Class Schedule Service for the dance school platform.

Keeps track of class templates and the concrete instances generated from
them, including per-instance capacity and cancellation state.

Key behaviours:
- Weekly templates expand into one instance per (week, weekday entry)
  inside the template's date range; re-running never duplicates.
- Cancelling an instance or a series never touches bookings; seats and
  credits are reconciled when each booking is cancelled.
- Hard-deleting a template gives credits back for bookings on classes
  that have not started before removing any rows.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    DAYS_OF_WEEK,
    DEFAULT_INSTANCE_CANCEL_REASON,
    DEFAULT_SERIES_CANCEL_REASON,
    MAX_GENERATION_WEEKS,
)
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import ensure_utc, local_to_utc, utc_now
from ..models.class_instance import ClassInstance
from ..models.class_template import ClassTemplate, WeeklyScheduleEntry
from ..repositories.factory import RepositoryFactory
from ..schemas.class_schedule import ClassTemplateCreate
from .base import BaseService
from .subscription_ledger_service import SubscriptionLedgerService

logger = logging.getLogger(__name__)


def has_capacity(instance: ClassInstance) -> bool:
    return not instance.is_cancelled and instance.booked_count < instance.capacity


def weekly_occurrences(
    start_date: date, end_date: date, schedule: List[WeeklyScheduleEntry], tz_name: str
) -> List[datetime]:
    """
    UTC start times for every (week, weekday entry) pair in ``[start_date, end_date]``.

    The range is walked in 7-day steps from the Monday of the week holding
    ``start_date``. Each entry resolves to its weekday within that week, and dates
    outside the range are dropped.

    Raises:
        ValidationException: The range is longer than ``MAX_GENERATION_WEEKS``
    """
    if (end_date - start_date).days > MAX_GENERATION_WEEKS * 7:
        raise ValidationException(
            f"A weekly schedule may span at most {MAX_GENERATION_WEEKS} weeks",
            details={"field": "end_date"},
        )
    occurrences: List[datetime] = []
    week_start = start_date - timedelta(days=start_date.weekday())
    while week_start <= end_date:
        for entry in schedule:
            target = DAYS_OF_WEEK.index(entry.day_of_week)
            day = week_start + timedelta(days=target)
            if start_date <= day <= end_date:
                occurrences.append(local_to_utc(day, entry.start_time, tz_name))
        week_start += timedelta(days=7)
    return sorted(set(occurrences))


@dataclass
class CancelInstanceResult:
    cancelled_instances: int
    affected_bookings: int


@dataclass
class DeleteTemplateResult:
    instances_deleted: int
    bookings_deleted: int


class ClassScheduleService(BaseService):
    """Templates, instance generation and capacity state."""

    def __init__(self, db: Session, ledger: Optional[SubscriptionLedgerService] = None):
        super().__init__(db)
        self.template_repository = RepositoryFactory.create_class_template_repository(db)
        self.instance_repository = RepositoryFactory.create_class_instance_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.ledger = ledger or SubscriptionLedgerService(db)

    def get_template(self, tenant_id: str, template_id: str) -> ClassTemplate:
        template = self.template_repository.get_for_tenant(template_id, tenant_id)
        if template is None:
            raise NotFoundException("Class template not found", details={"template_id": template_id})
        return template

    def get_instance(self, tenant_id: str, instance_id: str) -> ClassInstance:
        instance = self.instance_repository.get_for_tenant(instance_id, tenant_id)
        if instance is None:
            raise NotFoundException(
                "Class instance not found", details={"class_instance_id": instance_id}
            )
        return instance

    @BaseService.measure_operation("create_template")
    def create_template(
        self, tenant_id: str, data: ClassTemplateCreate, default_timezone: Optional[str] = None
    ) -> ClassTemplate:
        if not data.weekly_schedule and data.starts_at is None:
            raise ValidationException(
                "A class needs either a weekly schedule or a start time",
                details={"field": "weekly_schedule"},
            )

        with self.transaction():
            template = self.template_repository.create(
                tenant_id=tenant_id,
                title=data.title,
                description=data.description,
                instructor_id=data.instructor_id,
                capacity=data.capacity,
                duration_minutes=data.duration_minutes,
                price_minor_units=data.price_minor_units,
                timezone=data.timezone or default_timezone or settings.default_timezone,
                start_date=data.start_date,
                end_date=data.end_date,
                starts_at=ensure_utc(data.starts_at) if data.starts_at else None,
                is_active=True,
            )
            for item in data.weekly_schedule:
                template.schedule.append(
                    WeeklyScheduleEntry(day_of_week=item.day_of_week, start_time=item.start_time)
                )
            self.template_repository.flush()

        self.log_operation("create_template", tenant_id=tenant_id, template_id=template.id)
        return template

    @BaseService.measure_operation("generate_instances")
    def generate_instances(self, tenant_id: str, template_id: str) -> List[ClassInstance]:
        """
        Create the instances a template calls for and return only the new ones.

        Start times that already have an instance are skipped.
        """
        template = self.get_template(tenant_id, template_id)

        if template.is_recurring:
            if template.start_date is None or template.end_date is None:
                raise ValidationException("Recurring class is missing its date range")
            starts = weekly_occurrences(
                template.start_date, template.end_date, template.schedule, template.timezone
            )
        elif template.starts_at is not None:
            starts = [ensure_utc(template.starts_at)]
        else:
            raise ValidationException(
                "Class template has neither a weekly schedule nor a start time",
                details={"template_id": template_id},
            )

        existing = {ensure_utc(dt) for dt in self.instance_repository.existing_start_times(template.id)}
        created: List[ClassInstance] = []
        with self.transaction():
            for starts_at in starts:
                if starts_at in existing:
                    continue
                created.append(
                    self.instance_repository.create(
                        tenant_id=tenant_id,
                        template_id=template.id,
                        starts_at=starts_at,
                        duration_minutes=template.duration_minutes,
                        capacity=template.capacity,
                        booked_count=0,
                        is_cancelled=False,
                    )
                )

        self.logger.info(
            "Generated class instances",
            extra={
                "template_id": template.id,
                "created": len(created),
                "skipped": len(starts) - len(created),
            },
        )
        return created

    @BaseService.measure_operation("cancel_instance")
    def cancel_instance(
        self, tenant_id: str, instance_id: str, reason: Optional[str] = None
    ) -> CancelInstanceResult:
        """
        Cancel one instance. Idempotent; the first reason sticks.

        ``affected_bookings`` counts the confirmed bookings still on the class.
        """
        instance = self.get_instance(tenant_id, instance_id)
        with self.transaction():
            changed = self.instance_repository.mark_cancelled(
                instance.id, reason or DEFAULT_INSTANCE_CANCEL_REASON, utc_now()
            )
        affected = self.booking_repository.count_confirmed_for_instance(instance.id)
        if changed:
            self.instance_repository.reload(instance.id)
            self.log_operation(
                "cancel_instance", class_instance_id=instance.id, affected_bookings=affected
            )
        return CancelInstanceResult(cancelled_instances=int(changed), affected_bookings=affected)

    @BaseService.measure_operation("cancel_series")
    def cancel_series(self, tenant_id: str, instance_id: str, reason: Optional[str] = None) -> int:
        """
        Cancel every future, not-yet-cancelled instance of the instance's template.

        Instances that started before now are left alone.
        """
        instance = self.get_instance(tenant_id, instance_id)
        return self.cancel_template_series(tenant_id, instance.template_id, reason)

    def cancel_template_series(
        self, tenant_id: str, template_id: str, reason: Optional[str] = None
    ) -> int:
        template = self.get_template(tenant_id, template_id)
        with self.transaction():
            count = self.instance_repository.cancel_future_for_template(
                template.id, reason or DEFAULT_SERIES_CANCEL_REASON, utc_now()
            )
        self.db.expire_all()
        self.log_operation("cancel_series", template_id=template.id, cancelled_instances=count)
        return count

    def list_upcoming(
        self, tenant_id: str, *, days: int = 30, include_cancelled: bool = False, limit: int = 100
    ) -> List[ClassInstance]:
        now = utc_now()
        return self.instance_repository.list_upcoming(
            tenant_id,
            now,
            until=now + timedelta(days=days),
            include_cancelled=include_cancelled,
            limit=limit,
        )

    @BaseService.measure_operation("delete_template")
    def delete_template(self, tenant_id: str, template_id: str) -> DeleteTemplateResult:
        """
        Hard-delete a template with its instances and bookings.

        Confirmed bookings on classes that have not started get their credit
        back first. Everything happens in one transaction.
        """
        template = self.get_template(tenant_id, template_id)
        now = utc_now()
        instances = self.instance_repository.list_for_template(template.id)
        instance_ids = [instance.id for instance in instances]
        upcoming_ids = {i.id for i in instances if ensure_utc(i.starts_at) >= now}
        bookings = self.booking_repository.list_for_instances(instance_ids)

        with self.transaction():
            restored = 0
            for booking in bookings:
                if booking.is_confirmed and booking.class_instance_id in upcoming_ids:
                    self.ledger.restore_credit(booking.subscription_id, now)
                    restored += 1
            bookings_deleted = self.booking_repository.delete_for_instances(instance_ids)
            instances_deleted = self.instance_repository.delete_for_template(template.id)
            self.template_repository.delete_entity(template)

        self.db.expire_all()
        self.logger.info(
            "Deleted class template",
            extra={
                "template_id": template_id,
                "instances_deleted": instances_deleted,
                "bookings_deleted": bookings_deleted,
                "credits_restored": restored,
            },
        )
        return DeleteTemplateResult(
            instances_deleted=instances_deleted, bookings_deleted=bookings_deleted
        )

    def list_templates(self, tenant_id: str) -> List[ClassTemplate]:
        return self.template_repository.list_for_tenant(tenant_id)
