"""Repository for bookings."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import delete, update
from sqlalchemy.orm import Session, joinedload

from app.core.enums import BookingStatus
from app.models.booking import Booking
from app.models.class_instance import ClassInstance
from app.repositories.base_repository import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Booking)

    def get_confirmed_for_user(self, instance_id: str, user_id: str) -> Optional[Booking]:
        return self.find_one_by(
            class_instance_id=instance_id,
            user_id=user_id,
            status=BookingStatus.CONFIRMED.value,
        )

    def list_for_user(self, tenant_id: str, user_id: str, limit: int = 100) -> List[Booking]:
        query = (
            self._build_query()
            .options(joinedload(Booking.class_instance))
            .join(ClassInstance, Booking.class_instance_id == ClassInstance.id)
            .filter(Booking.tenant_id == tenant_id, Booking.user_id == user_id)
            .order_by(ClassInstance.starts_at.desc())
            .limit(limit)
        )
        return self._execute_query(query)

    def count_confirmed_for_instance(self, instance_id: str) -> int:
        return self.count(class_instance_id=instance_id, status=BookingStatus.CONFIRMED.value)

    def list_for_instances(self, instance_ids: Sequence[str]) -> List[Booking]:
        if not instance_ids:
            return []
        query = self._build_query().filter(Booking.class_instance_id.in_(list(instance_ids)))
        return self._execute_query(query)

    def delete_for_instances(self, instance_ids: Sequence[str]) -> int:
        if not instance_ids:
            return 0
        statement = (
            delete(Booking)
            .where(Booking.class_instance_id.in_(list(instance_ids)))
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement)

    def mark_cancelled(
        self, booking_id: str, cancelled_by_id: str, cancelled_by_role: str, now: datetime
    ) -> bool:
        """Flip confirmed -> cancelled once. False when another request got there first."""
        statement = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.CONFIRMED.value)
            .values(
                status=BookingStatus.CANCELLED.value,
                cancelled_at=now,
                cancelled_by_id=cancelled_by_id,
                cancelled_by_role=cancelled_by_role,
            )
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

    def reload(self, booking_id: str) -> Optional[Booking]:
        query = self._build_query().populate_existing().filter(Booking.id == booking_id)
        return next(iter(self._execute_query(query)), None)
