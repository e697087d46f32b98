"""
Repository for class instances.

``booked_count`` moves only through the guarded UPDATEs below so that
concurrent bookings can never push it past ``capacity`` or below zero.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from app.models.class_instance import ClassInstance
from app.repositories.base_repository import BaseRepository


class ClassInstanceRepository(BaseRepository[ClassInstance]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, ClassInstance)

    def try_increment_booked(self, instance_id: str) -> bool:
        """Claim one seat. False means the class was full or cancelled when the row was written."""
        statement = (
            update(ClassInstance)
            .where(
                ClassInstance.id == instance_id,
                ClassInstance.is_cancelled.is_(False),
                ClassInstance.booked_count < ClassInstance.capacity,
            )
            .values(booked_count=ClassInstance.booked_count + 1)
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

    def decrement_booked(self, instance_id: str) -> bool:
        """Release one seat, flooring at zero. Works on cancelled instances too."""
        statement = (
            update(ClassInstance)
            .where(ClassInstance.id == instance_id, ClassInstance.booked_count > 0)
            .values(booked_count=ClassInstance.booked_count - 1)
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

    def mark_cancelled(self, instance_id: str, reason: str, now: datetime) -> bool:
        """Cancel once; a second call leaves the first reason in place."""
        statement = (
            update(ClassInstance)
            .where(ClassInstance.id == instance_id, ClassInstance.is_cancelled.is_(False))
            .values(is_cancelled=True, cancellation_reason=reason, cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement) == 1

    def cancel_future_for_template(self, template_id: str, reason: str, now: datetime) -> int:
        statement = (
            update(ClassInstance)
            .where(
                ClassInstance.template_id == template_id,
                ClassInstance.is_cancelled.is_(False),
                ClassInstance.starts_at >= now,
            )
            .values(is_cancelled=True, cancellation_reason=reason, cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement)

    def list_for_template(self, template_id: str) -> List[ClassInstance]:
        query = (
            self._build_query()
            .filter(ClassInstance.template_id == template_id)
            .order_by(ClassInstance.starts_at.asc())
        )
        return self._execute_query(query)

    def existing_start_times(self, template_id: str) -> Set[datetime]:
        return {instance.starts_at for instance in self.list_for_template(template_id)}

    def list_upcoming(
        self,
        tenant_id: str,
        now: datetime,
        *,
        until: Optional[datetime] = None,
        include_cancelled: bool = False,
        limit: int = 100,
    ) -> List[ClassInstance]:
        query = self._build_query().filter(
            ClassInstance.tenant_id == tenant_id, ClassInstance.starts_at >= now
        )
        if until is not None:
            query = query.filter(ClassInstance.starts_at <= until)
        if not include_cancelled:
            query = query.filter(ClassInstance.is_cancelled.is_(False))
        return self._execute_query(query.order_by(ClassInstance.starts_at.asc()).limit(limit))

    def delete_for_template(self, template_id: str) -> int:
        statement = (
            delete(ClassInstance)
            .where(ClassInstance.template_id == template_id)
            .execution_options(synchronize_session=False)
        )
        return self._execute_rowcount(statement)

    def reload(self, instance_id: str) -> Optional[ClassInstance]:
        query = self._build_query().populate_existing().filter(ClassInstance.id == instance_id)
        return next(iter(self._execute_query(query)), None)
