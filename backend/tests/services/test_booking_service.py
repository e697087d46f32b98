"""
Booking service tests.

Capacity and credit races are settled by conditional UPDATEs; the
sequential tests here drive those same statements into their losing
branch to show a lost race surfaces as the right error.
"""

from datetime import timedelta

import pytest

from app.core.enums import BookingStatus, RoleName
from app.core.exceptions import (
    AlreadyBookedException,
    ClassCancelledException,
    ClassFullException,
    NoValidPassException,
    NotFoundException,
)
from app.models.booking import Booking
from app.repositories.factory import RepositoryFactory
from app.services.booking_service import Actor, BookingService
from app.services.class_schedule_service import ClassScheduleService


def _student_actor(user) -> Actor:
    return Actor(user_id=user.id, role=RoleName.STUDENT.value)


def test_book_and_cancel_round_trip(db, tenant, student, clipcard_pass, make_subscription, instance):
    subscription = make_subscription(student, clipcard_pass)
    service = BookingService(db)

    booking = service.book(tenant.id, student.id, instance.id)
    db.refresh(instance)
    db.refresh(subscription)

    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.subscription_id == subscription.id
    assert instance.booked_count == 1
    assert subscription.remaining_credits == 9

    cancelled = service.cancel_booking(tenant.id, booking.id, _student_actor(student))
    db.refresh(instance)
    db.refresh(subscription)

    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancelled_by_role == RoleName.STUDENT.value
    assert instance.booked_count == 0
    assert subscription.remaining_credits == 10


def test_book_without_subscription_is_refused(db, tenant, student, instance):
    with pytest.raises(NoValidPassException) as exc:
        BookingService(db).book(tenant.id, student.id, instance.id)

    assert exc.value.code == "NO_VALID_PASS"
    assert db.query(Booking).count() == 0


def test_book_with_exhausted_subscription_is_refused(
    db, tenant, student, clipcard_pass, make_subscription, instance
):
    subscription = make_subscription(student, clipcard_pass, credits=0, is_active=False)

    with pytest.raises(NoValidPassException):
        BookingService(db).book(tenant.id, student.id, instance.id, subscription.id)


def test_book_with_someone_elses_subscription_is_not_found(
    db, tenant, student, other_student, clipcard_pass, make_subscription, instance
):
    theirs = make_subscription(other_student, clipcard_pass)

    with pytest.raises(NotFoundException):
        BookingService(db).book(tenant.id, student.id, instance.id, theirs.id)


def test_book_full_class(
    db, tenant, student, other_student, clipcard_pass, make_subscription, make_instance
):
    make_subscription(student, clipcard_pass)
    second = make_subscription(other_student, clipcard_pass)
    full = make_instance(capacity=1)
    service = BookingService(db)
    service.book(tenant.id, student.id, full.id)

    with pytest.raises(ClassFullException) as exc:
        service.book(tenant.id, other_student.id, full.id)

    db.refresh(full)
    db.refresh(second)
    assert exc.value.code == "CLASS_FULL"
    assert full.booked_count == 1
    assert second.remaining_credits == 10


def test_seat_claim_on_full_instance_fails(db, make_instance):
    full = make_instance(capacity=1, booked_count=1)
    repository = RepositoryFactory.create_class_instance_repository(db)

    assert repository.try_increment_booked(full.id) is False
    assert repository.reload(full.id).booked_count == 1


def test_lost_seat_race_reports_class_full(
    db, tenant, student, clipcard_pass, make_subscription, make_instance, monkeypatch
):
    subscription = make_subscription(student, clipcard_pass)
    contested = make_instance(capacity=1)
    service = BookingService(db)
    # Another request takes the last seat between the capacity check and the claim.
    monkeypatch.setattr(
        service.instance_repository, "try_increment_booked", lambda instance_id: False
    )

    with pytest.raises(ClassFullException):
        service.book(tenant.id, student.id, contested.id)

    db.refresh(subscription)
    assert subscription.remaining_credits == 10
    assert db.query(Booking).count() == 0


def test_book_cancelled_class(db, tenant, student, clipcard_pass, make_subscription, instance):
    make_subscription(student, clipcard_pass)
    ClassScheduleService(db).cancel_instance(tenant.id, instance.id)

    with pytest.raises(ClassCancelledException) as exc:
        BookingService(db).book(tenant.id, student.id, instance.id)

    assert exc.value.code == "CLASS_CANCELLED"


def test_book_same_class_twice(db, tenant, student, clipcard_pass, make_subscription, instance):
    subscription = make_subscription(student, clipcard_pass)
    service = BookingService(db)
    service.book(tenant.id, student.id, instance.id)

    with pytest.raises(AlreadyBookedException):
        service.book(tenant.id, student.id, instance.id)

    db.refresh(subscription)
    assert subscription.remaining_credits == 9


def test_duplicate_booking_slipping_past_the_read_check_is_rolled_back(
    db, tenant, student, clipcard_pass, make_subscription, instance, monkeypatch
):
    subscription = make_subscription(student, clipcard_pass)
    service = BookingService(db)
    service.book(tenant.id, student.id, instance.id)
    # Both requests read "not booked" before either insert committed
    monkeypatch.setattr(
        service.booking_repository, "get_confirmed_for_user", lambda *args: None
    )

    with pytest.raises(AlreadyBookedException):
        service.book(tenant.id, student.id, instance.id)

    db.refresh(instance)
    db.refresh(subscription)
    assert db.query(Booking).filter_by(status=BookingStatus.CONFIRMED.value).count() == 1
    assert instance.booked_count == 1
    assert subscription.remaining_credits == 9


def test_book_again_after_cancelling(db, tenant, student, clipcard_pass, make_subscription, instance):
    make_subscription(student, clipcard_pass)
    service = BookingService(db)
    first = service.book(tenant.id, student.id, instance.id)
    service.cancel_booking(tenant.id, first.id, _student_actor(student))

    second = service.book(tenant.id, student.id, instance.id)

    assert second.id != first.id
    assert second.status == BookingStatus.CONFIRMED.value


def test_single_pass_is_spent_by_one_booking(
    db, tenant, student, single_pass, make_subscription, make_instance
):
    subscription = make_subscription(student, single_pass)
    service = BookingService(db)
    service.book(tenant.id, student.id, make_instance().id)
    db.refresh(subscription)

    assert subscription.is_active is False

    with pytest.raises(NoValidPassException):
        service.book(tenant.id, student.id, make_instance(starts_in=timedelta(days=3)).id)


def test_unlimited_pass_never_runs_out(
    db, tenant, student, unlimited_pass, make_subscription, make_instance
):
    subscription = make_subscription(student, unlimited_pass)
    service = BookingService(db)

    for day in (1, 2, 3):
        service.book(tenant.id, student.id, make_instance(starts_in=timedelta(days=day)).id)

    db.refresh(subscription)
    assert subscription.remaining_credits is None
    assert subscription.is_active is True


def test_cancel_twice_is_a_no_op(db, tenant, student, clipcard_pass, make_subscription, instance):
    subscription = make_subscription(student, clipcard_pass)
    service = BookingService(db)
    booking = service.book(tenant.id, student.id, instance.id)
    actor = _student_actor(student)

    service.cancel_booking(tenant.id, booking.id, actor)
    again = service.cancel_booking(tenant.id, booking.id, actor)
    db.refresh(instance)
    db.refresh(subscription)

    assert again.status == BookingStatus.CANCELLED.value
    assert instance.booked_count == 0
    assert subscription.remaining_credits == 10


def test_cancel_after_losing_race_reports_cancelled_state(
    db, tenant, student, admin_user, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    service = BookingService(db)
    booking = service.book(tenant.id, student.id, instance.id)
    # A concurrent admin cancel flips the row without touching the loaded object
    RepositoryFactory.create_booking_repository(db).mark_cancelled(
        booking.id, admin_user.id, RoleName.ADMIN.value, booking.created_at
    )
    db.commit()
    assert booking.status == BookingStatus.CONFIRMED.value

    result = service.cancel_booking(tenant.id, booking.id, _student_actor(student))

    assert result.status == BookingStatus.CANCELLED.value
    assert result.cancelled_by_role == RoleName.ADMIN.value


def test_cancel_booking_on_cancelled_class_restores_credit(
    db, tenant, student, single_pass, make_subscription, instance
):
    subscription = make_subscription(student, single_pass)
    service = BookingService(db)
    booking = service.book(tenant.id, student.id, instance.id)
    ClassScheduleService(db).cancel_instance(tenant.id, instance.id, "Flooded hall")

    service.cancel_booking(tenant.id, booking.id, _student_actor(student))
    db.refresh(instance)
    db.refresh(subscription)

    assert instance.booked_count == 0
    assert subscription.remaining_credits == 1
    assert subscription.is_active is True


def test_other_student_cannot_cancel(
    db, tenant, student, other_student, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    booking = BookingService(db).book(tenant.id, student.id, instance.id)

    with pytest.raises(NotFoundException):
        BookingService(db).cancel_booking(tenant.id, booking.id, _student_actor(other_student))


def test_admin_can_cancel_any_booking(
    db, tenant, student, admin_user, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    booking = BookingService(db).book(tenant.id, student.id, instance.id)
    admin = Actor(user_id=admin_user.id, role=RoleName.ADMIN.value)

    cancelled = BookingService(db).cancel_booking(tenant.id, booking.id, admin)

    assert cancelled.cancelled_by_role == RoleName.ADMIN.value
    assert cancelled.cancelled_by_id == admin_user.id


def test_booking_is_invisible_from_other_tenant(
    db, tenant, other_tenant, student, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    booking = BookingService(db).book(tenant.id, student.id, instance.id)

    with pytest.raises(NotFoundException):
        BookingService(db).get_booking(other_tenant.id, booking.id)


def test_list_for_user_returns_own_bookings(
    db, tenant, student, other_student, clipcard_pass, make_subscription, make_instance
):
    make_subscription(student, clipcard_pass)
    make_subscription(other_student, clipcard_pass)
    service = BookingService(db)
    mine = service.book(tenant.id, student.id, make_instance().id)
    service.book(tenant.id, other_student.id, make_instance(starts_in=timedelta(days=4)).id)

    assert [b.id for b in service.list_for_user(tenant.id, student.id)] == [mine.id]
