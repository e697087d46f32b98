from datetime import timedelta

from app.core.timezone_utils import utc_now
from app.models.class_instance import ClassInstance
from app.models.class_template import ClassTemplate


def _book(client, headers, instance_id, **extra):
    return client.post(
        "/api/v1/bookings", headers=headers, json={"classInstanceId": instance_id, **extra}
    )


def test_book_list_and_cancel(client, db, student_headers, student, clipcard_pass, make_subscription, instance):
    subscription = make_subscription(student, clipcard_pass)

    created = _book(client, student_headers, instance.id)
    assert created.status_code == 201
    booking = created.json()["booking"]
    assert booking["status"] == "confirmed"
    assert booking["subscriptionId"] == subscription.id

    mine = client.get("/api/v1/bookings/me", headers=student_headers).json()["bookings"]
    assert [b["id"] for b in mine] == [booking["id"]]
    assert mine[0]["classTitle"] == "Salsa Level 1"
    assert mine[0]["instanceCancelled"] is False

    cancelled = client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=student_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["booking"]["status"] == "cancelled"
    assert cancelled.json()["booking"]["cancelledByRole"] == "student"

    db.refresh(subscription)
    db.refresh(instance)
    assert subscription.remaining_credits == 10
    assert instance.booked_count == 0


def test_book_without_pass_is_400(client, student_headers, instance):
    response = _book(client, student_headers, instance.id)

    assert response.status_code == 400
    assert response.json()["code"] == "NO_VALID_PASS"


def test_book_full_class_is_409(
    client,
    headers_for,
    tenant,
    student,
    other_student,
    student_headers,
    clipcard_pass,
    make_subscription,
    make_instance,
):
    make_subscription(student, clipcard_pass)
    make_subscription(other_student, clipcard_pass)
    one_seat = make_instance(capacity=1)
    assert _book(client, student_headers, one_seat.id).status_code == 201

    response = _book(client, headers_for(other_student.id, tenant), one_seat.id)

    assert response.status_code == 409
    assert response.json()["code"] == "CLASS_FULL"


def test_book_twice_is_409(client, student_headers, student, clipcard_pass, make_subscription, instance):
    make_subscription(student, clipcard_pass)
    _book(client, student_headers, instance.id)

    response = _book(client, student_headers, instance.id)

    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_BOOKED"


def test_book_cancelled_class_is_409(
    client, admin_headers, student_headers, student, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    client.post(f"/api/v1/classInstances/{instance.id}/cancel", headers=admin_headers)

    response = _book(client, student_headers, instance.id)

    assert response.status_code == 409
    assert response.json()["code"] == "CLASS_CANCELLED"


def test_book_with_explicit_subscription(
    client, student_headers, student, clipcard_pass, unlimited_pass, make_subscription, instance
):
    make_subscription(student, unlimited_pass)
    clipcard = make_subscription(student, clipcard_pass)

    response = _book(client, student_headers, instance.id, subscriptionId=clipcard.id)

    assert response.status_code == 201
    assert response.json()["booking"]["subscriptionId"] == clipcard.id


def test_book_instance_of_other_school_is_404(
    client, db, other_tenant, student_headers, student, clipcard_pass, make_subscription
):
    make_subscription(student, clipcard_pass)
    template = ClassTemplate(
        tenant_id=other_tenant.id, title="Tango", capacity=5, timezone="Europe/Oslo"
    )
    db.add(template)
    db.flush()
    foreign = ClassInstance(
        tenant_id=other_tenant.id,
        template_id=template.id,
        starts_at=utc_now() + timedelta(days=1),
        capacity=5,
    )
    db.add(foreign)
    db.commit()

    response = _book(client, student_headers, foreign.id)

    assert response.status_code == 404


def test_cancel_someone_elses_booking_is_404(
    client, headers_for, tenant, student, other_student, student_headers, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    booking_id = _book(client, student_headers, instance.id).json()["booking"]["id"]

    response = client.post(
        f"/api/v1/bookings/{booking_id}/cancel", headers=headers_for(other_student.id, tenant)
    )

    assert response.status_code == 404


def test_admin_cancels_students_booking(
    client, admin_headers, student_headers, student, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    booking_id = _book(client, student_headers, instance.id).json()["booking"]["id"]

    response = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["booking"]["cancelledByRole"] == "admin"


def test_cancel_twice_returns_same_booking(
    client, student_headers, student, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    booking_id = _book(client, student_headers, instance.id).json()["booking"]["id"]

    first = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=student_headers)
    second = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=student_headers)

    assert second.status_code == 200
    assert second.json()["booking"]["cancelledAt"] == first.json()["booking"]["cancelledAt"]
