from datetime import date, timedelta

from app.core.constants import MAX_GENERATION_WEEKS
from app.models.class_instance import ClassInstance


def _template_body(**overrides):
    start = date.today() + timedelta(days=1)
    body = {
        "title": "Kizomba Beginners",
        "capacity": 16,
        "durationMinutes": 60,
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(days=13)).isoformat(),
        "weeklySchedule": [{"dayOfWeek": "tuesday", "startTime": "19:00:00"}],
    }
    body.update(overrides)
    return body


def test_admin_creates_template_and_generates_instances(client, admin_headers, tenant):
    created = client.post("/api/v1/classTemplates", headers=admin_headers, json=_template_body())
    assert created.status_code == 201
    template = created.json()
    assert template["timezone"] == tenant.timezone
    assert template["schedule"] == [{"dayOfWeek": "tuesday", "startTime": "19:00:00"}]

    generated = client.post(
        f"/api/v1/classTemplates/{template['id']}/instances:generate", headers=admin_headers
    )
    again = client.post(
        f"/api/v1/classTemplates/{template['id']}/instances:generate", headers=admin_headers
    )

    assert generated.status_code == 200
    assert generated.json()["instancesCreated"] == 2
    assert all(i["remainingCapacity"] == 16 for i in generated.json()["instances"])
    assert again.json()["instancesCreated"] == 0


def test_template_listing(client, admin_headers, class_template):
    response = client.get("/api/v1/classTemplates", headers=admin_headers)

    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == [class_template.id]


def test_bad_weekday_is_422(client, admin_headers):
    body = _template_body(weeklySchedule=[{"dayOfWeek": "funday", "startTime": "19:00:00"}])

    response = client.post("/api/v1/classTemplates", headers=admin_headers, json=body)

    assert response.status_code == 422


def test_template_spanning_too_many_weeks_is_422(client, admin_headers):
    start = date.today() + timedelta(days=1)
    too_far = start + timedelta(weeks=MAX_GENERATION_WEEKS, days=1)
    body = _template_body(endDate=too_far.isoformat())

    response = client.post("/api/v1/classTemplates", headers=admin_headers, json=body)

    assert response.status_code == 422


def test_student_cannot_create_template(client, student_headers):
    response = client.post("/api/v1/classTemplates", headers=student_headers, json=_template_body())

    assert response.status_code == 403


def test_list_upcoming_instances(client, student_headers, make_instance):
    soon = make_instance(starts_in=timedelta(days=1))
    make_instance(starts_in=timedelta(days=3), is_cancelled=True)
    make_instance(starts_in=timedelta(days=20))

    week = client.get("/api/v1/classInstances", headers=student_headers, params={"days": 7})
    with_cancelled = client.get(
        "/api/v1/classInstances",
        headers=student_headers,
        params={"days": 7, "includeCancelled": "true"},
    )

    assert [i["id"] for i in week.json()["instances"]] == [soon.id]
    assert len(with_cancelled.json()["instances"]) == 2


def test_limit_is_capped(client, student_headers):
    response = client.get("/api/v1/classInstances", headers=student_headers, params={"limit": 10000})

    assert response.status_code == 422


def test_cancel_instance_with_reason(client, db, admin_headers, instance):
    first = client.post(
        f"/api/v1/classInstances/{instance.id}/cancel",
        headers=admin_headers,
        json={"reason": "Instructor ill"},
    )
    second = client.post(f"/api/v1/classInstances/{instance.id}/cancel", headers=admin_headers)

    assert first.json() == {"cancelledInstances": 1, "affectedBookings": 0}
    assert second.json()["cancelledInstances"] == 0
    db.refresh(instance)
    assert instance.cancellation_reason == "Instructor ill"


def test_student_cannot_cancel_instance(client, student_headers, instance):
    response = client.post(f"/api/v1/classInstances/{instance.id}/cancel", headers=student_headers)

    assert response.status_code == 403


def test_cancel_series(client, admin_headers, make_instance):
    make_instance(starts_in=timedelta(days=-7))
    anchor = make_instance(starts_in=timedelta(days=1))
    make_instance(starts_in=timedelta(days=8))

    response = client.post(
        f"/api/v1/classInstances/{anchor.id}/cancel-series",
        headers=admin_headers,
        json={"reason": "Term ended"},
    )

    assert response.status_code == 200
    assert response.json() == {"cancelledInstances": 2}


def test_delete_template(client, db, admin_headers, class_template, make_instance):
    make_instance()
    make_instance(starts_in=timedelta(days=9))

    response = client.delete(f"/api/v1/classTemplates/{class_template.id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"instancesDeleted": 2, "bookingsDeleted": 0}
    assert db.query(ClassInstance).count() == 0


def test_unknown_instance_is_404(client, admin_headers):
    response = client.post("/api/v1/classInstances/does-not-exist/cancel", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
