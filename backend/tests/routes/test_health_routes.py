def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["service"] == "dancehub-api"
    assert body["timestamp"].endswith("Z")


def test_versioned_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_metrics_expose_booking_attempts(
    client, student_headers, student, clipcard_pass, make_subscription, instance
):
    make_subscription(student, clipcard_pass)
    client.post("/api/v1/bookings", headers=student_headers, json={"classInstanceId": instance.id})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "dancehub_booking_attempts_total" in response.text
