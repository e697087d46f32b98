from datetime import timedelta

from app.auth import create_access_token
from app.core.enums import TenantStatus


def test_missing_token_is_401(client, tenant):
    response = client.get("/api/v1/passes", headers={"X-Tenant-Slug": tenant.slug})

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "UNAUTHORIZED"
    assert body["status"] == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_expired_token_is_401(client, tenant, student):
    token = create_access_token({"sub": student.id}, expires_delta=timedelta(minutes=-5))

    response = client.get(
        "/api/v1/passes",
        headers={"Authorization": f"Bearer {token}", "X-Tenant-Slug": tenant.slug},
    )

    assert response.status_code == 401


def test_garbage_token_is_401(client, tenant):
    response = client.get(
        "/api/v1/passes",
        headers={"Authorization": "Bearer not-a-jwt", "X-Tenant-Slug": tenant.slug},
    )

    assert response.status_code == 401


def test_missing_tenant_header_is_400(client, student, tenant, headers_for):
    headers = headers_for(student.id, tenant)
    headers.pop("X-Tenant-Slug")

    response = client.get("/api/v1/passes", headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "TENANT_REQUIRED"


def test_unknown_tenant_is_404(client, student, tenant, headers_for):
    headers = headers_for(student.id, tenant)
    headers["X-Tenant-Slug"] = "no-such-school"

    response = client.get("/api/v1/passes", headers=headers)

    assert response.status_code == 404


def test_suspended_tenant_is_404(client, db, tenant, student_headers):
    tenant.status = TenantStatus.SUSPENDED.value
    db.commit()

    response = client.get("/api/v1/passes", headers=student_headers)

    assert response.status_code == 404


def test_tenant_id_header_is_accepted(client, tenant, student, clipcard_pass):
    token = create_access_token({"sub": student.id})

    response = client.get(
        "/api/v1/passes",
        headers={"Authorization": f"Bearer {token}", "X-Tenant-Id": tenant.id},
    )

    assert response.status_code == 200
    assert [p["id"] for p in response.json()["passes"]] == [clipcard_pass.id]


def test_member_of_another_school_is_403(client, tenant, outsider, headers_for):
    response = client.get("/api/v1/passes", headers=headers_for(outsider.id, tenant))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_platform_admin_may_act_in_any_school(client, tenant, outsider, clipcard_pass, headers_for):
    headers = headers_for(outsider.id, tenant, roles=["platform_admin"])

    listed = client.get("/api/v1/passes", headers=headers)
    created = client.post(
        "/api/v1/passes",
        headers=headers,
        json={
            "name": "Trial week",
            "kind": "single",
            "priceMinorUnits": 10000,
            "validityDays": 7,
        },
    )

    assert listed.status_code == 200
    assert created.status_code == 201
    assert created.json()["tenantId"] == tenant.id


def test_student_cannot_use_admin_routes(client, student_headers):
    response = client.post(
        "/api/v1/passes",
        headers=student_headers,
        json={"name": "Free", "kind": "single", "priceMinorUnits": 0, "validityDays": 1},
    )

    assert response.status_code == 403


def test_requests_carry_a_request_id(client, tenant):
    response = client.get(
        "/api/v1/passes", headers={"X-Tenant-Slug": tenant.slug, "X-Request-ID": "req-123"}
    )

    assert response.headers.get("X-Request-ID") == "req-123"
    assert response.json()["request_id"] == "req-123"
