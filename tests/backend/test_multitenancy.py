from fastapi import status


def _registration(slug):
    return {
        "name": f"Hospital {slug.upper()}",
        "license_number": f"LIC-{slug.upper()}",
        "admin_name": f"Admin {slug.upper()}",
        "admin_email": f"admin@{slug}.example.com",
        "admin_password": "s3cret-pass",
    }


async def _register(client, slug):
    response = await client.post("/api/v1/tenants/register", json=_registration(slug))
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    return {"X-User-ID": body["admin"]["id"]}, body


async def test_registration_returns_tenant_and_admin(client):
    _, body = await _register(client, "a")
    assert body["tenant"]["partition_name"] == "tenant_a"
    assert body["admin"]["role"] == "ADMIN"
    assert "credential_hash" not in body["admin"]

    duplicate = await client.post("/api/v1/tenants/register", json=_registration("a"))
    assert duplicate.status_code == status.HTTP_409_CONFLICT
    assert duplicate.json()["code"] == "duplicate_license"


async def test_multitenancy_isolation_for_patients(client):
    """Data created under one tenant should not be visible to another."""

    headers_a, _ = await _register(client, "a")
    headers_b, _ = await _register(client, "b")

    create_a = await client.post(
        "/api/v1/patients",
        json={"national_id": "111111111111", "full_name": "Patient A"},
        headers=headers_a,
    )
    assert create_a.status_code == status.HTTP_201_CREATED
    patient_a = create_a.json()

    create_b = await client.post(
        "/api/v1/patients",
        json={"national_id": "222222222222", "full_name": "Patient B"},
        headers=headers_b,
    )
    assert create_b.status_code == status.HTTP_201_CREATED
    patient_b = create_b.json()

    list_a = await client.get("/api/v1/patients", headers=headers_a)
    assert list_a.status_code == status.HTTP_200_OK
    assert [p["id"] for p in list_a.json()["patients"]] == [patient_a["id"]]

    list_b = await client.get("/api/v1/patients", headers=headers_b)
    assert [p["id"] for p in list_b.json()["patients"]] == [patient_b["id"]]

    # Cross-tenant get by id is a 404, not a 403: the record does not exist there.
    get_a_as_b = await client.get(f"/api/v1/patients/{patient_a['id']}", headers=headers_b)
    assert get_a_as_b.status_code == status.HTTP_404_NOT_FOUND
    assert get_a_as_b.json() == {"detail": "Patient not found in this hospital", "code": "not_found"}

    update_a_as_b = await client.put(
        f"/api/v1/patients/{patient_a['id']}", json={"full_name": "Hijacked"}, headers=headers_b
    )
    assert update_a_as_b.status_code == status.HTTP_404_NOT_FOUND

    dashboard_a = await client.get("/api/v1/dashboard/summary", headers=headers_a)
    assert dashboard_a.json()["total_patients"] == 1


async def test_requests_need_an_active_known_user(client):
    headers_a, _ = await _register(client, "a")

    missing = await client.get("/api/v1/patients")
    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert missing.json()["code"] == "authentication_required"

    unknown = await client.get("/api/v1/patients", headers={"X-User-ID": "nobody"})
    assert unknown.status_code == status.HTTP_401_UNAUTHORIZED

    nurse = await client.post(
        "/api/v1/users",
        json={"full_name": "Nurse Joy", "email": "joy@a.example.com", "password": "s3cret-pass", "role": "NURSE"},
        headers=headers_a,
    )
    assert nurse.status_code == status.HTTP_201_CREATED
    nurse_headers = {"X-User-ID": nurse.json()["id"]}

    # Nurses may read but not register patients.
    assert (await client.get("/api/v1/patients", headers=nurse_headers)).status_code == status.HTTP_200_OK
    forbidden = await client.post(
        "/api/v1/patients", json={"national_id": "111111111111", "full_name": "X"}, headers=nurse_headers
    )
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert forbidden.json()["code"] == "permission_denied"

    deactivate = await client.patch(
        f"/api/v1/users/{nurse.json()['id']}/status", json={"status": "INACTIVE"}, headers=headers_a
    )
    assert deactivate.status_code == status.HTTP_200_OK
    locked_out = await client.get("/api/v1/patients", headers=nurse_headers)
    assert locked_out.status_code == status.HTTP_401_UNAUTHORIZED
