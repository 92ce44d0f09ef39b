from fastapi import status

from src.clinicnet.config import settings
from src.clinicnet.security import configured_api_keys


def test_configured_api_keys_ignores_blanks():
    assert configured_api_keys(None) == frozenset()
    assert configured_api_keys(" k1, ,k2 ,") == {"k1", "k2"}


async def _register(client):
    response = await client.post(
        "/api/v1/tenants/register",
        json={
            "name": "Hospital A",
            "license_number": "LIC-A",
            "admin_name": "Admin A",
            "admin_email": "admin@a.example.com",
            "admin_password": "s3cret-pass",
        },
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["admin"]["id"]


async def test_api_key_required_when_enabled(client, monkeypatch):
    monkeypatch.setattr(settings, "enable_api_auth", True)
    monkeypatch.setattr(settings, "api_keys", "key-one,key-two")

    # Registration stays public.
    admin_id = await _register(client)

    missing = await client.get("/api/v1/patients", headers={"X-User-ID": admin_id})
    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert missing.json()["code"] == "authentication_required"

    wrong = await client.get("/api/v1/patients", headers={"X-User-ID": admin_id, "X-API-Key": "key-three"})
    assert wrong.status_code == status.HTTP_401_UNAUTHORIZED

    ok = await client.get("/api/v1/patients", headers={"X-User-ID": admin_id, "X-API-Key": "key-two"})
    assert ok.status_code == status.HTTP_200_OK


async def test_enabled_auth_without_keys_refuses_everyone(client, monkeypatch):
    monkeypatch.setattr(settings, "enable_api_auth", True)
    monkeypatch.setattr(settings, "api_keys", None)
    admin_id = await _register(client)

    response = await client.get("/api/v1/patients", headers={"X-User-ID": admin_id, "X-API-Key": ""})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
