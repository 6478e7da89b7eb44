"""Tests for the auth and settings endpoints."""

from __future__ import annotations

import pytest


@pytest.mark.asyncio
async def test_sign_in_returns_session_and_profile(client, user):
    response = await client.post(
        "/api/v1/auth/sign-in",
        json={"email": "owner@example.com", "password": "secret123"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["id"] == user.id
    assert body["session"]["access_token"]
    assert body["profile"]["full_name"] == "Olivia Owner"
    assert body["error"] is None


@pytest.mark.asyncio
async def test_sign_in_bad_credentials_is_401(client, user):
    response = await client.post(
        "/api/v1/auth/sign-in",
        json={"email": "owner@example.com", "password": "wrong"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid login credentials"


@pytest.mark.asyncio
async def test_sign_up_fills_profile_name(client, backend):
    response = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "new@example.com", "password": "hunter22", "full_name": "Nina New"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["session"] is not None
    assert body["profile"]["full_name"] == "Nina New"
    [row] = [r for r in backend.rows("profiles") if r["email"] == "new@example.com"]
    assert row["full_name"] == "Nina New"


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation_has_no_session(client, auth):
    auth.confirm_email = True

    response = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "later@example.com", "password": "hunter22", "full_name": "Leo Later"},
    )

    assert response.status_code == 201
    assert response.json()["session"] is None
    assert response.json()["profile"] is None


@pytest.mark.asyncio
async def test_sign_up_existing_user_is_rejected(client, user):
    response = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "owner@example.com", "password": "hunter22", "full_name": "Again"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "User already registered"


@pytest.mark.asyncio
async def test_sign_up_short_password_is_422(client):
    response = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "x@example.com", "password": "123", "full_name": "X"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_session_restored_from_token(client, auth_headers, user):
    response = await client.get("/api/v1/auth/session", headers=auth_headers)

    body = response.json()
    assert body["user"]["email"] == "owner@example.com"
    assert body["profile"]["id"] == user.id


@pytest.mark.asyncio
async def test_session_empty_without_token(client):
    response = await client.get("/api/v1/auth/session")

    assert response.status_code == 200
    assert response.json() == {"user": None, "session": None, "profile": None, "error": None}


@pytest.mark.asyncio
async def test_sign_out_revokes_token(client, auth_headers):
    response = await client.post("/api/v1/auth/sign-out", headers=auth_headers)
    assert response.status_code == 204

    after = await client.get("/api/v1/contacts", headers=auth_headers)
    assert after.status_code == 401
    assert after.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_profile_get_and_update(client, auth_headers, backend, user):
    current = await client.get("/api/v1/settings/profile", headers=auth_headers)
    assert current.status_code == 200
    assert current.json()["full_name"] == "Olivia Owner"

    updated = await client.patch(
        "/api/v1/settings/profile",
        json={"job_title": "Head of Sales", "timezone": "Europe/Berlin"},
        headers=auth_headers,
    )

    assert updated.status_code == 200
    assert updated.json()["job_title"] == "Head of Sales"
    assert updated.json()["full_name"] == "Olivia Owner"
    [row] = [r for r in backend.rows("profiles") if r["id"] == user.id]
    assert row["timezone"] == "Europe/Berlin"


@pytest.mark.asyncio
async def test_profile_missing_is_404(client, auth):
    auth.create_profiles = False
    ghost = auth.add_user("ghost@example.com", "pw", full_name="Ghost")
    headers = {"Authorization": f"Bearer {auth.issue_token(ghost)}"}

    response = await client.get("/api/v1/settings/profile", headers=headers)
    assert response.status_code == 404

    update = await client.patch(
        "/api/v1/settings/profile", json={"phone": "555"}, headers=headers
    )
    assert update.status_code == 404


@pytest.mark.asyncio
async def test_profile_update_rejects_unknown_fields(client, auth_headers):
    response = await client.patch(
        "/api/v1/settings/profile", json={"email": "new@example.com"}, headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_auth_outage_is_502(client, auth, auth_headers):
    auth.unavailable = True

    response = await client.get("/api/v1/contacts", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "connection refused"


@pytest.mark.asyncio
async def test_data_pages_do_not_read_profile(client, backend, auth_headers):
    response = await client.get("/api/v1/contacts", headers=auth_headers)

    assert response.status_code == 200
    assert "contacts" in backend.reads
    assert "profiles" not in backend.reads
