"""Tests for AuthClient against mocked auth API responses."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.crm.core.auth import AuthClient, AuthError

AUTH_URL = "https://project.example.co/auth/v1"

USER_BODY = {
    "id": "user-1",
    "email": "ada@example.com",
    "user_metadata": {"full_name": "Ada Lovelace"},
    "aud": "authenticated",
}

SESSION_BODY = {
    "access_token": "access-1",
    "refresh_token": "refresh-1",
    "token_type": "bearer",
    "expires_in": 3600,
    "user": USER_BODY,
}


def _client() -> AuthClient:
    return AuthClient(AUTH_URL, "anon-key")


@pytest.mark.asyncio
async def test_sign_in_with_password_returns_session():
    mock_response = httpx.Response(200, json=SESSION_BODY)
    with patch(
        "httpx.AsyncClient.request", new_callable=AsyncMock, return_value=mock_response
    ) as mock_request:
        session = await _client().sign_in_with_password("ada@example.com", "pw")

    assert session.access_token == "access-1"
    assert session.user.id == "user-1"
    method, url = mock_request.call_args.args
    assert (method, url) == ("POST", f"{AUTH_URL}/token")
    assert mock_request.call_args.kwargs["params"] == {"grant_type": "password"}


@pytest.mark.asyncio
async def test_invalid_credentials_raise_auth_error():
    mock_response = httpx.Response(
        400,
        json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
    )
    with patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=mock_response):
        with pytest.raises(AuthError) as exc_info:
            await _client().sign_in_with_password("ada@example.com", "wrong")

    assert exc_info.value.message == "Invalid login credentials"
    assert exc_info.value.code == "invalid_grant"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_sign_up_sends_full_name_and_returns_session():
    mock_response = httpx.Response(200, json=SESSION_BODY)
    with patch(
        "httpx.AsyncClient.request", new_callable=AsyncMock, return_value=mock_response
    ) as mock_request:
        user, session = await _client().sign_up("ada@example.com", "pw123456", "Ada Lovelace")

    assert user.id == "user-1"
    assert session is not None
    body = mock_request.call_args.kwargs["json"]
    assert body["data"] == {"full_name": "Ada Lovelace"}


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation_has_no_session():
    mock_response = httpx.Response(200, json=USER_BODY)
    with patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=mock_response):
        user, session = await _client().sign_up("ada@example.com", "pw123456", "Ada Lovelace")

    assert user.email == "ada@example.com"
    assert session is None


@pytest.mark.asyncio
async def test_sign_up_error_with_msg_shape():
    mock_response = httpx.Response(
        422,
        json={"code": 422, "error_code": "user_already_exists", "msg": "User already registered"},
    )
    with patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=mock_response):
        with pytest.raises(AuthError) as exc_info:
            await _client().sign_up("ada@example.com", "pw123456", "Ada")

    assert exc_info.value.message == "User already registered"
    assert exc_info.value.code == "user_already_exists"


@pytest.mark.asyncio
async def test_get_user_with_expired_token():
    mock_response = httpx.Response(401, json={"code": 401, "msg": "invalid JWT"})
    with patch("httpx.AsyncClient.request", new_callable=AsyncMock, return_value=mock_response):
        with pytest.raises(AuthError) as exc_info:
            await _client().get_user("expired")

    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "401"


@pytest.mark.asyncio
async def test_network_failure_is_auth_error():
    with patch(
        "httpx.AsyncClient.request",
        new_callable=AsyncMock,
        side_effect=httpx.ReadTimeout("timed out"),
    ):
        with pytest.raises(AuthError) as exc_info:
            await _client().sign_out("access-1")

    assert exc_info.value.code == "network_error"
