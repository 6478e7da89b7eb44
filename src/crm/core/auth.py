"""Async client for the hosted backend's auth API (GoTrue dialect).

Provides:
- AuthUser / AuthSession: the user and token pair returned by the auth API
- AuthError: BackendError subclass for auth failures
- AuthClient: password sign-in, sign-up, sign-out and token introspection
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from src.crm.core.backend import BackendError
from src.crm.core.monitoring import record_backend_call

logger = structlog.get_logger(__name__)


class AuthError(BackendError):
    """Authentication failed or the auth API rejected the request."""


class AuthUser(BaseModel):
    """Authenticated user as reported by the auth API."""

    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class AuthSession(BaseModel):
    """Access/refresh token pair for a signed-in user."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    user: AuthUser


def _auth_error(response: httpx.Response) -> AuthError:
    """Build an AuthError from either of the auth API's error body shapes."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or body.get("error")
        or f"HTTP {response.status_code}"
    )
    code = body.get("error_code") or body.get("error")
    if code is None and body.get("code") is not None:
        code = str(body["code"])
    return AuthError(message, code=code, status_code=response.status_code)


class AuthClient:
    """Client for the auth API.

    Args:
        base_url: Auth API base URL (e.g. https://xyz.supabase.co/auth/v1).
        api_key: Project API key.
        timeout: Request timeout in seconds.
    """

    def __init__(self, base_url: str, api_key: str, *, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _client(self, access_token: str | None = None) -> httpx.AsyncClient:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
            "Content-Type": "application/json",
        }
        return httpx.AsyncClient(headers=headers, timeout=self._timeout)

    async def _call(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        start = time.perf_counter()
        try:
            async with self._client(access_token) as client:
                response = await client.request(
                    method, f"{self._base_url}/{endpoint}", params=params, json=json
                )
        except httpx.HTTPError as exc:
            record_backend_call("auth", endpoint, method, "network_error", time.perf_counter() - start)
            logger.warning("auth.request_failed", endpoint=endpoint, error=str(exc))
            raise AuthError(str(exc) or exc.__class__.__name__, code="network_error") from exc

        duration = time.perf_counter() - start
        if response.is_error:
            record_backend_call("auth", endpoint, method, "error", duration)
            raise _auth_error(response)

        record_backend_call("auth", endpoint, method, "ok", duration)
        return response

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Exchange email and password for a session.

        Raises:
            AuthError: On invalid credentials or transport failure.
        """
        response = await self._call(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = AuthSession.model_validate(response.json())
        logger.info("auth.signed_in", user_id=session.user.id)
        return session

    async def sign_up(
        self, email: str, password: str, full_name: str
    ) -> tuple[AuthUser, AuthSession | None]:
        """Register a new account with ``full_name`` as user metadata.

        Returns:
            The created user and, when the project does not require email
            confirmation, its session (otherwise None).
        """
        response = await self._call(
            "POST",
            "signup",
            json={"email": email, "password": password, "data": {"full_name": full_name}},
        )
        body = response.json()

        if body.get("access_token"):
            session = AuthSession.model_validate(body)
            user = session.user
        else:
            # Confirmation pending: the body is the bare user
            session = None
            user = AuthUser.model_validate(body.get("user") or body)

        logger.info("auth.signed_up", user_id=user.id, has_session=session is not None)
        return user, session

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind ``access_token``."""
        await self._call("POST", "logout", access_token=access_token)
        logger.info("auth.signed_out")

    async def get_user(self, access_token: str) -> AuthUser:
        """Resolve the user that owns ``access_token``.

        Raises:
            AuthError: If the token is expired or invalid.
        """
        response = await self._call("GET", "user", access_token=access_token)
        return AuthUser.model_validate(response.json())
