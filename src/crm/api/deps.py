"""FastAPI dependency injection for backend clients and the session.

The backend and auth clients live on ``app.state`` (created in the app
lifespan). A SessionStore is built per request and initialized from the
request's bearer token; views that need a signed-in user depend on
``require_session``.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from src.crm.config import Settings, get_settings
from src.crm.core.auth import AuthClient
from src.crm.core.backend import BackendClient
from src.crm.core.session import SessionStore


def get_backend(request: Request) -> BackendClient:
    """Retrieve the anonymous BackendClient from app.state, 503 if not available."""
    backend = getattr(request.app.state, "backend", None)
    if backend is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backend client not initialized",
        )
    return backend


def get_auth_client(request: Request) -> AuthClient:
    """Retrieve the AuthClient from app.state, 503 if not available."""
    auth = getattr(request.app.state, "auth_client", None)
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth client not initialized",
        )
    return auth


def bearer_token(request: Request) -> str | None:
    """Access token from the Authorization header, if present."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


async def get_session_store(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    auth: AuthClient = Depends(get_auth_client),
    settings: Settings = Depends(get_settings),
) -> SessionStore:
    """Build the request's SessionStore, restored from the bearer token.

    The profile is not loaded here; views that show it call
    ``store.load_profile()``.
    """
    store = SessionStore(
        auth,
        backend,
        profile_trigger_delay=settings.PROFILE_TRIGGER_DELAY_SECONDS,
    )
    await store.initialize(bearer_token(request), with_profile=False)
    return store


async def require_session(
    store: SessionStore = Depends(get_session_store),
) -> SessionStore:
    """Session of a signed-in user.

    Raises:
        HTTPException(401): If no valid access token was presented.
        HTTPException(502): If the auth API could not be reached.
    """
    if store.state.error_code == "network_error":
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=store.state.error,
        )
    if not store.state.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=store.state.error or "Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return store

