"""Authentication endpoints: sign-in, sign-up, sign-out and current session.

Credentials are checked by the hosted auth API; this service only relays
the resulting session and loads the user's profile.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_session_store, require_session
from src.crm.core.auth import AuthError, AuthSession, AuthUser
from src.crm.core.session import SessionState, SessionStore
from src.crm.entities.schemas import Profile

router = APIRouter(prefix="/auth", tags=["auth"])


class SignInRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1)


class SessionResponse(BaseModel):
    """Current user, tokens and profile (all None when signed out)."""

    user: AuthUser | None = None
    session: AuthSession | None = None
    profile: Profile | None = None
    error: str | None = None


def _to_response(state: SessionState) -> SessionResponse:
    return SessionResponse(
        user=state.user,
        session=state.session,
        profile=state.profile,
        error=state.error,
    )


def _auth_failed(exc: AuthError) -> HTTPException:
    if exc.code == "network_error":
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)


@router.post("/sign-in", response_model=SessionResponse)
async def sign_in(
    body: SignInRequest,
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    try:
        state = await store.sign_in(body.email, body.password)
    except AuthError as exc:
        raise _auth_failed(exc)
    return _to_response(state)


@router.post("/sign-up", response_model=SessionResponse, status_code=201)
async def sign_up(
    body: SignUpRequest,
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Register. ``session`` is None while email confirmation is pending."""
    try:
        state = await store.sign_up(body.email, body.password, body.full_name)
    except AuthError as exc:
        raise _auth_failed(exc)
    return _to_response(state)


@router.post("/sign-out", status_code=204)
async def sign_out(store: SessionStore = Depends(require_session)) -> Response:
    try:
        await store.sign_out()
    except AuthError as exc:
        raise _auth_failed(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/session", response_model=SessionResponse)
async def get_session(store: SessionStore = Depends(get_session_store)) -> SessionResponse:
    """Session restored from the bearer token; empty when signed out."""
    await store.load_profile()
    return _to_response(store.state)
