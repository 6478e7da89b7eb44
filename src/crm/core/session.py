"""Session store: the signed-in user, their tokens and their profile.

SessionStore is an explicit object handed to page views through a FastAPI
dependency. It owns the auth lifecycle (initialize from a token, sign in,
sign up, sign out, profile edits) and publishes every state change to
subscribers registered with ``subscribe``. Out-of-band auth events (token
refresh, sign-out elsewhere) are fed in through ``handle_auth_event``.

Failures are recorded in ``state.error``. Interactive operations also
re-raise so the caller can report them; ``initialize`` never raises.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

import structlog

from src.crm.core.auth import AuthClient, AuthError, AuthSession, AuthUser
from src.crm.core.backend import BackendClient, BackendError
from src.crm.entities.gateways import ProfileGateway
from src.crm.entities.schemas import Profile, ProfileUpdate

logger = structlog.get_logger(__name__)


class AuthEvent(str, Enum):
    """Auth state changes delivered by the auth provider."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the session. A new instance is published on every change."""

    user: AuthUser | None = None
    session: AuthSession | None = None
    profile: Profile | None = None
    is_loading: bool = False
    is_initialized: bool = False
    error: str | None = None
    error_code: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.session is not None


Listener = Callable[[SessionState], None]


class SessionStore:
    """Holds and mutates the current SessionState.

    Args:
        auth: Auth API client.
        backend: Anonymous data API client. The store derives a client bound
            to the user's access token once signed in (see ``backend``).
        profile_trigger_delay: Seconds to wait after sign-up for the backend
            trigger to create the profile row.
    """

    def __init__(
        self,
        auth: AuthClient,
        backend: BackendClient,
        *,
        profile_trigger_delay: float = 0.5,
    ) -> None:
        self._auth = auth
        self._anon_backend = backend
        self._profile_trigger_delay = profile_trigger_delay
        self._state = SessionState()
        self._listeners: list[Listener] = []

    # ── State & subscription ────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def backend(self) -> BackendClient:
        """Data API client acting as the signed-in user (anonymous otherwise)."""
        if self._state.session is None:
            return self._anon_backend
        return self._anon_backend.with_token(self._state.session.access_token)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state changes.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def clear_error(self) -> None:
        self._set(error=None, error_code=None)

    # ── Profile lookup ──────────────────────────────────────────────────────

    async def _fetch_profile(self, user_id: str) -> Profile | None:
        """Load the user's profile; a missing row is not an error."""
        try:
            return await ProfileGateway(self.backend).get(user_id)
        except BackendError as exc:
            logger.error(
                "session.profile_fetch_failed",
                user_id=user_id,
                code=exc.code,
                error=exc.message,
            )
            return None

    # ── Lifecycle ───────────────────────────────────────────────────────────

    async def initialize(
        self, access_token: str | None, *, with_profile: bool = True
    ) -> SessionState:
        """Restore the session from a bearer token, if any.

        With ``with_profile=False`` the profile is left unloaded until
        ``load_profile`` is called.

        Never raises: an invalid token or a backend failure leaves the store
        signed out with ``error`` set.
        """
        self._set(is_loading=True)
        if not access_token:
            self._set(user=None, session=None, profile=None, is_loading=False, is_initialized=True)
            return self._state

        try:
            user = await self._auth.get_user(access_token)
        except AuthError as exc:
            logger.warning("session.initialize_failed", code=exc.code, error=exc.message)
            self._set(
                user=None,
                session=None,
                profile=None,
                is_loading=False,
                is_initialized=True,
                error=exc.message,
                error_code=exc.code,
            )
            return self._state

        self._set(user=user, session=AuthSession(access_token=access_token, user=user))
        profile = await self._fetch_profile(user.id) if with_profile else None
        self._set(profile=profile, is_loading=False, is_initialized=True)
        return self._state

    async def load_profile(self) -> Profile | None:
        """Fetch the signed-in user's profile if it is not loaded yet."""
        if self._state.user is None or self._state.profile is not None:
            return self._state.profile
        profile = await self._fetch_profile(self._state.user.id)
        self._set(profile=profile)
        return profile

    async def sign_in(self, email: str, password: str) -> SessionState:
        """Sign in with email and password.

        Raises:
            AuthError: On rejected credentials. ``state.error`` is set too.
        """
        self._set(is_loading=True, error=None, error_code=None)
        try:
            session = await self._auth.sign_in_with_password(email, password)
        except AuthError as exc:
            self._set(is_loading=False, error=exc.message, error_code=exc.code)
            raise

        self._set(user=session.user, session=session)
        profile = await self._fetch_profile(session.user.id)
        self._set(profile=profile, is_loading=False)
        return self._state

    async def sign_up(self, email: str, password: str, full_name: str) -> SessionState:
        """Register, then wait for the trigger-created profile and fill its name.

        When the backend requires email confirmation no session is returned
        and the profile stays unset.

        Raises:
            AuthError: If registration is rejected.
        """
        self._set(is_loading=True, error=None, error_code=None)
        try:
            user, session = await self._auth.sign_up(email, password, full_name)
        except AuthError as exc:
            self._set(is_loading=False, error=exc.message, error_code=exc.code)
            raise

        self._set(user=user, session=session)
        if session is None:
            self._set(profile=None, is_loading=False)
            return self._state

        await asyncio.sleep(self._profile_trigger_delay)
        profile = await self._fetch_profile(user.id)

        if profile is not None and not profile.full_name and full_name:
            try:
                profile = await ProfileGateway(self.backend).update(
                    user.id, ProfileUpdate(full_name=full_name)
                )
            except (BackendError, ValueError) as exc:
                logger.warning("session.profile_name_fill_failed", user_id=user.id, error=str(exc))
                profile = profile.model_copy(update={"full_name": full_name})

        self._set(profile=profile, is_loading=False)
        return self._state

    async def sign_out(self) -> SessionState:
        """Revoke the current session and clear the state.

        Raises:
            AuthError: If the auth API rejects the sign-out.
        """
        self._set(is_loading=True, error=None, error_code=None)
        if self._state.session is not None:
            try:
                await self._auth.sign_out(self._state.session.access_token)
            except AuthError as exc:
                self._set(is_loading=False, error=exc.message, error_code=exc.code)
                raise

        self._set(user=None, session=None, profile=None, is_loading=False)
        return self._state

    async def update_profile(self, data: ProfileUpdate) -> Profile:
        """Update the signed-in user's own profile.

        Raises:
            AuthError: If nobody is signed in.
            BackendError: If the write fails.
            EntityNotFoundError: If the profile row does not exist.
        """
        user = self._state.user
        if user is None:
            raise AuthError("No user logged in", code="not_authenticated", status_code=401)

        self._set(is_loading=True, error=None, error_code=None)
        try:
            profile = await ProfileGateway(self.backend).update(user.id, data)
        except (BackendError, ValueError) as exc:
            self._set(is_loading=False, error=str(exc))
            raise

        self._set(profile=profile, is_loading=False)
        logger.info("session.profile_updated", user_id=user.id)
        return profile

    # ── Out-of-band events ──────────────────────────────────────────────────

    async def handle_auth_event(self, event: AuthEvent, session: AuthSession | None) -> None:
        """Apply an auth state change pushed by the auth provider."""
        logger.debug("session.auth_event", auth_event=event.value)

        if event == AuthEvent.SIGNED_IN and session is not None:
            self._set(user=session.user, session=session)
            profile = await self._fetch_profile(session.user.id)
            self._set(profile=profile)
        elif event == AuthEvent.SIGNED_OUT:
            self._set(user=None, session=None, profile=None)
        elif event == AuthEvent.TOKEN_REFRESHED and session is not None:
            self._set(session=session, user=session.user)
        elif event == AuthEvent.USER_UPDATED and session is not None:
            self._set(user=session.user, session=session)
