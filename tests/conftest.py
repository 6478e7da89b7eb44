"""Shared test doubles and fixtures.

Provides:
- InMemoryBackend: stands in for BackendClient (equality filters, ordering,
  limits, ``alias:table(*)`` embeds, exact counts, failure injection)
- FakeAuthClient: stands in for AuthClient, with a profile "trigger" that
  creates a profiles row on sign-up
- A signed-in user, seeded pipeline stages and an httpx client over the app
"""

from __future__ import annotations

import copy
import re
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.crm.config import Settings, get_settings
from src.crm.core.auth import AuthError, AuthSession, AuthUser
from src.crm.core.backend import NOT_FOUND_CODE, BackendError

PIPELINE_ID = "00000000-0000-0000-0000-000000000001"

_EMBED = re.compile(r"(\w+):(\w+)\(\*\)")
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


# ── In-Memory Backend ────────────────────────────────────────────────────────


class InMemoryBackend:
    """In-memory BackendClient for testing without the hosted backend."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.writes: list[tuple[str, str, dict[str, Any]]] = []
        self.tokens_seen: list[str] = []
        self.reads: list[str] = []
        self._failures: dict[tuple[str, str | None], BackendError] = {}
        self._clock = 0

    # -- test helpers --

    def _now(self) -> str:
        self._clock += 1
        return (_EPOCH + timedelta(seconds=self._clock)).isoformat()

    def seed(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", self._now())
        stored.setdefault("updated_at", stored["created_at"])
        self.tables.setdefault(table, []).append(stored)
        return stored

    def fail(self, operation: str, table: str | None = None, message: str = "backend unavailable") -> None:
        """Make ``operation`` ("select", "count", "insert", "update", "delete") fail."""
        self._failures[(operation, table)] = BackendError(message, code="503", status_code=503)

    def clear_failures(self) -> None:
        self._failures.clear()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def _check(self, operation: str, table: str) -> None:
        error = self._failures.get((operation, table)) or self._failures.get((operation, None))
        if error is not None:
            raise error

    # -- BackendClient surface --

    @property
    def is_authenticated(self) -> bool:
        return bool(self.tokens_seen)

    def with_token(self, access_token: str) -> InMemoryBackend:
        self.tokens_seen.append(access_token)
        return self

    def _match(self, row: dict[str, Any], filters: dict[str, Any] | None) -> bool:
        for column, value in (filters or {}).items():
            if value is None:
                if row.get(column) is not None:
                    return False
            elif row.get(column) != value:
                return False
        return True

    def _embed(self, row: dict[str, Any], columns: str) -> dict[str, Any]:
        result = copy.deepcopy(row)
        for alias, table in _EMBED.findall(columns):
            fk = row.get(f"{alias}_id")
            related = next((r for r in self.rows(table) if r["id"] == fk), None)
            result[alias] = copy.deepcopy(related)
        return result

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._check("select", table)
        self.reads.append(table)
        rows = [r for r in self.rows(table) if self._match(r, filters)]
        if order:
            present = [r for r in rows if r.get(order) is not None]
            missing = [r for r in rows if r.get(order) is None]
            present.sort(key=lambda r: r[order], reverse=not ascending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return [self._embed(r, columns) for r in rows]

    async def select_single(
        self, table: str, *, filters: dict[str, Any], columns: str = "*"
    ) -> dict[str, Any]:
        self._check("select", table)
        self.reads.append(table)
        rows = [r for r in self.rows(table) if self._match(r, filters)]
        if len(rows) != 1:
            raise BackendError(
                "JSON object requested, multiple (or no) rows returned",
                code=NOT_FOUND_CODE,
                status_code=406,
            )
        return self._embed(rows[0], columns)

    async def count(self, table: str, *, filters: dict[str, Any] | None = None) -> int:
        self._check("count", table)
        return sum(1 for r in self.rows(table) if self._match(r, filters))

    async def insert(
        self, table: str, row: dict[str, Any], *, columns: str = "*"
    ) -> dict[str, Any]:
        self._check("insert", table)
        self.writes.append(("insert", table, dict(row)))
        return self._embed(self.seed(table, row), columns)

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: dict[str, Any],
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        self._check("update", table)
        self.writes.append(("update", table, dict(values)))
        updated = []
        for row in self.rows(table):
            if self._match(row, filters):
                row.update(values)
                row["updated_at"] = self._now()
                updated.append(self._embed(row, columns))
        return updated

    async def delete(self, table: str, *, filters: dict[str, Any]) -> None:
        self._check("delete", table)
        self.writes.append(("delete", table, dict(filters)))
        self.tables[table] = [r for r in self.rows(table) if not self._match(r, filters)]


# ── Fake Auth Client ─────────────────────────────────────────────────────────


class FakeAuthClient:
    """In-memory AuthClient. Sign-up runs a profile "trigger" on the backend."""

    def __init__(self, backend: InMemoryBackend, *, confirm_email: bool = False) -> None:
        self.backend = backend
        self.confirm_email = confirm_email
        self.create_profiles = True
        self.unavailable = False
        self._users: dict[str, tuple[str, AuthUser]] = {}
        self._tokens: dict[str, AuthUser] = {}

    def add_user(self, email: str, password: str, full_name: str | None = None) -> AuthUser:
        user = AuthUser(id=str(uuid.uuid4()), email=email, user_metadata={"full_name": full_name})
        self._users[email] = (password, user)
        if self.create_profiles:
            self.backend.seed(
                "profiles",
                {"id": user.id, "email": email, "full_name": full_name, "timezone": "UTC"},
            )
        return user

    def issue_token(self, user: AuthUser) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self._tokens[token] = user
        return token

    def _session(self, user: AuthUser) -> AuthSession:
        return AuthSession(
            access_token=self.issue_token(user),
            refresh_token=f"refresh-{uuid.uuid4().hex}",
            expires_in=3600,
            user=user,
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        entry = self._users.get(email)
        if entry is None or entry[0] != password:
            raise AuthError("Invalid login credentials", code="invalid_credentials", status_code=400)
        return self._session(entry[1])

    async def sign_up(
        self, email: str, password: str, full_name: str
    ) -> tuple[AuthUser, AuthSession | None]:
        if email in self._users:
            raise AuthError("User already registered", code="user_already_exists", status_code=422)
        # The trigger does not copy full_name; the store fills it in
        user = self.add_user(email, password, full_name=None)
        if self.confirm_email:
            return user, None
        return user, self._session(user)

    async def sign_out(self, access_token: str) -> None:
        self._tokens.pop(access_token, None)

    async def get_user(self, access_token: str) -> AuthUser:
        if self.unavailable:
            raise AuthError("connection refused", code="network_error")
        user = self._tokens.get(access_token)
        if user is None:
            raise AuthError("invalid JWT: token is expired", code="bad_jwt", status_code=401)
        return user


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def auth(backend) -> FakeAuthClient:
    return FakeAuthClient(backend)


@pytest.fixture
def user(auth) -> AuthUser:
    return auth.add_user("owner@example.com", "secret123", full_name="Olivia Owner")


@pytest.fixture
def token(auth, user) -> str:
    return auth.issue_token(user)


@pytest.fixture
def auth_headers(token) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def stages(backend) -> dict[str, dict[str, Any]]:
    """Lead -> Proposal -> Won / Lost in the default pipeline."""
    backend.seed(
        "pipelines",
        {"id": PIPELINE_ID, "name": "Sales Pipeline", "is_default": True},
    )
    specs = [
        ("lead", "Lead", 0, 10, False, False),
        ("proposal", "Proposal", 1, 50, False, False),
        ("won", "Closed Won", 2, 100, True, False),
        ("lost", "Closed Lost", 3, 0, False, True),
    ]
    seeded = {}
    for key, name, position, probability, is_won, is_lost in specs:
        seeded[key] = backend.seed(
            "pipeline_stages",
            {
                "id": f"stage-{key}",
                "pipeline_id": PIPELINE_ID,
                "name": name,
                "position": position,
                "probability": probability,
                "is_won": is_won,
                "is_lost": is_lost,
            },
        )
    return seeded


@pytest.fixture
def test_settings() -> Settings:
    return Settings(PROFILE_TRIGGER_DELAY_SECONDS=0, DEFAULT_PIPELINE_ID=PIPELINE_ID)


@pytest.fixture
def app(backend, auth, test_settings):
    """Full app with the in-memory collaborators on app.state."""
    from src.crm.main import create_app

    application = create_app()
    application.state.backend = backend
    application.state.auth_client = auth
    application.dependency_overrides[get_settings] = lambda: test_settings
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
