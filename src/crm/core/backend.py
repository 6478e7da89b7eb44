"""Async HTTP client for the hosted backend's data API (PostgREST dialect).

Provides BackendClient with the request/response operations the CRM needs:
select (with embedded joins, ordering, equality filters, limits), exact
counts, singleton lookups, insert, update and delete. Each call opens a
short-lived httpx.AsyncClient with a per-operation timeout.

Calls are never retried: a failure is raised as BackendError and recovery
is left to the caller (re-submit or refresh). Row-level authorization is
enforced by the backend from the bearer token, so a client bound to the
signed-in user's access token is obtained with with_token().
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from src.crm.core.monitoring import record_backend_call

logger = structlog.get_logger(__name__)

# Error code returned by the data API when a singleton lookup matches no rows.
NOT_FOUND_CODE = "PGRST116"

_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"


class BackendError(Exception):
    """A failed call to the hosted backend.

    Attributes:
        message: Human-readable error message from the backend.
        code: Backend error code (e.g. "PGRST116", "23505"), or
            "network_error" when the request never got a response.
        status_code: HTTP status code, None for transport failures.
        details: Optional extra detail from the backend.
        hint: Optional hint from the backend.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.hint = hint

    @property
    def is_not_found(self) -> bool:
        """True when a singleton lookup matched no rows."""
        return self.code == NOT_FOUND_CODE


def _error_from_response(response: httpx.Response) -> BackendError:
    """Build a BackendError from a non-2xx data API response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("message") or response.text or f"HTTP {response.status_code}"
    return BackendError(
        message,
        code=body.get("code"),
        status_code=response.status_code,
        details=body.get("details"),
        hint=body.get("hint"),
    )


def _filter_params(filters: dict[str, Any] | None) -> list[tuple[str, str]]:
    """Encode equality filters as data API query parameters."""
    params: list[tuple[str, str]] = []
    for column, value in (filters or {}).items():
        if value is None:
            params.append((column, "is.null"))
        elif isinstance(value, bool):
            params.append((column, f"eq.{str(value).lower()}"))
        else:
            params.append((column, f"eq.{value}"))
    return params


def _select_param(columns: str) -> list[tuple[str, str]] | None:
    """``select`` parameter for a write's returned rows; None for plain ``*``."""
    return None if columns == "*" else [("select", columns)]


def _parse_content_range(header: str | None) -> int:
    """Extract the total from a Content-Range header ("0-9/42" or "*/42")."""
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class BackendClient:
    """Async client for the hosted backend's table API.

    Args:
        base_url: Data API base URL (e.g. https://xyz.supabase.co/rest/v1).
        api_key: Project API key sent on every request.
        access_token: Bearer token of the signed-in user. Defaults to the
            API key (anonymous access).
        timeout_read: Timeout in seconds for select/count calls.
        timeout_mutate: Timeout in seconds for insert/update/delete calls.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout_read: float = 10.0,
        timeout_mutate: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token
        self._timeout_read = timeout_read
        self._timeout_mutate = timeout_mutate

    @property
    def is_authenticated(self) -> bool:
        """True when bound to a user access token."""
        return self._access_token is not None

    def with_token(self, access_token: str) -> BackendClient:
        """Return a copy of this client that acts as the given user."""
        return BackendClient(
            self._base_url,
            self._api_key,
            access_token=access_token,
            timeout_read=self._timeout_read,
            timeout_mutate=self._timeout_mutate,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(headers=self._headers(), timeout=timeout)

    async def _request(
        self,
        method: str,
        table: str,
        *,
        timeout: float,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request and translate failures into BackendError."""
        url = f"{self._base_url}/{table}"
        start = time.perf_counter()
        try:
            async with self._client(timeout) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=headers
                )
        except httpx.HTTPError as exc:
            record_backend_call("rest", table, method, "network_error", time.perf_counter() - start)
            logger.warning(
                "backend.request_failed",
                method=method,
                table=table,
                error=str(exc),
            )
            raise BackendError(str(exc) or exc.__class__.__name__, code="network_error") from exc

        duration = time.perf_counter() - start
        if response.is_error:
            record_backend_call("rest", table, method, "error", duration)
            error = _error_from_response(response)
            logger.debug(
                "backend.error_response",
                method=method,
                table=table,
                status_code=response.status_code,
                code=error.code,
            )
            raise error

        record_backend_call("rest", table, method, "ok", duration)
        return response

    # ── Reads ───────────────────────────────────────────────────────────────

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
        """Select rows from a table.

        Args:
            table: Table name.
            columns: Select expression, may embed related tables via foreign
                key (e.g. "*, company:companies(*)").
            filters: Column -> value equality filters (None matches NULL).
            order: Column to order by.
            ascending: Sort direction for ``order``.
            limit: Maximum number of rows.

        Returns:
            Rows in backend order.
        """
        params = [("select", columns)]
        params.extend(_filter_params(filters))
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))

        response = await self._request(
            "GET", table, timeout=self._timeout_read, params=params
        )
        return response.json()

    async def select_single(
        self,
        table: str,
        *,
        filters: dict[str, Any],
        columns: str = "*",
    ) -> dict[str, Any]:
        """Select exactly one row.

        Raises:
            BackendError: With code NOT_FOUND_CODE when no row matches.
        """
        params = [("select", columns)]
        params.extend(_filter_params(filters))
        response = await self._request(
            "GET",
            table,
            timeout=self._timeout_read,
            params=params,
            headers={"Accept": _OBJECT_MEDIA_TYPE},
        )
        return response.json()

    async def count(self, table: str, *, filters: dict[str, Any] | None = None) -> int:
        """Return the exact number of rows matching the filters."""
        params = [("select", "*")]
        params.extend(_filter_params(filters))
        response = await self._request(
            "HEAD",
            table,
            timeout=self._timeout_read,
            params=params,
            headers={"Prefer": "count=exact"},
        )
        return _parse_content_range(response.headers.get("content-range"))

    # ── Writes ──────────────────────────────────────────────────────────────

    async def insert(
        self, table: str, row: dict[str, Any], *, columns: str = "*"
    ) -> dict[str, Any]:
        """Insert one row and return it as stored.

        ``columns`` selects the returned representation, so embedded joins
        come back with the write itself.
        """
        response = await self._request(
            "POST",
            table,
            timeout=self._timeout_mutate,
            params=_select_param(columns),
            json=row,
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        logger.debug("backend.row_inserted", table=table)
        return rows[0] if isinstance(rows, list) else rows

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: dict[str, Any],
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        """Update rows matching the filters in one request.

        Returns:
            The affected rows in the ``columns`` representation (empty when
            nothing matched).
        """
        params = (_select_param(columns) or []) + _filter_params(filters)
        response = await self._request(
            "PATCH",
            table,
            timeout=self._timeout_mutate,
            params=params,
            json=values,
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        logger.debug(
            "backend.rows_updated",
            table=table,
            fields=sorted(values.keys()),
            count=len(rows),
        )
        return rows

    async def delete(self, table: str, *, filters: dict[str, Any]) -> None:
        """Delete rows matching the filters."""
        await self._request(
            "DELETE",
            table,
            timeout=self._timeout_mutate,
            params=_filter_params(filters),
        )
        logger.debug("backend.rows_deleted", table=table)
