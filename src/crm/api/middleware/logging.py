"""Structured request logging middleware.

Each request gets a request id (returned as X-Request-ID) and, when a
bearer token is present, the user id from its ``sub`` claim. Both are bound
into structlog's context variables for the duration of the request, so
gateway and service events carry them too. One ``request_completed`` (or
``request_error``) event is written per request with its status and timing.

The token's signature is not checked here; the hosted backend validates it
on every data call.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request, Response
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = structlog.get_logger(__name__)


def _user_id_from_header(auth_header: str | None) -> str | None:
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    try:
        claims = jwt.get_unverified_claims(auth_header[7:])
    except JWTError:
        return None
    return claims.get("sub")


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its request id, user and timing."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        user_id = _user_id_from_header(request.headers.get("Authorization"))
        started = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, user_id=user_id)
        fields = {
            "method": request.method,
            "path": request.url.path,
            "user_id": user_id,
            "request_id": request_id,
        }

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "request_error", status_code=500, duration_ms=_elapsed_ms(started), **fields
            )
            raise
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers["X-Request-ID"] = request_id
        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "request_completed",
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
            **fields,
        )
        return response
