"""Shared response shapes and error translation for the page views.

Read failures keep the page usable: the view returns an empty list with an
``error`` message (HTTP 200). Write failures are surfaced to the form as
HTTP 502 (404 when the row to edit no longer exists). Nothing is retried.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Generic, TypeVar

import structlog
from fastapi import HTTPException, status
from pydantic import BaseModel, Field

from src.crm.core.backend import BackendError
from src.crm.entities.gateways import EntityNotFoundError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    """A page's list, or an empty list plus the read error."""

    items: list[T] = Field(default_factory=list)
    error: str | None = None


def read_failed(page: str, exc: BackendError) -> str:
    """Log a failed page read and return the message shown in the view."""
    logger.error(
        "page.read_failed",
        page=page,
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
    )
    return exc.message


async def run_write(page: str, operation: Awaitable[T]) -> T:
    """Await a write and translate failures into HTTP errors.

    Raises:
        HTTPException(404): If the target row does not exist.
        HTTPException(502): If the backend rejected the write.
    """
    try:
        return await operation
    except EntityNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except BackendError as exc:
        logger.warning(
            "page.write_failed",
            page=page,
            code=exc.code,
            status_code=exc.status_code,
            error=exc.message,
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)
