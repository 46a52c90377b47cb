"""
Error taxonomy for authorization and resource handling.

Each error carries the HTTP status and the caller-safe detail. Internal
diagnostics (which permission was missing, which store failed) stay in the
exception attributes and the logs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class IssueTrackerError(Exception):
    """Base class for errors rendered as JSON responses."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: Any = None) -> None:
        self.detail = self.default_detail if detail is None else detail
        super().__init__(str(self.detail))


class Unauthenticated(IssueTrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "You are not logged in!"


class Forbidden(IssueTrackerError):
    """
    Actor is authenticated but lacks a grant.

    `missing` names the permissions (or rule) that failed. It is for logs only;
    the response body always says "Forbidden".
    """

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"

    def __init__(self, missing: Iterable[str] = (), reason: str | None = None) -> None:
        self.missing = tuple(missing)
        self.reason = reason
        super().__init__()


class NotFound(IssueTrackerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"

    @classmethod
    def for_resource(cls, kind: str, resource_id: object) -> NotFound:
        return cls(f"{kind} {resource_id} not found.")


class ValidationFailed(IssueTrackerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request body"

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        super().__init__(errors)


class Conflict(IssueTrackerError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource was modified concurrently; reload and retry."


class StoreUnavailable(IssueTrackerError):
    """Role Store or Resource Store unreachable. Always fails closed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service temporarily unavailable"


async def _handle_issuetracker_error(request: Request, exc: IssueTrackerError) -> JSONResponse:
    if isinstance(exc, Forbidden):
        logger.info(
            "Forbidden path=%s method=%s missing=%s reason=%s",
            request.url.path,
            request.method,
            list(exc.missing),
            exc.reason,
        )
    elif isinstance(exc, StoreUnavailable):
        logger.warning("Store unavailable path=%s method=%s", request.url.path, request.method)

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IssueTrackerError, _handle_issuetracker_error)
