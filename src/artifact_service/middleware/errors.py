"""Translation of domain errors into HTTP responses."""
from __future__ import annotations

import structlog
from aiohttp import web

from artifact_service.core.exceptions import (
    AmbiguousVersionError,
    ArtifactServiceError,
    BadRequestError,
    ForbiddenError,
    InvalidNameError,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[ArtifactServiceError], int]] = [
    (InvalidNameError, 400),
    (BadRequestError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (AmbiguousVersionError, 409),
    (StorageError, 500),
]


def status_for(exc: ArtifactServiceError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def error_response(exc: ArtifactServiceError) -> web.Response:
    status = status_for(exc)
    # ProjectNotFoundError never reaches clients under its own kind
    kind = NotFoundError.kind if isinstance(exc, NotFoundError) else exc.kind
    return web.json_response({"error": kind, "detail": str(exc)}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except ArtifactServiceError as exc:
        if isinstance(exc, StorageError):
            logger.exception("storage failure", error_type=type(exc).__name__)
        return error_response(exc)
