"""Helper utilities for API handlers."""
from __future__ import annotations

from typing import AsyncIterator

from aiohttp import BodyPartReader, web

from artifact_service.services.artifacts import ArtifactService

_ARTIFACT_SERVICE_KEY = web.AppKey("artifact_service", ArtifactService)


def extract_bearer_token(request: web.Request) -> str:
    """Bearer token from the Authorization header, or ``""``.

    A missing header or another scheme is not an error here: the empty token
    is denied by the authorization gate like any unknown token.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return ""
    return auth_header[len("Bearer ") :].strip()


def set_artifact_service(app: web.Application, service: ArtifactService) -> None:
    app[_ARTIFACT_SERVICE_KEY] = service


def get_artifact_service(request: web.Request) -> ArtifactService:
    return request.app[_ARTIFACT_SERVICE_KEY]


async def iter_part(part: BodyPartReader, chunk_size: int) -> AsyncIterator[bytes]:
    """Yield a multipart file part in chunks of at most ``chunk_size``."""
    while True:
        chunk = await part.read_chunk(chunk_size)
        if not chunk:
            return
        yield chunk
