"""Project index endpoint."""
from __future__ import annotations

from aiohttp import web

from artifact_service.api.utils import get_artifact_service
from artifact_service.core.exceptions import NotFoundError
from artifact_service.settings import settings

routes = web.RouteTableDef()


@routes.get("/projects")
async def list_projects(request: web.Request) -> web.Response:
    if not settings.project_index_enabled:
        raise NotFoundError("project index is disabled")
    service = get_artifact_service(request)
    return web.json_response(await service.list_projects())
