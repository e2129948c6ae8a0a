"""Project, version and file endpoints."""
from __future__ import annotations

from pathlib import Path

from aiohttp import BodyPartReader, web

from artifact_service.api.utils import extract_bearer_token, get_artifact_service, iter_part
from artifact_service.core.exceptions import BadRequestError
from artifact_service.domain.enums import Capability
from artifact_service.domain.names import validate_segment
from artifact_service.settings import settings

routes = web.RouteTableDef()


def _file_url(project: str, version: str, filename: str) -> str:
    return f"/project/{project}/version/{version}/file/{filename}"


@routes.get("/project/{project}/versions")
async def list_versions(request: web.Request) -> web.Response:
    service = get_artifact_service(request)
    versions = await service.list_versions(
        request.match_info["project"],
        extract_bearer_token(request),
    )
    return web.json_response(versions)


@routes.put("/project/{project}/version/{version}")
async def create_version(request: web.Request) -> web.Response:
    service = get_artifact_service(request)
    handle = await service.create_version(
        request.match_info["project"],
        request.match_info["version"],
        extract_bearer_token(request),
    )
    return web.json_response({"project": handle.project, "version": handle.version}, status=201)


@routes.get("/project/{project}/version/{version}/files")
async def list_files(request: web.Request) -> web.Response:
    service = get_artifact_service(request)
    files = await service.list_files(
        request.match_info["project"],
        request.match_info["version"],
        extract_bearer_token(request),
    )
    return web.json_response(files)


@routes.get("/project/{project}/version/{version}/file/{filename}")
async def get_file(request: web.Request) -> web.StreamResponse:
    service = get_artifact_service(request)
    _artifact, fh = await service.get_artifact(
        request.match_info["project"],
        request.match_info["version"],
        request.match_info["filename"],
        extract_bearer_token(request),
    )
    # the handle only proves the file exists; FileResponse serves it, HEAD included
    with fh:
        path = Path(fh.name)
    return web.FileResponse(path, headers={"Content-Type": "application/octet-stream"})


@routes.put("/project/{project}/version/{version}/file/{filename}")
async def put_file(request: web.Request) -> web.Response:
    service = get_artifact_service(request)
    artifact = await service.put_artifact(
        request.match_info["project"],
        request.match_info["version"],
        request.match_info["filename"],
        extract_bearer_token(request),
        request.content.iter_chunked(settings.upload_chunk_size),
    )
    return web.json_response(artifact.model_dump(mode="json"), status=201)


@routes.post("/project/{project}/upload")
async def upload_version(request: web.Request) -> web.Response:
    """Multipart upload of one or more files into ``?version=``."""
    project = request.match_info["project"]
    version = request.rel_url.query.get("version")
    if not version:
        raise BadRequestError("version query parameter is required")
    token = extract_bearer_token(request)

    validate_segment("version", version)
    service = get_artifact_service(request)
    await service.authorize(project, token, Capability.WRITE)

    if not request.content_type.startswith("multipart/"):
        raise BadRequestError("upload must be multipart/form-data")
    reader = await request.multipart()
    uploaded = []
    while (part := await reader.next()) is not None:
        if not isinstance(part, BodyPartReader) or not part.filename:
            continue
        artifact = await service.put_artifact(
            project,
            version,
            part.filename,
            token,
            iter_part(part, settings.upload_chunk_size),
        )
        uploaded.append(artifact.model_dump(mode="json"))

    if not uploaded:
        raise BadRequestError("no files in upload")
    return web.json_response({"project": project, "version": version, "files": uploaded}, status=201)


@routes.get("/project/{project}/version/{version}/download")
async def download_version(request: web.Request) -> web.Response:
    project = request.match_info["project"]
    version = request.match_info["version"]
    service = get_artifact_service(request)
    filename = await service.resolve_download(project, version, extract_bearer_token(request))
    raise web.HTTPFound(_file_url(project, version, filename))
