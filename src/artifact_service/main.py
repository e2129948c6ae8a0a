"""aiohttp application entrypoint."""
from __future__ import annotations

import argparse
from pathlib import Path

import structlog
from aiohttp import web
from aiohttp_cors import ResourceOptions, setup as cors_setup

from artifact_service.api.router import setup_routes
from artifact_service.api.utils import set_artifact_service
from artifact_service.logging_config import configure_logging
from artifact_service.middleware.errors import error_middleware
from artifact_service.middleware.trace import create_trace_middleware
from artifact_service.services.artifacts import ArtifactService
from artifact_service.settings import settings

logger = structlog.get_logger(__name__)

_EXPOSED_HEADERS = ("X-Trace-Id", "X-Request-Id")


async def healthcheck(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "service": settings.app_name, "env": settings.env})


def create_app() -> web.Application:
    app = web.Application()

    # trace first so it observes the status produced by error_middleware
    app.middlewares.append(create_trace_middleware(settings.app_name))
    app.middlewares.append(error_middleware)

    cors = cors_setup(
        app,
        defaults={
            origin: ResourceOptions(
                allow_credentials=True,
                expose_headers=_EXPOSED_HEADERS,
                allow_headers=("Authorization", "Content-Type", "X-Trace-Id", "X-Request-Id"),
                allow_methods=("GET", "HEAD", "POST", "PUT", "OPTIONS"),
            )
            for origin in settings.cors_allowed_origins
        },
    )

    state_dir = Path(settings.state_dir)
    set_artifact_service(
        app,
        ArtifactService.from_state_dir(state_dir, fsync_writes=settings.fsync_writes),
    )

    app.router.add_get("/health", healthcheck)
    setup_routes(app)

    for route in list(app.router.routes()):
        cors.add(route)

    logger.info("artifact service configured", state_dir=str(state_dir), env=settings.env)
    return app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve versioned artifacts from a state directory.")
    parser.add_argument("--state-dir", type=Path, default=None, help="Root of the project tree.")
    parser.add_argument("--host", default=None, help=f"Bind address (default {settings.host}).")
    parser.add_argument("--port", type=int, default=None, help=f"Bind port (default {settings.port}).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if args.state_dir is not None:
        settings.state_dir = args.state_dir
    if args.host is not None:
        settings.host = args.host
    if args.port is not None:
        settings.port = args.port

    configure_logging(settings.log_level)
    if not Path(settings.state_dir).is_dir():
        raise SystemExit(f"state directory {settings.state_dir} does not exist")

    web.run_app(create_app(), host=settings.host, port=settings.port, access_log=None)


if __name__ == "__main__":
    main()
