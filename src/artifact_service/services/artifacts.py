"""Artifact service: authorization gate in front of the artifact store."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterable, BinaryIO

import structlog

from artifact_service.core.exceptions import ForbiddenError, NotFoundError, ProjectNotFoundError
from artifact_service.domain.enums import Capability
from artifact_service.domain.models import ArtifactFile, VersionHandle
from artifact_service.domain.names import validate_segment
from artifact_service.repositories.access_lists import TokenListCache
from artifact_service.repositories.artifacts import ArtifactStore, StagedUpload
from artifact_service.services.authorization import AuthorizationGate

logger = structlog.get_logger(__name__)

Content = bytes | AsyncIterable[bytes]


def _abort_staged(stage: asyncio.Future) -> None:
    if not stage.cancelled() and stage.exception() is None:
        stage.result().abort()


class ArtifactService:
    """Public operations consumed by the HTTP layer.

    Names are validated before anything else, then the gate is consulted,
    and only an allowed request reaches the store. Blocking filesystem work
    runs in worker threads.
    """

    def __init__(self, store: ArtifactStore, gate: AuthorizationGate):
        self._store = store
        self._gate = gate

    @classmethod
    def from_state_dir(cls, state_dir: Path, *, fsync_writes: bool = True) -> ArtifactService:
        store = ArtifactStore(state_dir, fsync_writes=fsync_writes)
        gate = AuthorizationGate(TokenListCache(state_dir))
        return cls(store, gate)

    def _check(self, project: str, token: str | None, capability: Capability) -> None:
        validate_segment("project", project)
        try:
            allowed = self._gate.check(project, token, capability)
        except ProjectNotFoundError as exc:
            # Same answer whether the project is absent or merely unreadable
            # to this caller.
            raise NotFoundError(f"project {project!r} not found") from exc
        if not allowed:
            raise ForbiddenError(f"{capability.value} access to {project!r} denied")

    async def authorize(self, project: str, token: str | None, capability: Capability) -> None:
        await asyncio.to_thread(self._check, project, token, capability)

    async def create_version(self, project: str, version: str, token: str | None) -> VersionHandle:
        validate_segment("version", version)
        await self.authorize(project, token, Capability.WRITE)
        return await asyncio.to_thread(self._store.create_or_open_version, project, version)

    async def put_artifact(
        self,
        project: str,
        version: str,
        filename: str,
        token: str | None,
        content: Content,
    ) -> ArtifactFile:
        validate_segment("version", version)
        validate_segment("file", filename)
        await self.authorize(project, token, Capability.WRITE)

        # a cancel while the worker is staging must not orphan its temp file
        stage = asyncio.ensure_future(
            asyncio.to_thread(self._store.stage_file, project, version, filename)
        )
        try:
            upload = await asyncio.shield(stage)
        except asyncio.CancelledError:
            stage.add_done_callback(_abort_staged)
            raise
        try:
            await self._receive(upload, content)
        except BaseException:
            upload.abort()
            raise
        artifact = await asyncio.to_thread(upload.commit)
        logger.info(
            "artifact uploaded",
            project=project,
            version=version,
            filename=filename,
            size=artifact.size,
        )
        return artifact

    @staticmethod
    async def _receive(upload: StagedUpload, content: Content) -> None:
        if isinstance(content, (bytes, bytearray, memoryview)):
            await asyncio.to_thread(upload.write, bytes(content))
            return
        async for chunk in content:
            if chunk:
                await asyncio.to_thread(upload.write, chunk)

    async def get_artifact(
        self, project: str, version: str, filename: str, token: str | None
    ) -> tuple[ArtifactFile, BinaryIO]:
        validate_segment("version", version)
        validate_segment("file", filename)
        await self.authorize(project, token, Capability.READ)
        return await asyncio.to_thread(self._store.open_file, project, version, filename)

    async def list_versions(self, project: str, token: str | None) -> list[str]:
        await self.authorize(project, token, Capability.READ)
        return await asyncio.to_thread(self._store.list_versions, project)

    async def list_files(self, project: str, version: str, token: str | None) -> list[str]:
        validate_segment("version", version)
        await self.authorize(project, token, Capability.READ)
        return await asyncio.to_thread(self._store.list_files, project, version)

    async def resolve_download(self, project: str, version: str, token: str | None) -> str:
        """Filename of a single-file version, for the download redirect."""
        validate_segment("version", version)
        await self.authorize(project, token, Capability.READ)
        return await asyncio.to_thread(self._store.sole_file, project, version)

    async def list_projects(self) -> list[str]:
        return await asyncio.to_thread(self._store.list_projects)
