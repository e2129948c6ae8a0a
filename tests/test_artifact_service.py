"""ArtifactService tests: authorization in front of every store operation."""
from __future__ import annotations

import asyncio
import os
import threading
from unittest.mock import MagicMock

import pytest

from artifact_service.core.exceptions import (
    ForbiddenError,
    InvalidNameError,
    NotFoundError,
    ProjectNotFoundError,
)
from artifact_service.domain.enums import Capability
from artifact_service.repositories.artifacts import TEMP_PREFIX
from artifact_service.services.artifacts import ArtifactService
from artifact_service.services.authorization import AuthorizationGate

from conftest import write_list


async def _read(service: ArtifactService, project, version, filename, token) -> bytes:
    _artifact, fh = await service.get_artifact(project, version, filename, token)
    with fh:
        return fh.read()


async def test_release_scenario(artifact_service, make_project, state_dir):
    make_project("acme", readers=[], writers=["tok-w"])

    artifact = await artifact_service.put_artifact("acme", "v1", "app.bin", "tok-w", b"hello")
    assert artifact.size == 5

    with pytest.raises(ForbiddenError):
        await artifact_service.get_artifact("acme", "v1", "app.bin", "tok-w")

    write_list(state_dir, "acme", "readers.txt", ["tok-w"])
    assert await _read(artifact_service, "acme", "v1", "app.bin", "tok-w") == b"hello"


async def test_revoked_writer_is_forbidden_without_restart(artifact_service, make_project, state_dir):
    make_project("acme", writers=["tok-w", "tok-other"])
    await artifact_service.put_artifact("acme", "v1", "a.bin", "tok-w", b"1")

    path = write_list(state_dir, "acme", "writers.txt", ["tok-other"])
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))

    with pytest.raises(ForbiddenError):
        await artifact_service.put_artifact("acme", "v1", "b.bin", "tok-w", b"2")


async def test_denied_request_never_touches_store(make_project, token_lists):
    make_project("acme", readers=["tok-r"], writers=[])
    store = MagicMock()
    service = ArtifactService(store, AuthorizationGate(token_lists))

    with pytest.raises(ForbiddenError):
        await service.put_artifact("acme", "v1", "app.bin", "tok-r", b"x")
    with pytest.raises(ForbiddenError):
        await service.list_versions("acme", "tok-w")
    with pytest.raises(ForbiddenError):
        await service.create_version("acme", "v1", "")
    assert store.mock_calls == []


async def test_missing_project_reported_as_not_found(artifact_service):
    with pytest.raises(NotFoundError) as excinfo:
        await artifact_service.list_versions("ghost", "tok")
    assert not isinstance(excinfo.value, ProjectNotFoundError)


async def test_empty_token_is_forbidden_even_for_missing_project(artifact_service):
    with pytest.raises(ForbiddenError):
        await artifact_service.list_versions("ghost", "")


@pytest.mark.parametrize(
    ("project", "version", "filename"),
    [("..", "v1", "app.bin"), ("acme", "../v1", "app.bin"), ("acme", "v1", ""), ("acme", "v1", "a/b")],
)
async def test_invalid_names_rejected_before_authorization(project, version, filename):
    store = MagicMock()
    gate = MagicMock()
    service = ArtifactService(store, gate)

    with pytest.raises(InvalidNameError):
        await service.put_artifact(project, version, filename, "tok", b"x")
    with pytest.raises(InvalidNameError):
        await service.get_artifact(project, version, filename, "tok")
    gate.check.assert_not_called()
    assert store.mock_calls == []


async def test_listing_operations(artifact_service, make_project):
    make_project("acme", readers=["tok-r"], writers=["tok-w"])
    for version, filename in [("v2", "b.bin"), ("v1", "z.bin"), ("v1", "a.bin"), ("v1", "a.bin")]:
        await artifact_service.put_artifact("acme", version, filename, "tok-w", b"data")

    assert await artifact_service.list_versions("acme", "tok-r") == ["v1", "v2"]
    assert await artifact_service.list_files("acme", "v1", "tok-r") == ["a.bin", "z.bin"]
    with pytest.raises(NotFoundError):
        await artifact_service.list_files("acme", "v3", "tok-r")
    with pytest.raises(ForbiddenError):
        await artifact_service.list_files("acme", "v1", "tok-w")


async def test_put_from_async_chunks(artifact_service, make_project):
    make_project("acme", readers=["tok"], writers=["tok"])

    async def body():
        for chunk in (b"rel", b"", b"ease"):
            yield chunk

    artifact = await artifact_service.put_artifact("acme", "v1", "app.bin", "tok", body())
    assert artifact.size == 7
    assert await _read(artifact_service, "acme", "v1", "app.bin", "tok") == b"release"


async def test_client_disconnect_mid_stream_keeps_prior_content(artifact_service, make_project, state_dir):
    make_project("acme", readers=["tok"], writers=["tok"])
    await artifact_service.put_artifact("acme", "v1", "app.bin", "tok", b"prior")

    async def body():
        yield b"new partial"
        raise ConnectionResetError("client disconnected")

    with pytest.raises(ConnectionResetError):
        await artifact_service.put_artifact("acme", "v1", "app.bin", "tok", body())

    assert await _read(artifact_service, "acme", "v1", "app.bin", "tok") == b"prior"
    files_dir = state_dir / "acme" / "versions" / "v1" / "files"
    assert [n for n in os.listdir(files_dir) if n.startswith(TEMP_PREFIX)] == []


async def test_cancelled_upload_cleans_up(artifact_service, make_project, state_dir):
    make_project("acme", readers=["tok"], writers=["tok"])
    first_chunk_written = asyncio.Event()

    async def body():
        yield b"started"
        first_chunk_written.set()
        await asyncio.Event().wait()
        yield b"never"

    task = asyncio.create_task(artifact_service.put_artifact("acme", "v1", "app.bin", "tok", body()))
    await asyncio.wait_for(first_chunk_written.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    files_dir = state_dir / "acme" / "versions" / "v1" / "files"
    assert os.listdir(files_dir) == []
    with pytest.raises(NotFoundError):
        await artifact_service.get_artifact("acme", "v1", "app.bin", "tok")
    # the version lock was never left held
    assert not artifact_service._store.version_lock("acme", "v1").locked()


async def test_cancel_while_staging_leaves_no_temp_file(
    artifact_service, make_project, state_dir, monkeypatch
):
    make_project("acme", readers=["tok"], writers=["tok"])
    store = artifact_service._store
    real_stage_file = store.stage_file
    staged = threading.Event()
    release = threading.Event()

    def slow_stage_file(*args):
        upload = real_stage_file(*args)
        staged.set()
        release.wait(5)
        return upload

    monkeypatch.setattr(store, "stage_file", slow_stage_file)
    task = asyncio.create_task(artifact_service.put_artifact("acme", "v1", "app.bin", "tok", b"data"))
    assert await asyncio.to_thread(staged.wait, 5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    release.set()

    files_dir = state_dir / "acme" / "versions" / "v1" / "files"
    for _ in range(500):
        if not any(name.startswith(TEMP_PREFIX) for name in os.listdir(files_dir)):
            break
        await asyncio.sleep(0.01)
    assert os.listdir(files_dir) == []


async def test_concurrent_async_puts_same_version(artifact_service, make_project):
    make_project("acme", readers=["tok"], writers=["tok"])
    names = [f"part-{i}.bin" for i in range(10)]
    await asyncio.gather(
        *(artifact_service.put_artifact("acme", "v1", name, "tok", name.encode()) for name in names)
    )
    assert await artifact_service.list_files("acme", "v1", "tok") == sorted(names)


async def test_resolve_download(artifact_service, make_project):
    make_project("acme", readers=["tok"], writers=["tok"])
    await artifact_service.put_artifact("acme", "v1", "app.bin", "tok", b"x")
    assert await artifact_service.resolve_download("acme", "v1", "tok") == "app.bin"


async def test_authorize(artifact_service, make_project):
    make_project("acme", readers=["tok-r"])
    await artifact_service.authorize("acme", "tok-r", Capability.READ)
    with pytest.raises(ForbiddenError):
        await artifact_service.authorize("acme", "tok-r", Capability.WRITE)


async def test_list_projects_needs_no_token(artifact_service, make_project):
    make_project("beta")
    make_project("acme")
    assert await artifact_service.list_projects() == ["acme", "beta"]
