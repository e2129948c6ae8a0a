"""Pytest configuration and fixtures."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from artifact_service.main import create_app
from artifact_service.repositories import ArtifactStore, TokenListCache
from artifact_service.services import ArtifactService, AuthorizationGate
from artifact_service.settings import settings


def write_list(root: Path, project: str, filename: str, tokens: Iterable[str]) -> Path:
    path = root / project / filename
    path.write_text("".join(f"{token}\n" for token in tokens), encoding="utf-8")
    return path


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    root = tmp_path / "state"
    root.mkdir()
    return root


@pytest.fixture
def make_project(state_dir: Path):
    """Create ``<state_dir>/<name>`` with the given access lists (None = no file)."""

    def _make(name: str, *, readers: Iterable[str] | None = (), writers: Iterable[str] | None = ()) -> Path:
        project_dir = state_dir / name
        project_dir.mkdir()
        if readers is not None:
            write_list(state_dir, name, "readers.txt", readers)
        if writers is not None:
            write_list(state_dir, name, "writers.txt", writers)
        return project_dir

    return _make


@pytest.fixture
def store(state_dir: Path) -> ArtifactStore:
    return ArtifactStore(state_dir, fsync_writes=False)


@pytest.fixture
def token_lists(state_dir: Path) -> TokenListCache:
    return TokenListCache(state_dir)


@pytest.fixture
def artifact_service(store: ArtifactStore, token_lists: TokenListCache) -> ArtifactService:
    return ArtifactService(store, AuthorizationGate(token_lists))


@pytest.fixture
async def service_client(aiohttp_client, state_dir, monkeypatch):
    """Client for calling the service API against a temporary state directory."""
    monkeypatch.setattr(settings, "state_dir", state_dir)
    monkeypatch.setattr(settings, "fsync_writes", False)
    app = create_app()
    return await aiohttp_client(app)
