"""Pydantic models representing stored artifacts."""
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class VersionHandle(BaseModel):
    """An existing version directory, ready to receive files."""

    model_config = ConfigDict(frozen=True)

    project: str
    version: str
    files_dir: Path


class ArtifactFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    project: str
    version: str
    filename: str
    size: int
