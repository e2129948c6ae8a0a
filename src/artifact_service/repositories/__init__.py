"""Filesystem repositories exports."""

from artifact_service.repositories.access_lists import TokenListCache
from artifact_service.repositories.artifacts import ArtifactStore, StagedUpload

__all__ = [
    "ArtifactStore",
    "StagedUpload",
    "TokenListCache",
]
