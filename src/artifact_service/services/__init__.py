"""Domain services exports."""

from artifact_service.services.artifacts import ArtifactService
from artifact_service.services.authorization import AuthorizationGate

__all__ = [
    "ArtifactService",
    "AuthorizationGate",
]
