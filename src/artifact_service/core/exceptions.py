"""Common exceptions for domain, repository and service layers."""
from __future__ import annotations


class ArtifactServiceError(Exception):
    """Base error for the artifact service."""

    kind = "error"


class InvalidNameError(ArtifactServiceError):
    """Raised when a project, version or filename segment is malformed."""

    kind = "invalid_name"


class BadRequestError(ArtifactServiceError):
    """Raised when a request is malformed in a way other than a bad name."""

    kind = "invalid_request"


class NotFoundError(ArtifactServiceError):
    """Raised when the requested version or file is missing."""

    kind = "not_found"


class ProjectNotFoundError(NotFoundError):
    """Raised when the project directory does not exist."""

    kind = "project_not_found"


class ForbiddenError(ArtifactServiceError):
    """Raised when the token is not on the access list for the capability."""

    kind = "forbidden"


class AmbiguousVersionError(ArtifactServiceError):
    """Raised when a single-file download is requested for a multi-file version."""

    kind = "ambiguous_version"


class StorageError(ArtifactServiceError):
    """Raised when the underlying filesystem fails."""

    kind = "storage_error"


class ListUnreadableError(StorageError):
    """Raised when an existing access list cannot be read or decoded."""

    kind = "list_unreadable"


class IOFailureError(StorageError):
    """Raised when reading or writing artifact storage fails."""

    kind = "io_failure"
