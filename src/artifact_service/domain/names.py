"""Validation of project, version and filename path segments.

Every name that reaches the filesystem passes through :func:`validate_segment`
first. The allowed charset is ASCII letters, digits, ``-``, ``_`` and ``.``;
a leading ``.`` is rejected so ``.``, ``..`` and hidden files (including the
store's own temporary uploads) can never be addressed. Project names do not
accept ``.`` at all.
"""
from __future__ import annotations

import re
from pathlib import Path

from artifact_service.core.exceptions import InvalidNameError

MAX_SEGMENT_BYTES = 255

_SEGMENT_RE = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9._-]*")
_PROJECT_RE = re.compile(r"[A-Za-z0-9_-]+")

VERSIONS_DIR = "versions"
FILES_DIR = "files"


def validate_segment(kind: str, value: str | None) -> str:
    """Return ``value`` unchanged or raise :class:`InvalidNameError`."""
    if not value:
        raise InvalidNameError(f"{kind} name must not be empty")
    pattern = _PROJECT_RE if kind == "project" else _SEGMENT_RE
    if not pattern.fullmatch(value):
        raise InvalidNameError(f"invalid {kind} name: {value!r}")
    if len(value.encode("utf-8")) > MAX_SEGMENT_BYTES:
        raise InvalidNameError(f"{kind} name is longer than {MAX_SEGMENT_BYTES} bytes")
    return value


def is_valid_segment(kind: str, value: str) -> bool:
    try:
        validate_segment(kind, value)
    except InvalidNameError:
        return False
    return True


def resolve(
    root: Path,
    project: str,
    version: str | None = None,
    filename: str | None = None,
) -> Path:
    """Build ``<root>/<project>[/versions/<version>/files[/<filename>]]``.

    A filename without a version is a programming error.
    """
    path = root / validate_segment("project", project)
    if version is None:
        if filename is not None:
            raise ValueError("filename requires a version")
        return path
    path = path / VERSIONS_DIR / validate_segment("version", version) / FILES_DIR
    if filename is None:
        return path
    return path / validate_segment("file", filename)
