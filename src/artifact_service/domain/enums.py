"""Domain enums."""
from __future__ import annotations

from enum import Enum


class Capability(str, Enum):
    """Access capability checked against a project's access list."""

    READ = "read"
    WRITE = "write"

    @property
    def list_filename(self) -> str:
        return "readers.txt" if self is Capability.READ else "writers.txt"
