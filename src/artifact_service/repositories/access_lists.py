"""Cached access-list reader for ``readers.txt`` / ``writers.txt``."""
from __future__ import annotations

import stat
import threading
from dataclasses import dataclass
from pathlib import Path

import structlog

from artifact_service.core.exceptions import ListUnreadableError, ProjectNotFoundError
from artifact_service.domain.enums import Capability
from artifact_service.domain.names import resolve

logger = structlog.get_logger(__name__)

# (mtime_ns, ctime_ns, size, inode); None when the list file does not exist.
FileSignature = tuple[int, int, int, int] | None


@dataclass(frozen=True, slots=True)
class _CachedList:
    signature: FileSignature
    tokens: frozenset[str]


def parse_tokens(text: str) -> frozenset[str]:
    """One token per line, surrounding whitespace stripped, blank lines ignored."""
    return frozenset(line.strip() for line in text.splitlines() if line.strip())


def _signature(path: Path) -> FileSignature:
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise ListUnreadableError(f"cannot stat {path.name}: {exc.strerror}") from exc
    if not stat.S_ISREG(st.st_mode):
        raise ListUnreadableError(f"{path.name} is not a regular file")
    return (st.st_mtime_ns, st.st_ctime_ns, st.st_size, st.st_ino)


class TokenListCache:
    """Parsed access lists keyed by (project, capability).

    Every lookup stats the backing file and re-reads it only when its
    signature changed since the cached read. Nothing is invalidated in the
    background.
    """

    def __init__(self, root: Path):
        self._root = root
        self._entries: dict[tuple[str, Capability], _CachedList] = {}
        self._lock = threading.Lock()

    def tokens(self, project: str, capability: Capability) -> frozenset[str]:
        project_dir = resolve(self._root, project)
        if not project_dir.is_dir():
            raise ProjectNotFoundError(f"project {project!r} not found")

        path = project_dir / capability.list_filename
        key = (project, capability)
        signature = _signature(path)

        with self._lock:
            cached = self._entries.get(key)
        if cached is not None and cached.signature == signature:
            return cached.tokens

        if signature is None:
            tokens: frozenset[str] = frozenset()
        else:
            # Cached under the pre-read signature: an edit racing the read
            # changes the signature and forces a re-read on the next lookup.
            tokens = self._read(path)

        with self._lock:
            self._entries[key] = _CachedList(signature=signature, tokens=tokens)
        logger.debug(
            "access list loaded",
            project=project,
            capability=capability.value,
            tokens=len(tokens),
        )
        return tokens

    def _read(self, path: Path) -> frozenset[str]:
        try:
            with open(path, "rb") as fh:
                raw = fh.read()
        except FileNotFoundError:
            return frozenset()
        except OSError as exc:
            raise ListUnreadableError(f"cannot read {path.name}: {exc.strerror}") from exc
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ListUnreadableError(f"{path.name} is not valid UTF-8") from exc
        return parse_tokens(text)

