"""Artifact storage on the local filesystem.

Layout::

    <root>/<project>/versions/<version>/files/<filename>

Files become visible only through ``os.replace`` of a fully written and
fsynced temporary file that lives in the same ``files`` directory. Temporary
names start with ``.`` so they are never valid artifact names and never show
up in listings.
"""
from __future__ import annotations

import contextlib
import os
import stat
import tempfile
import threading
import weakref
from pathlib import Path
from typing import BinaryIO, Iterable

import structlog

from artifact_service.core.exceptions import (
    AmbiguousVersionError,
    IOFailureError,
    NotFoundError,
    ProjectNotFoundError,
)
from artifact_service.domain.models import ArtifactFile, VersionHandle
from artifact_service.domain.names import VERSIONS_DIR, is_valid_segment, resolve

logger = structlog.get_logger(__name__)

TEMP_PREFIX = ".upload-"


class _VersionLocks:
    """Process-local mutexes keyed by (project, version), created on demand."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[tuple[str, str], threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, project: str, version: str) -> threading.Lock:
        key = (project, version)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


def _fsync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _list_names(directory: Path, kind: str, *, want_dirs: bool) -> list[str]:
    names = set()
    with os.scandir(directory) as entries:
        for entry in entries:
            if not is_valid_segment(kind, entry.name):
                continue
            is_match = (
                entry.is_dir(follow_symlinks=False)
                if want_dirs
                else entry.is_file(follow_symlinks=False)
            )
            if is_match:
                names.add(entry.name)
    return sorted(names)


class StagedUpload:
    """A temporary file that becomes ``target`` on :meth:`commit`.

    Writing happens without any lock held. ``commit`` takes the version lock
    only for fsync and rename. Used as a context manager the upload is
    aborted unless it was committed.
    """

    def __init__(
        self,
        store: ArtifactStore,
        handle: VersionHandle,
        filename: str,
        target: Path,
    ):
        self._store = store
        self._handle = handle
        self._filename = filename
        self._target = target
        self._size = 0
        self._done = False
        fd, tmp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=handle.files_dir)
        self._tmp_path = Path(tmp_name)
        self._file: BinaryIO = os.fdopen(fd, "wb")

    @property
    def size(self) -> int:
        return self._size

    def write(self, chunk: bytes) -> None:
        if self._done:
            raise RuntimeError("upload already finished")
        try:
            self._file.write(chunk)
        except OSError as exc:
            self.abort()
            raise IOFailureError(f"write failed for {self._filename}: {exc.strerror}") from exc
        self._size += len(chunk)

    def commit(self) -> ArtifactFile:
        if self._done:
            raise RuntimeError("upload already finished")
        lock = self._store.version_lock(self._handle.project, self._handle.version)
        try:
            with lock:
                self._file.flush()
                if self._store.fsync_writes:
                    os.fsync(self._file.fileno())
                self._file.close()
                os.replace(self._tmp_path, self._target)
                self._done = True
        except OSError as exc:
            self.abort()
            raise IOFailureError(f"commit failed for {self._filename}: {exc.strerror}") from exc
        if self._store.fsync_writes:
            # the rename already happened; the file is visible either way
            try:
                _fsync_dir(self._handle.files_dir)
            except OSError as exc:
                logger.warning(
                    "directory fsync failed after commit",
                    project=self._handle.project,
                    version=self._handle.version,
                    filename=self._filename,
                    error=exc.strerror,
                )
        return ArtifactFile(
            project=self._handle.project,
            version=self._handle.version,
            filename=self._filename,
            size=self._size,
        )

    def abort(self) -> None:
        if self._done:
            return
        self._done = True
        with contextlib.suppress(OSError):
            self._file.close()
        with contextlib.suppress(FileNotFoundError):
            self._tmp_path.unlink()

    def __enter__(self) -> StagedUpload:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.abort()


class ArtifactStore:
    """Owns the on-disk layout; all paths go through :func:`resolve`."""

    def __init__(self, root: Path, *, fsync_writes: bool = True):
        self._root = root
        self.fsync_writes = fsync_writes
        self._locks = _VersionLocks()

    @property
    def root(self) -> Path:
        return self._root

    def version_lock(self, project: str, version: str) -> threading.Lock:
        return self._locks.get(project, version)

    def _project_dir(self, project: str) -> Path:
        project_dir = resolve(self._root, project)
        if not project_dir.is_dir():
            raise ProjectNotFoundError(f"project {project!r} not found")
        return project_dir

    def create_or_open_version(self, project: str, version: str) -> VersionHandle:
        files_dir = resolve(self._root, project, version)
        self._project_dir(project)
        try:
            files_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailureError(f"cannot create version {version!r}: {exc.strerror}") from exc
        return VersionHandle(project=project, version=version, files_dir=files_dir)

    def stage_file(self, project: str, version: str, filename: str) -> StagedUpload:
        target = resolve(self._root, project, version, filename)
        handle = self.create_or_open_version(project, version)
        try:
            return StagedUpload(self, handle, filename, target)
        except OSError as exc:
            raise IOFailureError(f"cannot stage {filename!r}: {exc.strerror}") from exc

    def put_file(
        self,
        project: str,
        version: str,
        filename: str,
        content: bytes | Iterable[bytes],
    ) -> ArtifactFile:
        """Write ``content`` atomically, replacing any previous file of that name."""
        chunks = [content] if isinstance(content, (bytes, bytearray, memoryview)) else content
        with self.stage_file(project, version, filename) as upload:
            for chunk in chunks:
                upload.write(bytes(chunk))
            artifact = upload.commit()
        logger.info(
            "artifact stored",
            project=project,
            version=version,
            filename=filename,
            size=artifact.size,
        )
        return artifact

    def open_file(self, project: str, version: str, filename: str) -> tuple[ArtifactFile, BinaryIO]:
        """Open a committed file; the caller owns the returned handle."""
        path = resolve(self._root, project, version, filename)
        try:
            fh = open(path, "rb")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
            raise NotFoundError(f"file {filename!r} not found in version {version!r}") from exc
        except OSError as exc:
            raise IOFailureError(f"cannot open {filename!r}: {exc.strerror}") from exc
        try:
            st = os.fstat(fh.fileno())
        except OSError as exc:
            fh.close()
            raise IOFailureError(f"cannot stat {filename!r}: {exc.strerror}") from exc
        if not stat.S_ISREG(st.st_mode):
            fh.close()
            raise NotFoundError(f"file {filename!r} not found in version {version!r}")
        artifact = ArtifactFile(project=project, version=version, filename=filename, size=st.st_size)
        return artifact, fh

    def list_projects(self) -> list[str]:
        try:
            return _list_names(self._root, "project", want_dirs=True)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise IOFailureError(f"cannot list projects: {exc.strerror}") from exc

    def list_versions(self, project: str) -> list[str]:
        versions_dir = self._project_dir(project) / VERSIONS_DIR
        try:
            return _list_names(versions_dir, "version", want_dirs=True)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise IOFailureError(f"cannot list versions of {project!r}: {exc.strerror}") from exc

    def list_files(self, project: str, version: str) -> list[str]:
        files_dir = resolve(self._root, project, version)
        self._project_dir(project)
        try:
            return _list_names(files_dir, "file", want_dirs=False)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFoundError(f"version {version!r} not found") from exc
        except OSError as exc:
            raise IOFailureError(f"cannot list files of {version!r}: {exc.strerror}") from exc

    def sole_file(self, project: str, version: str) -> str:
        files = self.list_files(project, version)
        if not files:
            raise NotFoundError(f"version {version!r} has no files")
        if len(files) > 1:
            raise AmbiguousVersionError(f"version {version!r} has {len(files)} files")
        return files[0]
