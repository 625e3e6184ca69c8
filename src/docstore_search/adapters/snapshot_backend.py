"""Storage backends for index snapshots.

A backend stores opaque named blobs. Writes are all-or-nothing: a reader
sees either the previous blob or the new one, never a torn file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import contextlib
import logging
import os
from pathlib import Path
import threading
from uuid import uuid4

from docstore_search.exceptions import PersistenceError


logger = logging.getLogger(__name__)


class SnapshotBackend(ABC):
    """Abstract blob store used by :class:`~docstore_search.search.snapshot.SnapshotStore`."""

    @abstractmethod
    def write(self, name: str, payload: bytes) -> None:
        """Atomically replace blob ``name`` with ``payload``.

        Raises:
            PersistenceError: If the blob could not be written
        """
        raise NotImplementedError

    @abstractmethod
    def read(self, name: str) -> bytes | None:
        """Return blob ``name`` or ``None`` when it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def size(self, name: str) -> int:
        """Stored size of blob ``name`` in bytes, 0 when absent."""
        raise NotImplementedError

    def exists(self, name: str) -> bool:
        return self.read(name) is not None


class FilesystemSnapshotBackend(SnapshotBackend):
    """Stores each blob as a file under ``directory``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / name

    def write(self, name: str, payload: bytes) -> None:
        path = self._path(name)
        # Unique per call so concurrent writers never share a temp file
        tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            tmp_path.replace(path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write snapshot {path}: {exc}") from exc

    def read(self, name: str) -> bytes | None:
        path = self._path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read snapshot %s: %s", path, exc)
            return None

    def size(self, name: str) -> int:
        try:
            return self._path(name).stat().st_size
        except OSError:
            return 0

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()


class InMemorySnapshotBackend(SnapshotBackend):
    """Keeps blobs in a dict. Used by tests and ephemeral engines."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.blobs: dict[str, bytes] = {}

    def write(self, name: str, payload: bytes) -> None:
        with self._lock:
            self.blobs[name] = bytes(payload)

    def read(self, name: str) -> bytes | None:
        with self._lock:
            return self.blobs.get(name)

    def size(self, name: str) -> int:
        with self._lock:
            return len(self.blobs.get(name, b""))
