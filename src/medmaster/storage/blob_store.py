"""Key-value blob persistence (JSON files + fcntl.flock + atomic write)."""

import fcntl
import os
import re
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger()

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class MemoryBlobStore:
    """In-process store; holds whole blobs, last write wins."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def load(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    def save(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileBlobStore:
    """One file per key under ``root``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so readers see either the old or the new blob.

    Args:
        root: Directory holding the blobs.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def load(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "rb") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = f.read()
            fcntl.flock(f, fcntl.LOCK_UN)
        return data

    def save(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp = tempfile.NamedTemporaryFile("wb", dir=self.root, delete=False, suffix=".tmp")
        try:
            with tmp:
                tmp.write(data)
            os.replace(tmp.name, path)
        except BaseException:
            Path(tmp.name).unlink(missing_ok=True)
            raise
        logger.debug("blob_saved", key=key, size=len(data))

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
            logger.debug("blob_deleted", key=key)
