"""
Content stores: raw byte storage for posts.

The engine never inspects content; it only needs to list, read and write
raw bytes by id. Two implementations:
- FileContentStore: a flat directory of ``<id>`` markdown files
- MemoryContentStore: an in-process dict (tests, embedding)
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterator, Optional

from .errors import InvalidIdError, ItemNotFoundError
from .types import ID_EXTENSION, is_valid_id

logger = logging.getLogger(__name__)


class FileContentStore:
    """
    Reads and writes posts in a local directory.

    Only normalized ids are accepted, so every object maps to a direct
    child of the directory and no path can escape it.
    """

    # Default max post size: 10MB
    MAX_FILE_SIZE = 10_000_000

    def __init__(self, directory: Path, max_size: Optional[int] = None):
        self.directory = Path(directory)
        self.max_size = max_size or self.MAX_FILE_SIZE

    def _path(self, id: str) -> Path:
        if not is_valid_id(id):
            raise InvalidIdError(f"Not a normalized item id: {id!r}")
        return self.directory / id

    def _read(self, path: Path) -> bytes:
        size = path.stat().st_size
        if size > self.max_size:
            raise IOError(
                f"File too large: {size:,} bytes "
                f"(limit: {self.max_size:,} bytes). "
                f"Configure max_post_size in store config to increase."
            )
        return path.read_bytes()

    def fetch_raw(self, id: str) -> bytes:
        path = self._path(id)
        if not path.is_file():
            raise ItemNotFoundError(id)
        return self._read(path)

    def fetch_all(self) -> Iterator[tuple[str, bytes]]:
        """Yield (id, bytes) for every post file, sorted by name.

        Skips hidden files, subdirectories, symlinks and files whose name
        is not a normalized id.
        """
        if not self.directory.is_dir():
            return
        for entry in sorted(self.directory.iterdir()):
            if entry.name.startswith("."):
                continue
            if entry.is_symlink() or not entry.is_file():
                continue
            if not entry.name.endswith(ID_EXTENSION):
                continue
            if not is_valid_id(entry.name):
                logger.warning("Skipping file with non-normalized name: %s", entry.name)
                continue
            try:
                data = self._read(entry)
            except IOError as e:
                logger.warning("Skipping %s: %s", entry.name, e)
                continue
            yield entry.name, data

    def store_raw(self, id: str, data: bytes) -> None:
        """Write atomically: temp file in the same directory, then rename."""
        path = self._path(id)
        if len(data) > self.max_size:
            raise IOError(
                f"Post too large: {len(data):,} bytes (limit: {self.max_size:,} bytes)"
            )
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=ID_EXTENSION)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.info("Stored %s (%d bytes)", id, len(data))


class MemoryContentStore:
    """Dict-backed content store."""

    def __init__(self, objects: Optional[dict[str, bytes]] = None):
        self._objects: dict[str, bytes] = dict(objects or {})
        self._lock = threading.Lock()
        self.fetch_calls = 0

    def fetch_raw(self, id: str) -> bytes:
        with self._lock:
            self.fetch_calls += 1
            try:
                return self._objects[id]
            except KeyError:
                raise ItemNotFoundError(id) from None

    def fetch_all(self) -> Iterator[tuple[str, bytes]]:
        with self._lock:
            snapshot = sorted(self._objects.items())
        yield from snapshot

    def store_raw(self, id: str, data: bytes) -> None:
        with self._lock:
            self._objects[id] = bytes(data)

    def __contains__(self, id: object) -> bool:
        return id in self._objects

    def __len__(self) -> int:
        return len(self._objects)
