"""Blob storage for uploaded assignment files.

Keep the interface small and framework-agnostic so tests can supply simple
fakes. A blob is keyed by the name it was written under; callers store that
name in ``assignment_files.file_path`` and pass it back to ``read``/``delete``.
``write`` consumes a binary stream in chunks, so an upload is never held in
memory as a whole.
"""

import logging
import re
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Protocol

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when a blob cannot be written, read or deleted."""

    pass


class BlobStore(Protocol):
    def write(self, name: str, stream: BinaryIO) -> int: ...

    def read(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...


def generate_blob_name(filename: str) -> str:
    """Build a collision-resistant blob name from an uploaded filename."""
    safe = re.sub(r"[^A-Za-z0-9_.\-]", "_", (filename or "").strip()) or "unknown"
    return f"{uuid.uuid4().hex}_{safe}"


class LocalBlobStore:
    """Stores blobs as files under a single root directory."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise BlobStoreError(f"Blob path escapes storage root: {path}")
        return target

    def write(self, name: str, stream: BinaryIO) -> int:
        """Copy ``stream`` into the blob ``name`` and return the bytes written."""
        target = self._resolve(name)
        try:
            with open(target, "wb") as f:
                shutil.copyfileobj(stream, f)
                size = f.tell()
        except OSError as e:
            target.unlink(missing_ok=True)
            raise BlobStoreError(f"Failed to write blob '{name}': {e}") from e
        logger.debug("Wrote blob %s (%d bytes)", name, size)
        return size

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            with open(target, "rb") as f:
                return f.read()
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob '{path}': {e}") from e

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob '{path}': {e}") from e
