"""
Local file store for uploaded media.

Files are addressed by an opaque handle (``<epoch-ms>-<random><ext>``) that
is unrelated to the client's filename.
"""
import os
import secrets
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from core.logger import logger

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class FileStat:
    size_bytes: int


def generate_handle(suggested_ext: str = "") -> str:
    """Collision-resistant stored name: current time in ms plus a random suffix."""
    ext = (suggested_ext or "").lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext}"


def validate_handle(handle: str) -> str:
    """
    Reject handles that could address anything but a file directly in the store root.

    Raises:
        ValueError: empty handle, path separators or parent references
    """
    if not handle or not isinstance(handle, str):
        raise ValueError("Empty file handle")
    if "/" in handle or "\\" in handle or handle in (".", "..") or "\x00" in handle:
        raise ValueError(f"Invalid file handle: {handle!r}")
    return handle


class LocalFileStore:
    """File store rooted at a local directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local file store initialized at {self.root}")

    def resolve(self, handle: str) -> Path:
        """
        Absolute path for a handle.

        Raises:
            ValueError: the handle escapes the storage root
        """
        validate_handle(handle)
        root = self.root.resolve()
        target = (root / handle).resolve()
        if target.parent != root:
            raise ValueError(f"File handle outside storage root: {handle!r}")
        return target

    def save(self, stream: BinaryIO, suggested_ext: str = "") -> str:
        """Persist a stream under a fresh handle and return the handle."""
        handle = generate_handle(suggested_ext)
        target = self.resolve(handle)
        try:
            with open(target, "xb") as buffer:
                shutil.copyfileobj(stream, buffer, CHUNK_SIZE)
        except OSError:
            if target.exists():
                target.unlink()
            raise
        logger.debug(f"Stored file {handle}")
        return handle

    def stat(self, handle: str) -> FileStat:
        """
        Size of a stored file.

        Raises:
            FileNotFoundError: no such file
        """
        target = self.resolve(handle)
        if not target.is_file():
            raise FileNotFoundError(handle)
        return FileStat(size_bytes=target.stat().st_size)

    def exists(self, handle: str) -> bool:
        try:
            return self.resolve(handle).is_file()
        except ValueError:
            return False

    def open(self, handle: str) -> Iterator[bytes]:
        """
        Iterate over the stored bytes in chunks.

        The file is opened eagerly so a missing file raises here rather than
        on first iteration.
        """
        target = self.resolve(handle)
        fh = open(target, "rb")
        return _iter_file(fh)

    def delete(self, handle: str) -> bool:
        target = self.resolve(handle)
        try:
            os.remove(target)
        except FileNotFoundError:
            return False
        logger.info(f"Deleted stored file {handle}")
        return True

    def describe(self) -> dict:
        return {"backend": "local", "root": str(self.root)}


def _iter_file(fh: BinaryIO) -> Iterator[bytes]:
    with fh:
        while True:
            chunk = fh.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
