"""
Bulk export: streams selected media as a ZIP archive.

The archive is written into a sink that only collects bytes, so zipfile
falls back to data descriptors and never needs to seek. Whatever the sink
holds is handed to the response after every file chunk.
"""
import zipfile
from dataclasses import dataclass
from typing import Any, List, Iterator
from sqlalchemy.orm import Session

from services.media_service import MediaService
from core.errors import InvalidRequest
from core.validators import is_record_id
from core.logger import logger

ARCHIVE_NAME = "media-files.zip"


@dataclass(frozen=True)
class ArchiveEntry:
    media_id: int
    handle: str
    size_bytes: int


class _ChunkSink:
    """Write-only, non-seekable file object collecting archive output."""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        data = bytes(data)
        self._chunks.append(data)
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class ExportService:
    """Service for bulk media export."""

    @staticmethod
    def parse_ids(raw: Any) -> List[int]:
        """
        Validate the requested media ids.

        Raises:
            InvalidRequest: not a non-empty list of integer ids
        """
        if not isinstance(raw, list) or not raw:
            raise InvalidRequest("No files selected")
        ids = []
        for value in raw:
            if not is_record_id(value):
                raise InvalidRequest("File ids must be non-negative integers")
            ids.append(value)
        return ids

    @staticmethod
    def collect_entries(db: Session, file_store, ids: List[int]) -> List[ArchiveEntry]:
        """
        Resolve ids to stored files.

        Ids without a media record or without a stored file are skipped.
        """
        entries = []
        for media_id, handle in MediaService.resolve_handles(db, ids):
            try:
                stat = file_store.stat(handle)
            except (OSError, ValueError) as e:
                logger.info(f"Skipping media {media_id} in export, stored file unavailable: {e}")
                continue
            entries.append(ArchiveEntry(media_id=media_id, handle=handle, size_bytes=stat.size_bytes))
        skipped = len(ids) - len(entries)
        if skipped:
            logger.info(f"Export skipped {skipped} of {len(ids)} requested media")
        return entries

    @staticmethod
    def stream_archive(file_store, entries: List[ArchiveEntry]) -> Iterator[bytes]:
        """
        Yield a DEFLATE ZIP archive of the given entries, piece by piece.

        Entries are named by stored handle. A file that disappears between
        collection and streaming is left out of the archive.
        """
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for entry in entries:
                try:
                    chunks = file_store.open(entry.handle)
                except (OSError, ValueError) as e:
                    logger.warning(f"Stored file {entry.handle} vanished during export: {e}")
                    continue

                force_zip64 = entry.size_bytes >= zipfile.ZIP64_LIMIT
                with archive.open(entry.handle, mode="w", force_zip64=force_zip64) as member:
                    for chunk in chunks:
                        member.write(chunk)
                        data = sink.drain()
                        if data:
                            yield data
                data = sink.drain()
                if data:
                    yield data

        data = sink.drain()
        if data:
            yield data
