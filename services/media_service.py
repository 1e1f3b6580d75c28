"""
Media ledger: ingesting uploads and querying media records.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict, Any, BinaryIO, Iterable, Tuple
from sqlalchemy import asc, desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database.models import MediaRecord, User
from core.errors import InvalidRequest
from core.logger import logger
from core.validators import (
    sanitize_filename,
    get_extension,
    validate_media_type,
    validate_file_size,
    normalize_tags,
)
import config


SORT_COLUMNS = {
    "date": MediaRecord.uploaded_at,
    "name": MediaRecord.original_name,
    "event": MediaRecord.event_name,
}

SUGGESTION_LIMIT = 5
MAX_EVENT_NAME_LENGTH = 255  # media.event_name column


@dataclass
class IncomingFile:
    """One file of an upload batch, detached from the HTTP layer."""
    filename: str
    stream: BinaryIO
    size: int
    content_type: Optional[str] = None


@dataclass
class IngestResult:
    """Per-file outcome of an upload."""
    original_name: str
    media_id: Optional[int] = None
    stored_handle: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {
                "status": "success",
                "id": self.media_id,
                "filename": self.stored_handle,
                "originalName": self.original_name,
            }
        return {"status": "failed", "originalName": self.original_name, "error": self.error}


class MediaService:
    """Service for media ledger operations."""

    @staticmethod
    def ingest(
        db: Session,
        file_store,
        owner_id: int,
        files: List[IncomingFile],
        event_name: str,
        remarks: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> List[IngestResult]:
        """
        Store a batch of files and record one media row per file.

        The request as a whole is validated before anything is stored. After
        that every file succeeds or fails on its own; earlier successes are
        kept when a later file fails.

        Args:
            db: Database session
            file_store: File store the bytes go to
            owner_id: Owning account ID
            files: Files of the batch
            event_name: Event label (required)
            remarks: Optional free text
            tags: Optional comma-separated tags

        Returns:
            One IngestResult per file, in input order

        Raises:
            InvalidRequest: missing or overlong event name, no files, or too many files
        """
        event_name = (event_name or "").strip()
        if not event_name:
            raise InvalidRequest("Event name is required")
        if len(event_name) > MAX_EVENT_NAME_LENGTH:
            raise InvalidRequest(f"Event name cannot be longer than {MAX_EVENT_NAME_LENGTH} characters")
        if not files:
            raise InvalidRequest("No files uploaded")
        if len(files) > config.MAX_FILES_PER_UPLOAD:
            raise InvalidRequest(f"Too many files. Maximum {config.MAX_FILES_PER_UPLOAD} per upload")

        remarks = (remarks or "").strip() or None
        tags = normalize_tags(tags)
        uploaded_at = datetime.utcnow()

        results = [
            MediaService._ingest_one(db, file_store, owner_id, incoming, event_name, remarks, tags, uploaded_at)
            for incoming in files
        ]
        succeeded = sum(1 for result in results if result.ok)
        logger.info(
            f"Upload for user {owner_id}, event '{event_name}': "
            f"{succeeded} stored, {len(results) - succeeded} rejected"
        )
        return results

    @staticmethod
    def _ingest_one(
        db: Session,
        file_store,
        owner_id: int,
        incoming: IncomingFile,
        event_name: str,
        remarks: Optional[str],
        tags: Optional[str],
        uploaded_at: datetime,
    ) -> IngestResult:
        original_name = incoming.filename or ""
        try:
            safe_name = sanitize_filename(original_name)
        except ValueError as e:
            return IngestResult(original_name=original_name, error=str(e))

        is_valid, error = validate_media_type(safe_name, incoming.content_type, config.ALLOWED_MEDIA_TYPES)
        if not is_valid:
            return IngestResult(original_name=original_name, error=error)

        is_valid, error = validate_file_size(incoming.size, config.MAX_UPLOAD_SIZE_MB * 1024 * 1024)
        if not is_valid:
            return IngestResult(original_name=original_name, error=error)

        ext = get_extension(safe_name)
        try:
            handle = file_store.save(incoming.stream, ext)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to store upload {safe_name} for user {owner_id}: {e}", exc_info=True)
            return IngestResult(original_name=original_name, error="Failed to store file")

        record = MediaRecord(
            filename=handle,
            original_name=safe_name,
            file_type=ext,
            event_name=event_name,
            remarks=remarks,
            tags=tags,
            uploaded_at=uploaded_at,
            user_id=owner_id,
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to record upload {handle} for user {owner_id}: {e}", exc_info=True)
            try:
                file_store.delete(handle)
            except OSError as cleanup_error:
                logger.error(f"Orphaned stored file {handle}: {cleanup_error}")
            return IngestResult(original_name=original_name, error="Failed to save media information")

        return IngestResult(original_name=original_name, media_id=record.id, stored_handle=handle)

    @staticmethod
    def query(
        db: Session,
        owner_id: int,
        event_name: Optional[str] = None,
        sort_by: Optional[str] = "date",
        order: Optional[str] = "desc",
        limit: Optional[int] = None,
    ) -> List[MediaRecord]:
        """
        Media records of one owner.

        Unknown sort keys keep ledger order. Any order other than "asc" sorts
        descending.

        Raises:
            InvalidRequest: limit below 1
        """
        query = db.query(MediaRecord).filter(MediaRecord.user_id == owner_id)
        if event_name:
            query = query.filter(MediaRecord.event_name == event_name)

        column = SORT_COLUMNS.get((sort_by or "").lower())
        if column is not None:
            direction = asc if (order or "").lower() == "asc" else desc
            query = query.order_by(direction(column), direction(MediaRecord.id))
        else:
            query = query.order_by(MediaRecord.id)

        if limit is not None:
            if limit < 1:
                raise InvalidRequest("Limit must be a positive integer")
            query = query.limit(limit)

        return query.all()

    @staticmethod
    def query_all(
        db: Session,
        event_name: Optional[str] = None,
        owner_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """All media, newest first, with the owner's names attached (admin view)."""
        query = (
            db.query(MediaRecord, User.username, User.school_name)
            .outerjoin(User, MediaRecord.user_id == User.id)
        )
        if event_name:
            query = query.filter(MediaRecord.event_name == event_name)
        if owner_id is not None:
            query = query.filter(MediaRecord.user_id == owner_id)
        query = query.order_by(MediaRecord.uploaded_at.desc(), MediaRecord.id.desc())

        media_list = []
        for record, username, school_name in query.all():
            item = MediaService.to_dict(record)
            item["ownerName"] = username
            item["schoolName"] = school_name or username
            media_list.append(item)
        return media_list

    @staticmethod
    def suggest_event_names(db: Session, owner_id: int, partial: Optional[str]) -> List[str]:
        """Up to five of the owner's event names containing `partial` (case-insensitive), most recent first."""
        last_upload = func.max(MediaRecord.uploaded_at)
        query = (
            db.query(MediaRecord.event_name, last_upload.label("last_upload"))
            .filter(MediaRecord.user_id == owner_id)
        )
        partial = (partial or "").strip()
        if partial:
            query = query.filter(
                func.lower(MediaRecord.event_name).contains(partial.lower(), autoescape=True)
            )
        rows = (
            query.group_by(MediaRecord.event_name)
            .order_by(last_upload.desc(), MediaRecord.event_name)
            .limit(SUGGESTION_LIMIT)
            .all()
        )
        return [row.event_name for row in rows]

    @staticmethod
    def resolve_handles(db: Session, ids: Iterable[int]) -> List[Tuple[int, str]]:
        """(id, stored handle) for each known id, in request order, duplicates dropped."""
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []
        rows = db.query(MediaRecord.id, MediaRecord.filename).filter(MediaRecord.id.in_(wanted)).all()
        handles = {row.id: row.filename for row in rows}
        return [(media_id, handles[media_id]) for media_id in wanted if media_id in handles]

    @staticmethod
    def to_dict(record: MediaRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "filename": record.filename,
            "originalName": record.original_name,
            "type": record.file_type,
            "eventName": record.event_name,
            "remarks": record.remarks,
            "tags": record.tags,
            "uploadDate": record.uploaded_at.isoformat() if record.uploaded_at else None,
            "userId": record.user_id,
            "url": f"/uploads/{record.filename}",
        }
