"""
Media upload, listing and single-file retrieval.
"""
import mimetypes
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional

from auth.dependencies import get_db_session, get_file_store, require
from auth.guard import Operation
from services.auth_service import SessionClaim
from services.media_service import MediaService, IncomingFile
from services.audit_service import AuditService
from core.errors import NotFound
from core.validators import MAX_RECORD_ID


router = APIRouter(prefix="/api", tags=["media"])

files_router = APIRouter(tags=["files"])


def _stream_size(upload: UploadFile) -> int:
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.post("/upload")
def upload_media(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    eventName: str = Form(""),
    remarks: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    claim: SessionClaim = Depends(require(Operation.UPLOAD_MEDIA)),
    db: Session = Depends(get_db_session),
    file_store=Depends(get_file_store)
):
    """
    Upload up to MAX_FILES_PER_UPLOAD images or videos for one event.

    Each file is reported on its own; a rejected file does not affect the others.
    """
    incoming = [
        IncomingFile(
            filename=upload.filename or "",
            stream=upload.file,
            size=_stream_size(upload),
            content_type=upload.content_type,
        )
        for upload in (files or [])
    ]
    results = MediaService.ingest(
        db,
        file_store,
        owner_id=claim.user_id,
        files=incoming,
        event_name=eventName,
        remarks=remarks,
        tags=tags,
    )

    stored = [result for result in results if result.ok]
    AuditService.log_from_request(
        db=db,
        request=request,
        action="media_upload",
        user_id=claim.user_id,
        resource_type="media",
        details={
            "eventName": eventName.strip(),
            "stored": [result.media_id for result in stored],
            "rejected": len(results) - len(stored),
        }
    )

    return [result.to_dict() for result in results]


@router.get("/media")
async def list_media(
    eventName: Optional[str] = Query(None),
    sortBy: Optional[str] = Query("date"),
    order: Optional[str] = Query("desc"),
    limit: Optional[int] = Query(None, ge=1, le=MAX_RECORD_ID),
    claim: SessionClaim = Depends(require(Operation.READ_OWN_MEDIA)),
    db: Session = Depends(get_db_session)
):
    """The caller's media, optionally filtered by event."""
    records = MediaService.query(
        db,
        owner_id=claim.user_id,
        event_name=eventName,
        sort_by=sortBy,
        order=order,
        limit=limit,
    )
    return [MediaService.to_dict(record) for record in records]


@files_router.get("/uploads/{handle}")
async def get_uploaded_file(handle: str, file_store=Depends(get_file_store)):
    """Stream one stored file. Handles are unguessable, so this route is public."""
    try:
        stat = file_store.stat(handle)
        chunks = file_store.open(handle)
    except (FileNotFoundError, ValueError):
        raise NotFound("File not found")

    media_type = mimetypes.guess_type(handle)[0] or "application/octet-stream"
    return StreamingResponse(
        chunks,
        media_type=media_type,
        headers={"Content-Length": str(stat.size_bytes)}
    )
