"""
Admin APIs: school accounts, all media and bulk export.
"""
from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Any, Optional

from auth.dependencies import get_db_session, get_file_store, require, require_ban_toggle
from auth.guard import Operation
from services.auth_service import SessionClaim
from services.account_service import AccountService
from services.media_service import MediaService
from services.export_service import ExportService, ARCHIVE_NAME
from services.audit_service import AuditService
from core.logger import logger
from core.validators import MAX_RECORD_ID


router = APIRouter(prefix="/api/admin", tags=["admin"])


class BanUpdate(BaseModel):
    banned: bool


class ExportRequest(BaseModel):
    """Media ids to export; validated by ExportService.parse_ids."""
    files: Any = None


@router.get("/schools")
async def list_schools(
    claim: SessionClaim = Depends(require(Operation.LIST_ACCOUNTS)),
    db: Session = Depends(get_db_session)
):
    """All school accounts, ordered by username."""
    return [AccountService.to_admin_dict(user) for user in AccountService.list_schools(db)]


@router.put("/schools/{school_id}/ban")
async def set_school_ban(
    payload: BanUpdate,
    request: Request,
    school_id: int = Path(..., ge=0, le=MAX_RECORD_ID),
    claim: SessionClaim = Depends(require_ban_toggle),
    db: Session = Depends(get_db_session)
):
    """Ban or unban a school. Takes effect on the school's next request."""
    user = AccountService.set_banned(db, school_id, payload.banned)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="school_ban" if payload.banned else "school_unban",
        user_id=claim.user_id,
        resource_type="user",
        resource_id=school_id
    )

    return {
        "message": f"School {'banned' if user.banned else 'unbanned'} successfully",
        "school": AccountService.to_admin_dict(user),
    }


@router.get("/media")
async def list_all_media(
    eventName: Optional[str] = Query(None),
    schoolId: Optional[int] = Query(None, ge=0, le=MAX_RECORD_ID),
    claim: SessionClaim = Depends(require(Operation.VIEW_ALL_MEDIA)),
    db: Session = Depends(get_db_session)
):
    """Media of every school, newest first, with the owning school's name."""
    return MediaService.query_all(db, event_name=eventName, owner_id=schoolId)


@router.post("/media/download")
def download_media(
    payload: ExportRequest,
    request: Request,
    claim: SessionClaim = Depends(require(Operation.BULK_EXPORT)),
    db: Session = Depends(get_db_session),
    file_store=Depends(get_file_store)
):
    """Stream the selected media as a ZIP archive. Unknown ids and missing files are left out."""
    ids = ExportService.parse_ids(payload.files)
    entries = ExportService.collect_entries(db, file_store, ids)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="media_export",
        user_id=claim.user_id,
        resource_type="media",
        details={"requested": len(ids), "included": [entry.media_id for entry in entries]}
    )
    logger.info(f"Exporting {len(entries)} of {len(ids)} requested media")

    return StreamingResponse(
        ExportService.stream_archive(file_store, entries),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ARCHIVE_NAME}"'}
    )
