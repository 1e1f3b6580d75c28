"""
Dashboard statistics for schools and for the admin.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth.dependencies import get_db_session, get_file_store, require
from auth.guard import Operation
from services.auth_service import SessionClaim
from services.stats_service import StatsService


router = APIRouter(prefix="/api", tags=["dashboards"])


@router.get("/stats")
def school_stats(
    claim: SessionClaim = Depends(require(Operation.READ_OWN_STATS)),
    db: Session = Depends(get_db_session),
    file_store=Depends(get_file_store)
):
    """Totals, recent events and file types of the caller's media."""
    return StatsService.user_stats(db, file_store, claim.user_id)


@router.get("/admin/stats")
def admin_stats(
    claim: SessionClaim = Depends(require(Operation.GLOBAL_STATS)),
    db: Session = Depends(get_db_session),
    file_store=Depends(get_file_store)
):
    """Portal-wide totals."""
    return StatsService.global_stats(db, file_store)
