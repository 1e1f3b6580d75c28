"""
Event listing and event-name suggestions.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from auth.dependencies import get_db_session, require
from auth.guard import Operation
from services.auth_service import SessionClaim
from services.event_service import EventService
from services.media_service import MediaService


router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("")
async def list_events(
    claim: SessionClaim = Depends(require(Operation.READ_OWN_EVENTS)),
    db: Session = Depends(get_db_session)
):
    """The caller's events with media count and last upload time, newest first."""
    return [event.to_dict() for event in EventService.list_events(db, claim.user_id)]


@router.get("/suggestions")
async def suggest_events(
    query: Optional[str] = Query(None),
    claim: SessionClaim = Depends(require(Operation.READ_OWN_EVENTS)),
    db: Session = Depends(get_db_session)
):
    """Event names for autocomplete."""
    return MediaService.suggest_event_names(db, claim.user_id, query)
