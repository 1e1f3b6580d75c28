"""
Events are not stored; they are derived by grouping media records on event name.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import MediaRecord


@dataclass(frozen=True)
class EventSummary:
    event_name: str
    media_count: int
    last_upload: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventName": self.event_name,
            "mediaCount": self.media_count,
            "lastUpload": self.last_upload.isoformat() if self.last_upload else None,
        }


class EventService:
    """Service for event aggregation."""

    @staticmethod
    def list_events(db: Session, owner_id: int, limit: Optional[int] = None) -> List[EventSummary]:
        """
        Group an owner's media by event name.

        Args:
            db: Database session
            owner_id: Owning account ID
            limit: Maximum number of events (most recent first)

        Returns:
            Event summaries ordered by last upload, newest first
        """
        last_upload = func.max(MediaRecord.uploaded_at)
        query = (
            db.query(
                MediaRecord.event_name,
                func.count(MediaRecord.id).label("media_count"),
                last_upload.label("last_upload"),
            )
            .filter(MediaRecord.user_id == owner_id)
            .group_by(MediaRecord.event_name)
            .order_by(last_upload.desc(), MediaRecord.event_name)
        )
        if limit is not None:
            query = query.limit(limit)

        return [
            EventSummary(
                event_name=row.event_name,
                media_count=row.media_count,
                last_upload=row.last_upload,
            )
            for row in query.all()
        ]
