"""
Statistics for the school dashboard and the admin dashboard.
"""
from typing import Dict, Any, Iterable
from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import MediaRecord, User, UserRole
from services.event_service import EventService
from core.logger import logger

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]
RECENT_EVENTS_LIMIT = 5


def format_size(num_bytes: int) -> str:
    """Human-readable size, e.g. 1536 -> "1.5 KB". GB is the largest unit."""
    if not num_bytes:
        return "0 Bytes"
    size = float(num_bytes)
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    text = f"{size:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[unit]}"


class StatsService:
    """Service for dashboard statistics."""

    @staticmethod
    def total_size(file_store, handles: Iterable[str]) -> int:
        """Sum of stored file sizes; files that can't be stat'ed are skipped."""
        total = 0
        for handle in handles:
            try:
                total += file_store.stat(handle).size_bytes
            except (OSError, ValueError) as e:
                logger.warning(f"Could not read size of stored file {handle}: {e}")
        return total

    @staticmethod
    def user_stats(db: Session, file_store, owner_id: int) -> Dict[str, Any]:
        """
        Dashboard statistics for one account.

        Args:
            db: Database session
            file_store: File store holding the media
            owner_id: Owning account ID

        Returns:
            Dictionary with totals, recent events and per-type counts
        """
        handles = [
            row.filename
            for row in db.query(MediaRecord.filename).filter(MediaRecord.user_id == owner_id).all()
        ]
        total_events = (
            db.query(func.count(func.distinct(MediaRecord.event_name)))
            .filter(MediaRecord.user_id == owner_id)
            .scalar()
        ) or 0
        recent_events = EventService.list_events(db, owner_id, limit=RECENT_EVENTS_LIMIT)

        type_count = func.count(MediaRecord.id)
        file_types = (
            db.query(MediaRecord.file_type, type_count.label("count"))
            .filter(MediaRecord.user_id == owner_id)
            .group_by(MediaRecord.file_type)
            .order_by(type_count.desc(), MediaRecord.file_type)
            .all()
        )

        total_size = StatsService.total_size(file_store, handles)
        return {
            "totalFiles": len(handles),
            "totalEvents": total_events,
            "totalSizeBytes": total_size,
            "totalSize": format_size(total_size),
            "recentEvents": [
                {
                    "eventName": event.event_name,
                    "lastUpload": event.last_upload.isoformat() if event.last_upload else None,
                }
                for event in recent_events
            ],
            "fileTypes": [{"type": row.file_type, "count": row.count} for row in file_types],
        }

    @staticmethod
    def global_stats(db: Session, file_store) -> Dict[str, Any]:
        """
        Admin dashboard statistics across all accounts.

        Events are counted per school, so two schools using the same event
        name count as two events.
        """
        total_users = db.query(func.count(User.id)).filter(User.role == UserRole.SCHOOL).scalar() or 0
        handles = [row.filename for row in db.query(MediaRecord.filename).all()]
        total_events = db.query(MediaRecord.user_id, MediaRecord.event_name).distinct().count()
        active_schools = db.query(func.count(func.distinct(MediaRecord.user_id))).scalar() or 0

        total_size = StatsService.total_size(file_store, handles)
        return {
            "totalUsers": total_users,
            "totalFiles": len(handles),
            "totalEvents": total_events,
            "activeSchools": active_schools,
            "totalSizeBytes": total_size,
            "totalSize": format_size(total_size),
        }
