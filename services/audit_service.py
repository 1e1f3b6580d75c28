"""
Audit trail for account and media actions.
"""
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from fastapi import Request

from database.models import AuditLog
from core.logger import logger


def client_ip(request: Request) -> Optional[str]:
    """Caller address, preferring the first X-Forwarded-For hop behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


class AuditService:
    """Service for audit logging."""

    @staticmethod
    def log_action(
        db: Session,
        action: str,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """
        Write one audit entry.

        Args:
            db: Database session
            action: Action name (e.g., "media_upload", "login_failed")
            user_id: Acting account ID (0 for the configured admin)
            resource_type: Type of resource (e.g., "media", "user")
            resource_id: ID of resource
            ip_address: IP address
            user_agent: User agent string
            details: Additional details; never credentials

        Returns:
            Created AuditLog
        """
        audit_log = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            details=details
        )
        db.add(audit_log)
        db.commit()
        db.refresh(audit_log)
        logger.debug(f"Audit: {action} by {user_id} on {resource_type}:{resource_id}")
        return audit_log

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        action: str,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """Write one audit entry with the caller's address and user agent taken from the request."""
        return AuditService.log_action(
            db=db,
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
            details=details
        )
