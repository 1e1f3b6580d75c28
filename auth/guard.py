"""
Access guard: decides whether a caller may perform an operation.

Role comes from the token claim, but the ban flag and the existence of a
school account are always re-read from the users table.
"""
import enum
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session

from database.models import User, UserRole
from services.auth_service import SessionClaim
from core.errors import Unauthenticated, Forbidden, Banned, NotFound, PortalError
from core.logger import logger


class Operation(str, enum.Enum):
    """Guarded operations."""
    # Self-scoped
    UPLOAD_MEDIA = "upload_media"
    READ_OWN_MEDIA = "read_own_media"
    READ_OWN_EVENTS = "read_own_events"
    READ_OWN_STATS = "read_own_stats"
    READ_PROFILE = "read_profile"
    UPDATE_PROFILE = "update_profile"
    CHANGE_PASSWORD = "change_password"
    # Admin only
    LIST_ACCOUNTS = "list_accounts"
    TOGGLE_BAN = "toggle_ban"
    VIEW_ALL_MEDIA = "view_all_media"
    GLOBAL_STATS = "global_stats"
    BULK_EXPORT = "bulk_export"


ADMIN_OPERATIONS = frozenset({
    Operation.LIST_ACCOUNTS,
    Operation.TOGGLE_BAN,
    Operation.VIEW_ALL_MEDIA,
    Operation.GLOBAL_STATS,
    Operation.BULK_EXPORT,
})

# Operations that need a stored account row to act on
ACCOUNT_OPERATIONS = frozenset({
    Operation.UPLOAD_MEDIA,
    Operation.READ_PROFILE,
    Operation.UPDATE_PROFILE,
    Operation.CHANGE_PASSWORD,
})


class DenyReason(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    BANNED = "banned"
    NOT_FOUND = "not_found"


_ERRORS = {
    DenyReason.UNAUTHENTICATED: Unauthenticated,
    DenyReason.FORBIDDEN: Forbidden,
    DenyReason.BANNED: Banned,
    DenyReason.NOT_FOUND: NotFound,
}


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""
    allowed: bool
    reason: Optional[DenyReason] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, message: Optional[str] = None) -> "Decision":
        return cls(allowed=False, reason=reason, message=message)

    def to_error(self) -> PortalError:
        return _ERRORS[self.reason](self.message)

    def enforce(self) -> None:
        """Raise the matching error when the decision is a deny."""
        if not self.allowed:
            raise self.to_error()


class AccessGuard:
    """Per-request policy evaluator."""

    @staticmethod
    def authorize(
        db: Session,
        claim: SessionClaim,
        operation: Operation,
        target_id: Optional[int] = None,
    ) -> Decision:
        """
        Evaluate the policy for one operation.

        Args:
            db: Database session
            claim: Validated token claim of the caller
            operation: Operation being attempted
            target_id: Account the operation acts on (ban toggling)

        Returns:
            Decision
        """
        if claim.role == UserRole.ADMIN:
            return AccessGuard._authorize_admin(db, operation, target_id)

        user = db.query(User).filter(User.id == claim.user_id).first()
        if user is None or user.role != UserRole.SCHOOL:
            logger.warning(f"Token for unknown account {claim.user_id} ({claim.username})")
            return Decision.deny(DenyReason.UNAUTHENTICATED, "Account no longer exists")

        if user.banned:
            logger.info(f"Denied {operation.value} for banned account {user.id}")
            return Decision.deny(DenyReason.BANNED)

        if operation in ADMIN_OPERATIONS:
            return Decision.deny(DenyReason.FORBIDDEN, "Access denied. Admin only.")

        return Decision.allow()

    @staticmethod
    def _authorize_admin(db: Session, operation: Operation, target_id: Optional[int]) -> Decision:
        if operation in ACCOUNT_OPERATIONS:
            return Decision.deny(
                DenyReason.FORBIDDEN,
                "The admin account is managed through configuration"
            )

        if operation == Operation.TOGGLE_BAN:
            target = None
            if target_id is not None:
                target = db.query(User).filter(
                    User.id == target_id,
                    User.role == UserRole.SCHOOL
                ).first()
            if target is None:
                return Decision.deny(DenyReason.NOT_FOUND, "School not found")

        return Decision.allow()
