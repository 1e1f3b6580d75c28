"""
Account (credential store) operations: registration, profile, password, bans.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.models import User, UserRole
from auth.security import validate_password, get_password_hash, verify_password
from core.errors import InvalidRequest, NotFound
from core.logger import logger
import config


PROFILE_FIELDS = ("school_name", "address", "contact_person", "phone", "email")

# Column sizes of users; address is unbounded text
MAX_USERNAME_LENGTH = 100
PROFILE_FIELD_LENGTHS = {"school_name": 255, "contact_person": 255, "phone": 50, "email": 255}


class AccountService:
    """Service for school account operations."""

    @staticmethod
    def register(
        db: Session,
        username: str,
        password: str,
        requested_role: Optional[str] = None,
    ) -> User:
        """
        Register a school account.

        Whatever role the client asks for, the stored role is school; the
        admin exists only in configuration.

        Raises:
            InvalidRequest: missing fields, weak password or duplicate username
        """
        username = (username or "").strip()
        if not username or not password:
            raise InvalidRequest("Username and password are required")

        is_valid, error_message = validate_password(password)
        if not is_valid:
            raise InvalidRequest(error_message)

        if len(username) > MAX_USERNAME_LENGTH:
            raise InvalidRequest(f"Username cannot be longer than {MAX_USERNAME_LENGTH} characters")
        if username == config.ADMIN_USERNAME or AccountService.username_taken(db, username):
            raise InvalidRequest("Username already exists")

        if requested_role and requested_role != UserRole.SCHOOL.value:
            logger.warning(f"Registration for {username} requested role '{requested_role}'; storing 'school'")

        user = User(
            username=username,
            hashed_password=get_password_hash(password),
            role=UserRole.SCHOOL,
            banned=False,
            password_changed_at=datetime.utcnow(),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name
            db.rollback()
            raise InvalidRequest("Username already exists")
        db.refresh(user)
        logger.info(f"Registered school account: {username} (id: {user.id})")
        return user

    @staticmethod
    def username_taken(db: Session, username: str) -> bool:
        return db.query(User.id).filter(User.username == username).first() is not None

    @staticmethod
    def get_account(db: Session, user_id: int) -> Optional[User]:
        """Get account by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def require_account(db: Session, user_id: int) -> User:
        user = AccountService.get_account(db, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    @staticmethod
    def update_profile(db: Session, user_id: int, changes: Dict[str, Any]) -> User:
        """
        Apply profile changes. Only keys in PROFILE_FIELDS are touched; a value
        of None leaves the field as it is, an empty string clears it.
        """
        user = AccountService.require_account(db, user_id)
        values = {}
        for field in PROFILE_FIELDS:
            if field not in changes or changes[field] is None:
                continue
            value = str(changes[field]).strip()
            max_length = PROFILE_FIELD_LENGTHS.get(field)
            if max_length and len(value) > max_length:
                raise InvalidRequest(f"Profile field {field} cannot be longer than {max_length} characters")
            values[field] = value or None
        for field, value in values.items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)
        logger.info(f"Profile updated for user {user_id}")
        return user

    @staticmethod
    def change_password(db: Session, user_id: int, current_password: str, new_password: str) -> None:
        """
        Replace the password after checking the current one.

        Raises:
            InvalidRequest: current password wrong or new password invalid
        """
        user = AccountService.require_account(db, user_id)
        if not verify_password(current_password or "", user.hashed_password):
            raise InvalidRequest("Current password is incorrect")

        is_valid, error_message = validate_password(new_password)
        if not is_valid:
            raise InvalidRequest(error_message)

        user.hashed_password = get_password_hash(new_password)
        user.password_changed_at = datetime.utcnow()
        db.commit()
        logger.info(f"Password changed for user {user_id}")

    @staticmethod
    def list_schools(db: Session) -> List[User]:
        """All school accounts ordered by username."""
        return (
            db.query(User)
            .filter(User.role == UserRole.SCHOOL)
            .order_by(User.username.asc())
            .all()
        )

    @staticmethod
    def set_banned(db: Session, school_id: int, banned: bool) -> User:
        """
        Set the ban flag of a school account.

        The update is scoped to school rows, so the admin (or any non-school
        id) is reported as not found.
        """
        user = db.query(User).filter(User.id == school_id, User.role == UserRole.SCHOOL).first()
        if user is None:
            raise NotFound("School not found")
        user.banned = bool(banned)
        db.commit()
        db.refresh(user)
        logger.info(f"School {school_id} {'banned' if banned else 'unbanned'}")
        return user

    @staticmethod
    def to_profile_dict(user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "username": user.username,
            "role": user.role.value,
            "schoolName": user.school_name or "",
            "address": user.address or "",
            "contactPerson": user.contact_person or "",
            "phone": user.phone or "",
            "email": user.email or "",
        }

    @staticmethod
    def to_admin_dict(user: User) -> Dict[str, Any]:
        data = AccountService.to_profile_dict(user)
        data.update({
            "banned": bool(user.banned),
            "createdAt": user.created_at.isoformat() if user.created_at else None,
        })
        return data
