"""
Database models for the school media portal.
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, JSON, Index, TypeDecorator
)
from sqlalchemy.orm import declarative_base, relationship
import enum

Base = declarative_base()


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """Account roles. ADMIN is the configured singleton and is never stored."""
    ADMIN = "admin"
    SCHOOL = "school"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """School account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(EnumValue(UserRole, length=20), default=UserRole.SCHOOL, nullable=False)

    # Profile fields (all optional, editable by the owner)
    school_name = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    contact_person = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)

    banned = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    password_changed_at = Column(DateTime, nullable=True)

    media = relationship("MediaRecord", back_populates="owner")

    __table_args__ = (
        Index('idx_user_role', 'role'),
    )

    @property
    def display_name(self) -> str:
        return self.school_name or self.username


class MediaRecord(Base):
    """One uploaded file. Events are the distinct (user_id, event_name) pairs of this table."""
    __tablename__ = "media"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(255), unique=True, nullable=False)  # Stored handle in the file store
    original_name = Column(String(255), nullable=True)  # Name as uploaded by the client
    file_type = Column(String(20), nullable=False)  # Lower-cased extension, e.g. ".jpg"
    event_name = Column(String(255), nullable=False)
    remarks = Column(Text, nullable=True)
    tags = Column(Text, nullable=True)  # Comma-separated
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    owner = relationship("User", back_populates="media")

    __table_args__ = (
        Index('idx_media_user_event', 'user_id', 'event_name'),
        Index('idx_media_uploaded', 'uploaded_at'),
    )


class AuditLog(Base):
    """Audit log for security and compliance."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True)  # 0 for the configured admin, so no FK
    action = Column(String(100), nullable=False)  # e.g., "media_upload", "login", "school_ban"
    resource_type = Column(String(50), nullable=True)  # e.g., "media", "user"
    resource_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(String(500), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_user', 'user_id'),
        Index('idx_audit_action', 'action'),
    )
