"""
Authentication dependencies for FastAPI.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Path, Security
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from auth.security import security
from auth.guard import AccessGuard, Operation
from services.auth_service import AuthService, SessionClaim
from core.validators import MAX_RECORD_ID
import config


def get_db_session():
    """Get database session."""
    if not config.db:
        raise HTTPException(status_code=503, detail="Database not initialized")
    with config.db.get_session() as session:
        yield session


def get_file_store():
    """Get the configured file store."""
    if not config.file_store:
        raise HTTPException(status_code=503, detail="File storage not initialized")
    return config.file_store


async def get_current_claim(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> SessionClaim:
    """
    Validate the bearer token and return its claim.

    Raises:
        Unauthenticated: no bearer token
        InvalidToken: token rejected
    """
    token = credentials.credentials if credentials else None
    return AuthService.validate_token(token)


def require(operation: Operation):
    """
    Dependency factory: validated claim that passed the access guard for `operation`.

    Args:
        operation: Operation the route performs

    Returns:
        Dependency function
    """
    async def guard_checker(
        claim: SessionClaim = Depends(get_current_claim),
        db: Session = Depends(get_db_session),
    ) -> SessionClaim:
        AccessGuard.authorize(db, claim, operation).enforce()
        return claim

    return guard_checker


async def require_ban_toggle(
    school_id: int = Path(..., ge=0, le=MAX_RECORD_ID, description="School account ID"),
    claim: SessionClaim = Depends(get_current_claim),
    db: Session = Depends(get_db_session),
) -> SessionClaim:
    """Guard for ban toggling; the target must be an existing school."""
    AccessGuard.authorize(db, claim, Operation.TOGGLE_BAN, target_id=school_id).enforce()
    return claim
