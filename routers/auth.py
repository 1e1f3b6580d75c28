"""
Registration and login endpoints.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, Dict, Any

from auth.dependencies import get_db_session
from services.auth_service import AuthService
from services.account_service import AccountService
from services.audit_service import AuditService
from core.errors import PortalError
import config


router = APIRouter(prefix="/api", tags=["authentication"])


class RegisterRequest(BaseModel):
    """School registration request. `role` is accepted but always stored as school."""
    username: str
    password: str
    role: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """Register a school account."""
    user = AccountService.register(db, payload.username, payload.password, payload.role)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="user_register",
        user_id=user.id,
        resource_type="user",
        resource_id=user.id
    )

    return {
        "message": "User registered successfully",
        "user": AccountService.to_profile_dict(user),
    }


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db_session)
):
    """Log in as a school or as the configured admin."""
    try:
        claim = AuthService.authenticate(db, payload.username, payload.password)
    except PortalError as e:
        AuditService.log_from_request(
            db=db,
            request=request,
            action="login_failed",
            resource_type="user",
            details={"username": payload.username, "reason": e.detail}
        )
        raise

    AuditService.log_from_request(
        db=db,
        request=request,
        action="user_login",
        user_id=claim.user_id,
        resource_type="user",
        resource_id=claim.user_id
    )

    return TokenResponse(
        token=AuthService.issue_token(claim),
        expires_in=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=claim.to_dict(),
    )
