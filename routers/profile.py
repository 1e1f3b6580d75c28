"""
Profile APIs for school accounts.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional, Union, Literal

from auth.dependencies import get_db_session, require
from auth.guard import Operation
from services.auth_service import SessionClaim
from services.account_service import AccountService
from services.audit_service import AuditService


router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdate(BaseModel):
    """Profile changes. Omitted fields stay as they are; an empty string clears a field."""
    schoolName: Optional[str] = None
    address: Optional[str] = None
    contactPerson: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[Union[EmailStr, Literal[""]]] = None

    def to_changes(self) -> dict:
        return {
            "school_name": self.schoolName,
            "address": self.address,
            "contact_person": self.contactPerson,
            "phone": self.phone,
            "email": self.email,
        }


class PasswordChange(BaseModel):
    currentPassword: str
    newPassword: str


@router.get("")
async def get_profile(
    claim: SessionClaim = Depends(require(Operation.READ_PROFILE)),
    db: Session = Depends(get_db_session)
):
    """Get the caller's profile."""
    user = AccountService.require_account(db, claim.user_id)
    return AccountService.to_profile_dict(user)


@router.put("")
async def update_profile(
    payload: ProfileUpdate,
    request: Request,
    claim: SessionClaim = Depends(require(Operation.UPDATE_PROFILE)),
    db: Session = Depends(get_db_session)
):
    """Update the caller's profile."""
    changes = payload.to_changes()
    user = AccountService.update_profile(db, claim.user_id, changes)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="profile_update",
        user_id=claim.user_id,
        resource_type="user",
        resource_id=claim.user_id,
        details={"fields": sorted(key for key, value in changes.items() if value is not None)}
    )

    return {
        "message": "Profile updated successfully",
        "user": AccountService.to_profile_dict(user),
    }


@router.put("/password")
async def change_password(
    payload: PasswordChange,
    request: Request,
    claim: SessionClaim = Depends(require(Operation.CHANGE_PASSWORD)),
    db: Session = Depends(get_db_session)
):
    """Change the caller's password."""
    AccountService.change_password(db, claim.user_id, payload.currentPassword, payload.newPassword)

    AuditService.log_from_request(
        db=db,
        request=request,
        action="password_change",
        user_id=claim.user_id,
        resource_type="user",
        resource_id=claim.user_id
    )

    return {"message": "Password updated successfully"}
