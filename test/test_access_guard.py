from __future__ import annotations

import pytest

from auth.guard import ADMIN_OPERATIONS, AccessGuard, DenyReason, Operation
from core.errors import Banned, Forbidden, NotFound
from database.models import UserRole
from services.account_service import AccountService
from services.auth_service import AuthService, SessionClaim


def _school_claim(user) -> SessionClaim:
    return SessionClaim(user_id=user.id, username=user.username, role=UserRole.SCHOOL)


def test_school_may_use_own_operations(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")
    claim = _school_claim(user)

    for operation in Operation:
        decision = AccessGuard.authorize(session, claim, operation)
        assert decision.allowed is (operation not in ADMIN_OPERATIONS), operation


def test_school_is_denied_admin_operations(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")

    decision = AccessGuard.authorize(session, _school_claim(user), Operation.BULK_EXPORT)

    assert not decision.allowed
    assert decision.reason == DenyReason.FORBIDDEN
    with pytest.raises(Forbidden):
        decision.enforce()


def test_ban_is_read_live_on_every_check(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")
    claim = _school_claim(user)
    assert AccessGuard.authorize(session, claim, Operation.READ_OWN_MEDIA).allowed

    AccountService.set_banned(session, user.id, True)
    decision = AccessGuard.authorize(session, claim, Operation.READ_OWN_MEDIA)
    assert decision.reason == DenyReason.BANNED
    with pytest.raises(Banned):
        decision.enforce()

    AccountService.set_banned(session, user.id, False)
    assert AccessGuard.authorize(session, claim, Operation.READ_OWN_MEDIA).allowed


def test_claim_for_deleted_account_is_unauthenticated(session) -> None:
    claim = SessionClaim(user_id=4242, username="ghost", role=UserRole.SCHOOL)

    decision = AccessGuard.authorize(session, claim, Operation.READ_OWN_MEDIA)

    assert decision.reason == DenyReason.UNAUTHENTICATED


def test_admin_operations(session) -> None:
    school = AccountService.register(session, "riverside", "secret1")
    admin = AuthService.admin_claim()

    for operation in ADMIN_OPERATIONS - {Operation.TOGGLE_BAN}:
        assert AccessGuard.authorize(session, admin, operation).allowed
    assert AccessGuard.authorize(session, admin, Operation.TOGGLE_BAN, target_id=school.id).allowed
    assert AccessGuard.authorize(session, admin, Operation.READ_OWN_MEDIA).allowed


def test_admin_ban_toggle_needs_existing_school(session) -> None:
    decision = AccessGuard.authorize(session, AuthService.admin_claim(), Operation.TOGGLE_BAN, target_id=999)

    assert decision.reason == DenyReason.NOT_FOUND
    with pytest.raises(NotFound):
        decision.enforce()


@pytest.mark.parametrize(
    "operation",
    [Operation.UPLOAD_MEDIA, Operation.READ_PROFILE, Operation.UPDATE_PROFILE, Operation.CHANGE_PASSWORD],
)
def test_admin_has_no_stored_account(session, operation: Operation) -> None:
    decision = AccessGuard.authorize(session, AuthService.admin_claim(), operation)
    assert decision.reason == DenyReason.FORBIDDEN
