from __future__ import annotations

from datetime import timedelta

import pytest

import config
from auth.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    validate_password,
    verify_password,
)
from core.errors import Banned, InvalidRequest, InvalidToken, Unauthenticated
from database.models import UserRole
from services.account_service import AccountService
from services.auth_service import AuthService


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)


def test_password_hash_round_trip() -> None:
    hashed = get_password_hash("secret1")

    assert hashed != "secret1"
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_verify_password_rejects_garbage_hash() -> None:
    assert not verify_password("secret1", "not-a-hash")
    assert not verify_password("", get_password_hash("secret1"))


def test_verify_password_rejects_overlong_password() -> None:
    hashed = get_password_hash("x" * 72)

    assert verify_password("x" * 72, hashed)
    assert not verify_password("x" * 100, hashed)
    assert not verify_password("é" * 40, hashed)


@pytest.mark.parametrize(
    "password, valid",
    [("", False), ("12345", False), ("123456", True), ("x" * 73, False)],
)
def test_validate_password(password: str, valid: bool) -> None:
    is_valid, _ = validate_password(password)
    assert is_valid is valid


def test_access_token_round_trip() -> None:
    token = create_access_token({"sub": "riverside", "user_id": 1, "role": "school"}, "key")
    payload = decode_access_token(token, "key")

    assert payload["sub"] == "riverside"
    assert payload["type"] == "access"


def test_decode_rejects_wrong_key_and_expired_token() -> None:
    token = create_access_token({"sub": "riverside"}, "key")
    expired = create_access_token({"sub": "riverside"}, "key", expires_delta=timedelta(seconds=-5))

    assert decode_access_token(token, "other-key") is None
    assert decode_access_token(expired, "key") is None
    assert decode_access_token("not.a.token", "key") is None


def test_admin_login_is_configured_identity(session) -> None:
    claim = AuthService.authenticate(session, config.ADMIN_USERNAME, config.ADMIN_PASSWORD)

    assert claim.role == UserRole.ADMIN
    assert claim.user_id == 0
    assert claim.is_admin


def test_admin_wrong_password_is_rejected(session) -> None:
    with pytest.raises(Unauthenticated):
        AuthService.authenticate(session, config.ADMIN_USERNAME, "wrong-password")


def test_school_login_and_wrong_password(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")

    claim = AuthService.authenticate(session, "riverside", "secret1")
    assert claim.user_id == user.id
    assert claim.role == UserRole.SCHOOL

    with pytest.raises(Unauthenticated):
        AuthService.authenticate(session, "riverside", "secret2")
    with pytest.raises(Unauthenticated):
        AuthService.authenticate(session, "nobody", "secret1")


def test_banned_school_cannot_log_in(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")
    AccountService.set_banned(session, user.id, True)

    with pytest.raises(Banned):
        AuthService.authenticate(session, "riverside", "secret1")


def test_register_always_stores_school_role(session) -> None:
    user = AccountService.register(session, "sneaky", "secret1", requested_role="admin")
    assert user.role == UserRole.SCHOOL


def test_register_rejects_duplicates_and_admin_name(session) -> None:
    AccountService.register(session, "riverside", "secret1")

    with pytest.raises(InvalidRequest):
        AccountService.register(session, "riverside", "secret1")
    with pytest.raises(InvalidRequest):
        AccountService.register(session, config.ADMIN_USERNAME, "secret1")
    with pytest.raises(InvalidRequest):
        AccountService.register(session, "weak", "123")
    with pytest.raises(InvalidRequest):
        AccountService.register(session, "r" * 101, "secret1")


def test_register_race_on_same_username(session, monkeypatch: pytest.MonkeyPatch) -> None:
    AccountService.register(session, "riverside", "secret1")
    # Both requests passed the existence check before either committed
    monkeypatch.setattr(AccountService, "username_taken", staticmethod(lambda db, username: False))

    with pytest.raises(InvalidRequest, match="Username already exists"):
        AccountService.register(session, "riverside", "secret2")

    assert [user.username for user in AccountService.list_schools(session)] == ["riverside"]


def test_profile_fields_are_bounded(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")

    with pytest.raises(InvalidRequest):
        AccountService.update_profile(session, user.id, {"school_name": "Riverside High", "phone": "1" * 51})

    assert AccountService.require_account(session, user.id).school_name is None


def test_issued_token_validates_back_to_claim(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")
    claim = AuthService.authenticate(session, "riverside", "secret1")

    restored = AuthService.validate_token(AuthService.issue_token(claim))

    assert restored.user_id == user.id
    assert restored.username == "riverside"
    assert restored.role == UserRole.SCHOOL
    assert restored.expires_at is not None


def test_validate_token_errors() -> None:
    with pytest.raises(Unauthenticated):
        AuthService.validate_token(None)
    with pytest.raises(InvalidToken):
        AuthService.validate_token("garbage")

    bad_role = create_access_token({"sub": "x", "user_id": 1, "role": "superuser"}, config.SECRET_KEY)
    with pytest.raises(InvalidToken):
        AuthService.validate_token(bad_role)


def test_change_password(session) -> None:
    user = AccountService.register(session, "riverside", "secret1")

    with pytest.raises(InvalidRequest):
        AccountService.change_password(session, user.id, "wrong", "secret2")
    with pytest.raises(InvalidRequest):
        AccountService.change_password(session, user.id, "x" * 100, "secret2")

    AccountService.change_password(session, user.id, "secret1", "secret2")
    assert AuthService.authenticate(session, "riverside", "secret2").user_id == user.id
