"""
Session issuing: credential checks and signed access tokens.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from database.models import User, UserRole
from auth.security import verify_password, create_access_token, decode_access_token
from core.errors import Unauthenticated, InvalidToken, Banned
from core.logger import logger
import config


@dataclass(frozen=True)
class SessionClaim:
    """Identity carried by an access token."""
    user_id: int
    username: str
    role: UserRole
    expires_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.user_id, "username": self.username, "role": self.role.value}


class AuthService:
    """Service for authentication operations."""

    @staticmethod
    def admin_claim() -> SessionClaim:
        """The configured admin identity."""
        return SessionClaim(user_id=config.ADMIN_ID, username=config.ADMIN_USERNAME, role=UserRole.ADMIN)

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> SessionClaim:
        """
        Verify credentials and return the identity to issue a token for.

        The configured admin name never reaches the users table. School
        accounts are checked against their bcrypt hash; a banned school is
        refused once its password has verified.

        Raises:
            Unauthenticated: unknown username or wrong password
            Banned: the school account is banned
        """
        if username == config.ADMIN_USERNAME:
            if secrets.compare_digest(password.encode("utf-8"), config.ADMIN_PASSWORD.encode("utf-8")):
                return AuthService.admin_claim()
            logger.warning("Failed admin login attempt")
            raise Unauthenticated("Invalid credentials")

        user = db.query(User).filter(User.username == username).first()
        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for username: {username}")
            raise Unauthenticated("Invalid credentials")

        if user.banned:
            logger.warning(f"Login refused for banned account: {username}")
            raise Banned()

        return SessionClaim(user_id=user.id, username=user.username, role=user.role)

    @staticmethod
    def issue_token(claim: SessionClaim) -> str:
        """Sign an access token for the identity. Expiry is ACCESS_TOKEN_EXPIRE_MINUTES from now."""
        data = {
            "sub": claim.username,
            "user_id": claim.user_id,
            "role": claim.role.value,
        }
        return create_access_token(data, config.SECRET_KEY)

    @staticmethod
    def validate_token(token: Optional[str]) -> SessionClaim:
        """
        Turn a bearer token back into its claim.

        Only the signature, structure and expiry are checked here; whether the
        account still exists or is banned is decided by the access guard.

        Raises:
            Unauthenticated: no token presented
            InvalidToken: bad signature, malformed payload or expired
        """
        if not token:
            raise Unauthenticated()

        payload = decode_access_token(token, config.SECRET_KEY)
        if payload is None:
            raise InvalidToken()

        username = payload.get("sub")
        user_id = payload.get("user_id")
        try:
            role = UserRole(payload.get("role"))
        except ValueError:
            raise InvalidToken()
        if not isinstance(username, str) or not isinstance(user_id, int) or isinstance(user_id, bool):
            raise InvalidToken()

        exp = payload.get("exp")
        expires_at = datetime.utcfromtimestamp(exp) if isinstance(exp, (int, float)) else None
        return SessionClaim(user_id=user_id, username=username, role=role, expires_at=expires_at)
