"""
Error taxonomy shared by services, the access guard and the HTTP layer.
"""
from typing import Optional


class PortalError(Exception):
    """Base error; carries the HTTP status the API layer answers with."""
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidRequest(PortalError):
    """Malformed or missing input. Always client-correctable."""
    status_code = 400
    default_detail = "Invalid request"


class Unauthenticated(PortalError):
    """No credentials, wrong credentials, or an identity that no longer exists."""
    status_code = 401
    default_detail = "Authentication required"


class InvalidToken(Unauthenticated):
    """Token present but malformed, badly signed or expired."""
    default_detail = "Invalid or expired token"


class Forbidden(PortalError):
    status_code = 403
    default_detail = "Access denied"


class Banned(Forbidden):
    default_detail = "Your account has been banned by the administrator"


class NotFound(PortalError):
    status_code = 404
    default_detail = "Not found"


class StorageFailure(PortalError):
    """
    Unexpected database or file-store failure.

    The detail is always the generic message; the cause is logged where it
    is caught.
    """
    status_code = 500
