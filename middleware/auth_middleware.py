"""
Request logging for calls that reach protected routes without credentials.

This middleware never blocks; token validation and the access guard run as
FastAPI dependencies so errors carry the right status and message.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import List

from core.logger import logger

# Exact public paths
PUBLIC_ROUTES: List[str] = [
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/register",
    "/api/login",
]

# Public path prefixes
PUBLIC_PREFIXES: List[str] = [
    "/uploads/",
    "/docs/",
]


def is_public_path(path: str, public_routes: List[str] = None, public_prefixes: List[str] = None) -> bool:
    routes = PUBLIC_ROUTES if public_routes is None else public_routes
    prefixes = PUBLIC_PREFIXES if public_prefixes is None else public_prefixes
    return path in routes or any(path.startswith(prefix) for prefix in prefixes)


class AuthRequiredMiddleware(BaseHTTPMiddleware):
    """Logs unauthenticated requests to non-public paths."""

    def __init__(self, app, public_routes: List[str] = None, public_prefixes: List[str] = None):
        super().__init__(app)
        self.public_routes = public_routes
        self.public_prefixes = public_prefixes

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if request.method != "OPTIONS" and not is_public_path(path, self.public_routes, self.public_prefixes):
            if not request.headers.get("authorization"):
                client = request.client.host if request.client else "unknown"
                logger.warning(f"Request without authentication headers: {request.method} {path} from {client}")

        return await call_next(request)
