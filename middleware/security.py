"""
Security middleware: per-IP rate limiting, security headers, CORS and trusted hosts.
"""
import time
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.logger import logger

MINUTE = 60
HOUR = 3600


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting per client IP."""

    def __init__(self, app, requests_per_minute: int = 60, requests_per_hour: int = 1000):
        """
        Initialize rate limiting middleware.

        Args:
            app: ASGI application
            requests_per_minute: Max requests per minute per IP
            requests_per_hour: Max requests per hour per IP
        """
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self.cleanup_interval = 300
        self.last_cleanup = time.time()

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()

        if current_time - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_entries(current_time)
            self.last_cleanup = current_time

        retry_after = self._check_rate_limit(client_ip, current_time)
        if retry_after is not None:
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please try again later."},
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)

    def _check_rate_limit(self, client_ip: str, current_time: float) -> Optional[int]:
        """Record the request and return None, or the seconds to wait when over a limit."""
        timestamps = self.requests[client_ip]
        while timestamps and current_time - timestamps[0] >= HOUR:
            timestamps.popleft()

        if len(timestamps) >= self.requests_per_hour:
            return max(1, int(HOUR - (current_time - timestamps[0])))

        in_last_minute = [t for t in timestamps if current_time - t < MINUTE]
        if len(in_last_minute) >= self.requests_per_minute:
            return max(1, int(MINUTE - (current_time - in_last_minute[0])))

        timestamps.append(current_time)
        return None

    def _cleanup_old_entries(self, current_time: float):
        for ip in list(self.requests.keys()):
            timestamps = self.requests[ip]
            while timestamps and current_time - timestamps[0] >= HOUR:
                timestamps.popleft()
            if not timestamps:
                del self.requests[ip]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def setup_cors(app, allowed_origins: List[str], allowed_methods: List[str] = None):
    """
    Setup CORS middleware.

    Args:
        app: FastAPI application
        allowed_origins: List of allowed origins
        allowed_methods: List of allowed HTTP methods
    """
    if allowed_methods is None:
        allowed_methods = ["GET", "POST", "PUT", "OPTIONS", "HEAD"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=allowed_methods,
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )


def setup_trusted_hosts(app, allowed_hosts: List[str]):
    """Reject requests whose Host header is not in `allowed_hosts`."""
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
