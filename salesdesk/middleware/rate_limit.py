from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass

from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from salesdesk.api.errors import error_response
from salesdesk.core.auth import decode_token
from salesdesk.core.config import Settings, get_settings
from salesdesk.middleware.request_context import resolve_client_ip


# Unauthenticated credential exchanges, limited per client address.
CREDENTIAL_PATHS = frozenset({"/api/auth/login", "/api/auth/refresh"})
WINDOW_SECONDS = 60
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class BucketKey:
    subject: str
    route_group: str


@dataclass
class _Bucket:
    tokens: float
    refilled_at: float


class TokenBucketLimiter:
    """Per-key token buckets refilled continuously over a fixed window."""

    def __init__(self, window_seconds: int = WINDOW_SECONDS) -> None:
        self.window_seconds = window_seconds
        self._lock = threading.Lock()
        self._buckets: dict[BucketKey, _Bucket] = {}

    def acquire(self, key: BucketKey, capacity: int) -> int:
        """Take one token. Returns 0 when allowed, otherwise seconds until a token frees up."""
        if capacity <= 0:
            return self.window_seconds

        rate = capacity / self.window_seconds
        now = time.monotonic()
        with self._lock:
            bucket = self._buckets.setdefault(key, _Bucket(tokens=float(capacity), refilled_at=now))
            bucket.tokens = min(float(capacity), bucket.tokens + (now - bucket.refilled_at) * rate)
            bucket.refilled_at = now
            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return 0
            return max(1, math.ceil((1.0 - bucket.tokens) / rate))

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = TokenBucketLimiter()


def reset_rate_limiter() -> None:
    _limiter.clear()


def _token_subject(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    try:
        claims = decode_token(auth_header.removeprefix("Bearer "))
    except JWTError:
        return None
    subject = claims.get("sub")
    return str(subject) if subject else None


def _route_group(path: str) -> str:
    # /api/<group>/...
    parts = [part for part in path.split("/") if part]
    return parts[1] if len(parts) > 1 else "api"


def bucket_for(request: Request, settings: Settings) -> tuple[BucketKey, int] | None:
    path = request.url.path
    if not path.startswith("/api/") or request.method.upper() not in MUTATING_METHODS:
        return None
    client = f"ip:{resolve_client_ip(request) or 'unknown'}"
    if path in CREDENTIAL_PATHS:
        return BucketKey(client, path.rsplit("/", 1)[-1]), settings.rate_limit_login_per_minute
    subject = _token_subject(request) or client
    return BucketKey(subject, _route_group(path)), settings.rate_limit_mutations_per_minute


class MutationRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        bucket = None if settings.rate_limit_disabled else bucket_for(request, settings)
        if bucket is None:
            return await call_next(request)

        key, capacity = bucket
        retry_after = _limiter.acquire(key, capacity)
        if not retry_after:
            return await call_next(request)

        response = error_response(request, status_code=429, message="Too many requests")
        response.headers["Retry-After"] = str(retry_after)
        correlation_id = getattr(request.state, "correlation_id", None)
        if correlation_id:
            response.headers["X-Correlation-Id"] = correlation_id
        return response
