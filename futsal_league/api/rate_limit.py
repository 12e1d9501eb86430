"""
Rate limiting for the HTTP adapter.

Write endpoints (apply, revert, lifecycle transitions, rebuilds) share one
per-client limit; reads are not limited.
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from futsal_league.core.config import settings


def get_rate_limit_key(request: Request) -> str:
    """Client address, honouring X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)

limit_writes = limiter.limit(settings.RATE_LIMIT_WRITES)
