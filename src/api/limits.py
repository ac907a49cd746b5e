from slowapi import Limiter
from slowapi.util import get_remote_address

from config import settings

# Per-client-IP limiter shared by every route; storage is in-memory.
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def request_limit() -> str:
    """Limit applied to each public route, read per request from settings."""
    return settings.rate_limit
