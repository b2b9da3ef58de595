"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and api/routes/v1/auth.py
(to apply the login limit with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
Separate instances per module would each count independently and the limit
would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Return the configured login limit, e.g. "10/minute"."""
    return get_settings().login_rate_limit
