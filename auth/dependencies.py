"""
auth/dependencies.py -- FastAPI Depends() helpers for session checks.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the web login form.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

A token is only honoured while its username still exists in the credential
store, so removing a credential out-of-band ends that user's sessions on the
next request.

Layer rule: no imports from web/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.errors import StoreUnavailable
from auth.pipeline import STORE_UNAVAILABLE
from auth.store import CredentialStore
from auth.tokens import COOKIE_NAME, decode_access_token

logger = logging.getLogger("shellgate.auth")


def caller_metadata(request: Request) -> tuple[str, str]:
    """Return (caller_host, caller_address) for the audit record.

    caller_host is the Host header the client sent; caller_address is the
    peer as "ip:port". Both are recorded as-is, never validated.
    """
    host = request.headers.get("host", "")
    if request.client is None:
        return host, "unknown"
    return host, f"{request.client.host}:{request.client.port}"


def try_get_current_user(request: Request) -> str | None:
    """Return the signed-in username, or None.

    Never raises -- a store outage is logged and treated as signed out.
    """
    token: str | None = request.cookies.get(COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    if not token:
        return None

    username = decode_access_token(token)
    if username is None:
        return None

    store: CredentialStore = request.app.state.credential_store
    try:
        if store.lookup(username) is None:
            return None
    except StoreUnavailable as exc:
        logger.error(
            "Credential store unavailable during session check: %s",
            exc,
            extra={"condition": STORE_UNAVAILABLE},
        )
        return None
    return username


def get_current_user(request: Request) -> str:
    """Require a session. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(username: str = Depends(get_current_user)): ...
    """
    username = try_get_current_user(request)
    if username is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return username
