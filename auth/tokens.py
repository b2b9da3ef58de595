"""
auth/tokens.py -- Session JWTs and the cookie that carries them.

A successful login hands the browser a signed token so /dashboard can tell
who is asking. The token is not part of the credential check itself; it only
exists after AuthAuditPipeline has returned ACCEPTED.

JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
     username and expiry. Verification returns None on any failure -- the
     route layer turns that into a redirect or a 401.

SECRET_KEY: sourced from core.config.get_settings(), which validates it at
     startup (auto-generated in dev mode, mandatory in production, >= 32 chars).

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

_settings = get_settings()

_ALGORITHM = "HS256"
COOKIE_NAME = "access_token"


def create_access_token(username: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT whose subject is `username`.

    expire_seconds of 0 uses Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {"sub": username, "exp": expire}
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> str | None:
    """Return the username from a valid token, or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) else None


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as an httpOnly cookie on `response`.

    httponly: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POSTs (CSRF mitigation).
    secure: HTTPS only when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both lapse together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME)
