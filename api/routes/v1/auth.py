"""
api/routes/v1/auth.py -- JSON login endpoints.

Routes:
  POST /api/v1/auth/login   -- password login; returns a bearer token and sets the cookie
  POST /api/v1/auth/logout  -- clears cookie; 200
  GET  /api/v1/auth/me      -- current username (requires auth)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  Every login attempt goes through AuthAuditPipeline, so each one is audited.
  Unknown user, wrong password and store outage all produce the same 401
  body ("bad_credentials") -- callers cannot tell them apart.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse
from auth.dependencies import caller_metadata, get_current_user
from auth.pipeline import AuthAuditPipeline
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/login:   public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:  public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:      requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)  # must sit BELOW @router so the registered endpoint is the limited one
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a token and set the cookie."""
    pipeline: AuthAuditPipeline = request.app.state.pipeline
    caller_host, caller_address = caller_metadata(request)
    decision = pipeline.authenticate(body.username, body.password, caller_host, caller_address)
    if not decision.accepted:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_access_token(body.username)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            username=body.username,
            access_token=token,
            expires_in=get_settings().token_expire_seconds,
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me")
def me(username: str = Depends(get_current_user)) -> dict:
    """Return the username of the currently authenticated caller."""
    return {"username": username}
