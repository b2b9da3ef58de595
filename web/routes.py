"""
web/routes.py -- Jinja2 template routes for the ShellGate web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same pipeline, same stores) but return HTML instead of JSON.

Routes:
  GET  /           -- login form (signed-in users are sent to /dashboard)
  POST /           -- handle password login
  GET  /dashboard  -- command prompt (auth required)
  POST /dashboard  -- run one command, render its output (auth required)
  POST /logout     -- clear cookie, redirect to /
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import caller_metadata, try_get_current_user
from auth.pipeline import AuthAuditPipeline
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie
from core.commands import COMMANDS, run_command

logger = logging.getLogger("shellgate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Shown for every rejected login. Unknown user, wrong password and store
# outage must look identical from the outside.
_BAD_CREDENTIALS = "Invalid username or password."


def _dashboard_page(request: Request, username: str, command: str = "", output: str = "") -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"username": username, "command": command, "output": output, "commands": sorted(COMMANDS)},
    )


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page."""
    if try_get_current_user(request) is not None:
        return RedirectResponse("/dashboard", status_code=302)
    return templates.TemplateResponse(request, "login.html", {"error_msg": None})


@router.post("/", response_class=HTMLResponse)
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
) -> HTMLResponse:
    """Handle the login form.

    Missing fields arrive as empty strings and go through the pipeline like
    any other attempt, so they are audited and rejected the normal way.
    """
    pipeline: AuthAuditPipeline = request.app.state.pipeline
    caller_host, caller_address = caller_metadata(request)
    decision = pipeline.authenticate(username, password, caller_host, caller_address)

    if not decision.accepted:
        resp = templates.TemplateResponse(
            request,
            "login.html",
            {"error_msg": _BAD_CREDENTIALS},
            status_code=401,
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = RedirectResponse("/dashboard", status_code=302)
    set_auth_cookie(resp, create_access_token(username))
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the JWT cookie and redirect to the login page."""
    resp = RedirectResponse("/", status_code=302)
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    username = try_get_current_user(request)
    if username is None:
        return RedirectResponse("/", status_code=302)
    return _dashboard_page(request, username)


@router.post("/dashboard", response_class=HTMLResponse)
def dashboard_command(request: Request, command: str = Form("")) -> HTMLResponse:
    """Run one dashboard command and render its output under the prompt."""
    username = try_get_current_user(request)
    if username is None:
        return RedirectResponse("/", status_code=302)
    logger.info("Dashboard command %r by %r", command, username)
    return _dashboard_page(request, username, command=command, output=run_command(command))
