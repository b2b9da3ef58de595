#!/usr/bin/env python3
"""
ShellGate -- credential-gated command dashboard with an append-only login audit log.

Usage:
  python main.py serve
  python main.py serve --host 127.0.0.1 --port 9006
  python main.py add-user alice
  python main.py add-user alice --password s3cret
  python main.py audit
  python main.py audit --user alice --limit 20
  python main.py audit --json
  python main.py check alice

Environment variables (or .env):
  DATABASE_URL    SQLAlchemy URL for credentials and the audit log
                  (default: sqlite file shellgate.db next to this script)
  SECRET_KEY      >= 32 chars; required unless DEBUG=true
  SECRET_SCHEME   "plain" (exact comparison) or "bcrypt" (stored secrets are hashes)
"""

import argparse
import getpass
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.audit import AuditSink
from auth.errors import ShellGateError
from auth.matching import get_secret_matcher, prepare_secret
from auth.models import Credential
from auth.pipeline import AuthAuditPipeline
from auth.store import CredentialStore
from core.config import Settings, get_settings

logger = logging.getLogger("shellgate.cli")

_BCRYPT_MAX_BYTES = 72


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _cmd_add_user(args: argparse.Namespace, settings: Settings) -> int:
    password: Optional[str] = args.password
    if password is None:
        password = getpass.getpass(f"Password for {args.username}: ")
        if password != getpass.getpass("Repeat password: "):
            print("  [!] Passwords do not match.")
            return 1
    if settings.secret_scheme == "bcrypt" and len(password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        print(f"  [!] bcrypt passwords are limited to {_BCRYPT_MAX_BYTES} bytes.")
        return 1

    store = CredentialStore(settings.database_url, timeout=settings.db_timeout_seconds)
    try:
        store.add_credential(Credential(args.username, prepare_secret(password, settings.secret_scheme)))
    except IntegrityError:
        print(f"  [!] User '{args.username}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Added user '{args.username}' ({settings.secret_scheme} scheme).")
    return 0


def _cmd_audit(args: argparse.Namespace, settings: Settings) -> int:
    sink = AuditSink(settings.database_url, timeout=settings.db_timeout_seconds)
    try:
        records = sink.recent(limit=args.limit, username=args.user)
    finally:
        sink.close()

    if args.json:
        print(json.dumps([asdict(r) for r in records], indent=2, default=str))
        return 0
    if not records:
        print("  No login attempts recorded.")
        return 0
    for r in records:
        print(
            f"  {r.id:>6}  {r.timestamp}  {r.outcome.value:<7}  {r.username:<20}  "
            f"{r.caller_host}  {r.caller_address}"
        )
    return 0


def _cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    store = CredentialStore(settings.database_url, timeout=settings.db_timeout_seconds)
    sink = AuditSink(settings.database_url, timeout=settings.db_timeout_seconds)
    try:
        pipeline = AuthAuditPipeline(store, sink, matcher=get_secret_matcher(settings.secret_scheme))
        password = getpass.getpass(f"Password for {args.username}: ")
        decision = pipeline.authenticate(args.username, password, "cli", "local")
    finally:
        store.close()
        sink.close()
    print(f"  {decision.value.upper()}")
    return 0 if decision.accepted else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellgate",
        description="Credential-gated command dashboard with an append-only login audit log.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the web server")
    serve.add_argument("--host", default=None, help="Listen address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT setting, 9006)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    add_user = sub.add_parser("add-user", help="Store a new credential")
    add_user.add_argument("username")
    add_user.add_argument("--password", default=None, help="Password (prompted if omitted)")
    add_user.set_defaults(func=_cmd_add_user)

    audit = sub.add_parser("audit", help="Show recent login attempts")
    audit.add_argument("--limit", type=int, default=50, help="Maximum records to show (default: 50)")
    audit.add_argument("--user", default=None, help="Only attempts for this username")
    audit.add_argument("--json", action="store_true", help="Output as JSON")
    audit.set_defaults(func=_cmd_audit)

    check = sub.add_parser("check", help="Try a login from the terminal (recorded in the audit log)")
    check.add_argument("username")
    check.set_defaults(func=_cmd_check)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"  [!] Configuration error: {e}")
        return 2
    try:
        return args.func(args, settings)
    except ShellGateError as e:
        logger.error("%s", e)
        print(f"  [!] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
