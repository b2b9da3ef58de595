"""
api/routes/v1/audit.py -- Read-only view of the login audit log.

Routes:
  GET /api/v1/audit  -- most recent audit records, newest first (requires auth)

There is no write, update or delete route: records are only ever created by
AuthAuditPipeline during a login attempt.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import AuditRecordResponse
from auth.audit import AuditSink
from auth.dependencies import get_current_user
from auth.errors import StoreUnavailable

router = APIRouter()


@router.get("/audit", response_model=list[AuditRecordResponse])
def list_audit_records(
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
    username: Optional[str] = Query(default=None, max_length=255),
    current_user: str = Depends(get_current_user),
) -> list[AuditRecordResponse]:
    """Return recent login attempts, optionally filtered to one attempted username."""
    sink: AuditSink = request.app.state.audit_sink
    try:
        records = sink.recent(limit=limit, username=username)
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=503,
            detail={"code": "audit_unavailable", "message": "Audit log is unavailable."},
        ) from exc
    return [AuditRecordResponse.from_record(r) for r in records]
