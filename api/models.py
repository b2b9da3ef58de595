"""
API request and response models for ShellGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import AuditRecord, Decision, Outcome

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No whitespace stripping and no length bounds: the credential check is exact,
    and empty or over-long input is an ordinary (failing, audited) attempt.
    """

    username: str = ""
    password: str = ""


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response for a successful POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    status: Decision = Decision.ACCEPTED
    username: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class AuditRecordResponse(BaseModel):
    """One row of GET /api/v1/audit."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    outcome: Outcome
    timestamp: str
    caller_host: str
    caller_address: str

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        return cls(
            id=record.id or 0,
            username=record.username,
            outcome=record.outcome,
            timestamp=record.timestamp or "",
            caller_host=record.caller_host,
            caller_address=record.caller_address,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
