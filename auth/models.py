"""
auth/models.py -- Domain dataclasses for credentials and login audit records.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores and the pipeline do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    """Classification of one authentication attempt, as persisted in logs.outcome."""

    SUCCESS = "success"
    FAILURE = "failure"


class Decision(str, Enum):
    """What the caller of AuthAuditPipeline.authenticate() gets back.

    There is deliberately no third value: a store outage is a REJECTED
    decision, reported to operators through logging rather than to the caller.
    """

    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def accepted(self) -> bool:
        return self is Decision.ACCEPTED


@dataclass(frozen=True)
class Credential:
    """One registered account.

    secret is opaque to the pipeline: a plaintext value under the "plain"
    scheme, a bcrypt hash under the "bcrypt" scheme.
    """

    username: str
    secret: str


@dataclass(frozen=True)
class AuditRecord:
    """One login attempt. Never mutated once written.

    id and timestamp are None until AuditSink.append() stores the record and
    returns a copy carrying both. Callers never supply a timestamp.
    """

    username: str
    outcome: Outcome
    caller_host: str
    caller_address: str
    id: int | None = None
    timestamp: str | None = None  # ISO 8601, UTC, assigned by the sink
