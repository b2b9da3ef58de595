"""
auth/pipeline.py -- One login attempt: look up, compare, audit, decide.

AuthAuditPipeline.authenticate() is the only entry point the HTTP layer and
the CLI use to check a password. Every call appends exactly one AuditRecord,
whichever way the attempt goes:

  unknown username      -> FAILURE, REJECTED
  wrong password        -> FAILURE, REJECTED
  store unavailable     -> FAILURE, REJECTED, ERROR log (store_unavailable)
  matching password     -> SUCCESS, ACCEPTED

The audit write sits in a `finally` block after the outcome is computed, so
no branch can return without it. If the write itself fails the decision
stands and an ERROR log (audit_write_failed) is emitted instead.

Operators tell the two operational conditions apart from bad passwords by the
`condition` attribute on the log record. Callers only ever see ACCEPTED or
REJECTED, so an outage cannot be used to probe which usernames exist.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auth.errors import AuditWriteFailed, StoreUnavailable
from auth.matching import SecretMatcher, secret_matches
from auth.models import AuditRecord, Decision, Outcome

if TYPE_CHECKING:
    from auth.audit import AuditSink
    from auth.store import CredentialStore

logger = logging.getLogger("shellgate.auth")

STORE_UNAVAILABLE = "store_unavailable"
AUDIT_WRITE_FAILED = "audit_write_failed"


class AuthAuditPipeline:
    """Credential check with an unconditional audit trail.

    Holds references to its collaborators only; no per-request state survives
    a call, so one instance serves concurrent requests.

    Usage:
        pipeline = AuthAuditPipeline(CredentialStore(url), AuditSink(url))
        decision = pipeline.authenticate("alice", "s3cret", "host1", "10.0.0.1:51234")
        if decision.accepted: ...
    """

    def __init__(
        self,
        store: CredentialStore,
        sink: AuditSink,
        matcher: SecretMatcher = secret_matches,
    ) -> None:
        self._store = store
        self._sink = sink
        self._matches = matcher

    def authenticate(self, username: str, password: str, caller_host: str, caller_address: str) -> Decision:
        """Check `password` for `username` and record the attempt.

        Returns Decision.ACCEPTED only when the credential exists and the
        configured matcher accepts the password. Never raises StoreUnavailable
        or AuditWriteFailed.
        """
        outcome = Outcome.FAILURE
        try:
            credential = self._store.lookup(username)
            if credential is not None and self._matches(credential.secret, password):
                outcome = Outcome.SUCCESS
        except StoreUnavailable as exc:
            logger.error(
                "Credential store unavailable during login for %r: %s",
                username,
                exc,
                extra={"condition": STORE_UNAVAILABLE},
            )
        finally:
            self._record(AuditRecord(username, outcome, caller_host, caller_address))

        if outcome is Outcome.SUCCESS:
            logger.info("Login accepted for %r from %s", username, caller_address)
            return Decision.ACCEPTED
        logger.info("Login rejected for %r from %s", username, caller_address)
        return Decision.REJECTED

    def _record(self, record: AuditRecord) -> None:
        try:
            self._sink.append(record)
        except AuditWriteFailed as exc:
            logger.error(
                "Audit record for %r (%s) was not written: %s",
                record.username,
                record.outcome.value,
                exc,
                extra={"condition": AUDIT_WRITE_FAILED},
            )
