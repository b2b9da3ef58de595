"""
auth/errors.py -- Operational error types raised by the credential store and audit sink.

An unknown username is not an error: CredentialStore.lookup() returns None.
The two exceptions here mean the backing database could not do its job, and
AuthAuditPipeline reports them separately from ordinary bad credentials.
"""


class ShellGateError(Exception):
    """Base class for ShellGate operational errors."""


class StoreUnavailable(ShellGateError):
    """The credential store could not be reached or queried."""


class AuditWriteFailed(ShellGateError):
    """An audit record could not be appended to the audit log."""
