"""
auth/matching.py -- The one place a stored secret is compared with a submitted password.

Two schemes, selected by Settings.secret_scheme:

  plain:  the stored secret is the password itself. Match means exact
          equality -- no trimming, no case folding, no Unicode normalization.
          hmac.compare_digest over the UTF-8 bytes gives the same answer as
          `==` without leaking the mismatch position through timing.

  bcrypt: the stored secret is a bcrypt hash. Using bcrypt directly (no
          passlib wrapper); a malformed hash counts as a non-match.

AuthAuditPipeline takes a SecretMatcher at construction, so swapping schemes
never touches the pipeline itself.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable

import bcrypt

logger = logging.getLogger("shellgate.auth")

SecretMatcher = Callable[[str, str], bool]


def _to_bytes(value: str) -> bytes:
    # surrogatepass keeps undecodable input (lone surrogates) comparable instead of raising.
    return value.encode("utf-8", "surrogatepass")


def secret_matches(stored: str, supplied: str) -> bool:
    """Return True if `supplied` is exactly equal to `stored`."""
    return hmac.compare_digest(_to_bytes(stored), _to_bytes(supplied))


def bcrypt_matches(stored: str, supplied: str) -> bool:
    """Return True if `supplied` hashes to the bcrypt hash `stored`."""
    try:
        return bcrypt.checkpw(_to_bytes(supplied), stored.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or a password bcrypt refuses (over 72 bytes).
        logger.warning("bcrypt comparison rejected its input; treating as mismatch")
        return False


def hash_secret(plain: str) -> str:
    """Return a bcrypt hash of `plain`, for seeding credentials under the bcrypt scheme.

    bcrypt ignores input past 72 bytes; the CLI refuses longer passwords.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


_MATCHERS: dict[str, SecretMatcher] = {
    "plain": secret_matches,
    "bcrypt": bcrypt_matches,
}


def get_secret_matcher(scheme: str) -> SecretMatcher:
    """Return the matcher for `scheme`. Raises ValueError for an unknown scheme."""
    try:
        return _MATCHERS[scheme]
    except KeyError:
        raise ValueError(f"Unknown secret scheme: {scheme!r}") from None


def prepare_secret(plain: str, scheme: str) -> str:
    """Return the value to store for password `plain` under `scheme`."""
    get_secret_matcher(scheme)
    return hash_secret(plain) if scheme == "bcrypt" else plain
