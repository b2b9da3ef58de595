"""
auth/store.py -- SQLAlchemy Core persistence layer for credentials.

Pattern: Repository + Data Mapper.
CredentialStore is the repository; _row_to_credential is the mapper.
Route and pipeline code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Failure signalling:
  lookup() returns None for an unknown username. Any SQLAlchemyError (the
  database is down, the file is unreadable, the table is locked past the
  timeout) is re-raised as StoreUnavailable so callers never confuse an outage
  with a wrong password.

make_engine() is shared with auth/audit.py so the credential store and the
audit sink configure their connection pools the same way.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from sqlalchemy import Column, MetaData, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StoreUnavailable
from auth.models import Credential

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("username", Text, primary_key=True),
    Column("secret", Text, nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str, timeout: float) -> Engine:
    """Create a pooled engine whose connections give up after `timeout` seconds.

    SQLite: `timeout` is the busy-wait on a locked database, and
    check_same_thread is off because FastAPI runs sync handlers on a thread pool.
    PostgreSQL: `timeout` becomes connect_timeout (whole seconds, minimum 1).
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout
    elif db_url.startswith("postgresql"):
        connect_args["connect_timeout"] = max(1, int(timeout))
    engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Credential records.

    Usage:
        store = CredentialStore("sqlite:///shellgate.db")
        store.add_credential(Credential(username="alice", secret="s3cret"))
        credential = store.lookup("alice")
        store.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        self.engine: Engine = make_engine(db_url, timeout)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            self.engine.dispose()
            raise StoreUnavailable(f"Could not initialize credential store: {exc}") from exc

    def lookup(self, username: str) -> Credential | None:
        """Return the credential stored under exactly `username`, or None.

        No trimming, no case folding. The empty string is an ordinary key.
        Raises StoreUnavailable if the database cannot answer.
        """
        if not _is_utf8(username):
            # Lone surrogates (e.g. undecodable argv bytes) can never have been stored.
            return None
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(_users).where(_users.c.username == username)).fetchone()
        except (SQLAlchemyError, ValueError) as exc:
            raise StoreUnavailable(f"Credential lookup failed: {exc}") from exc
        return _row_to_credential(row) if row is not None else None

    def add_credential(self, credential: Credential) -> None:
        """Insert a new credential.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Callers (the add-user CLI) catch it to report a duplicate.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.insert().values(username=credential.username, secret=credential.secret))
                conn.commit()
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Credential insert failed: {exc}") from exc

    def count(self) -> int:
        """Return the number of stored credentials."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_users)).scalar()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Credential count failed: {exc}") from exc
        return result or 0

    def has_credentials(self) -> bool:
        return self.count() > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _is_utf8(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _row_to_credential(row) -> Credential:
    return Credential(username=row.username, secret=row.secret)
