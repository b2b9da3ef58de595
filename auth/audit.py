"""
auth/audit.py -- Append-only audit log of login attempts.

Pattern: Repository + Data Mapper (same shape as auth/store.py).
AuditSink is the repository; _row_to_record is the mapper.

The table is append-only by construction: this module exposes insert and
read queries, never UPDATE or DELETE. Retention and rotation happen outside
ShellGate.

Timestamps:
  The sink stamps every record itself. A stamp is never earlier than the
  previous one from the same sink, so ordering by id and ordering by
  timestamp agree even if the wall clock steps backwards. Stamp + insert run
  under one lock to keep that true across request threads.

  The column also carries server_default=CURRENT_TIMESTAMP so rows written by
  other tools (psql, migrations) still get a time.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import AuditWriteFailed, StoreUnavailable
from auth.models import AuditRecord, Outcome
from auth.store import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_logs = Table(
    "logs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", Text, nullable=False),
    Column("outcome", String(10), nullable=False),  # "success" | "failure"
    Column("timestamp", String(32), nullable=False, server_default=func.current_timestamp()),
    Column("caller_host", Text, nullable=False, server_default=""),
    Column("caller_address", Text, nullable=False, server_default=""),
)


class AuditSink:
    """Append-only writer (and reader) for AuditRecord rows.

    Usage:
        sink = AuditSink("sqlite:///shellgate.db")
        stored = sink.append(AuditRecord("alice", Outcome.SUCCESS, "host1", "10.0.0.1:5123"))
        stored.id, stored.timestamp
        sink.recent(limit=20)
        sink.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        self.engine: Engine = make_engine(db_url, timeout)
        self._lock = threading.Lock()
        self._last_stamp: datetime | None = None
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            self.engine.dispose()
            raise StoreUnavailable(f"Could not initialize audit log: {exc}") from exc

    def _next_stamp(self) -> datetime:
        # Caller holds self._lock.
        now = datetime.now(timezone.utc)
        if self._last_stamp is not None and now < self._last_stamp:
            now = self._last_stamp
        self._last_stamp = now
        return now

    def append(self, record: AuditRecord) -> AuditRecord:
        """Stamp and insert `record`; return the stored copy with id and timestamp.

        Any id or timestamp already set on `record` is ignored.
        Raises AuditWriteFailed if the row could not be written.
        """
        with self._lock:
            stamp = self._next_stamp().isoformat(timespec="microseconds")
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(
                        _logs.insert().values(
                            username=_storable(record.username),
                            outcome=Outcome(record.outcome).value,
                            timestamp=stamp,
                            caller_host=_storable(record.caller_host),
                            caller_address=_storable(record.caller_address),
                        )
                    )
                    conn.commit()
            except (SQLAlchemyError, ValueError) as exc:
                # ValueError: drivers reject some bound values outside the DBAPI error tree.
                raise AuditWriteFailed(f"Audit insert failed for {record.username!r}: {exc}") from exc
        return replace(record, id=result.inserted_primary_key[0], timestamp=stamp)

    def recent(self, limit: int = 50, username: str | None = None) -> list[AuditRecord]:
        """Return up to `limit` records, newest first, optionally for one username."""
        query = select(_logs).order_by(_logs.c.id.desc()).limit(limit)
        if username is not None:
            query = query.where(_logs.c.username == _storable(username))
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).fetchall()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Audit read failed: {exc}") from exc
        return [_row_to_record(r) for r in rows]

    def count(self) -> int:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_logs)).scalar()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Audit count failed: {exc}") from exc
        return result or 0

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


def _storable(value: str) -> str:
    """Escape what a database cannot hold: lone surrogates and NUL.

    Ordinary text, including any valid non-ASCII, is stored unchanged.
    """
    return value.encode("utf-8", "backslashreplace").decode("utf-8").replace("\x00", "\\x00")


def _row_to_record(row) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        username=row.username,
        outcome=Outcome(row.outcome),
        timestamp=str(row.timestamp),
        caller_host=row.caller_host,
        caller_address=row.caller_address,
    )
