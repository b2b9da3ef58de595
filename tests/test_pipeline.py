"""Unit tests for auth/pipeline.py -- AuthAuditPipeline.authenticate.

The store and sink are in-test fakes so every branch can be forced:
- accepted / rejected decisions and the matching audit outcome
- exact-equality comparison (one character, case, whitespace)
- store outage: rejected, still audited, reported as store_unavailable
- audit outage: decision unchanged, reported as audit_write_failed
- one audit record per call, no deduplication
"""

import logging
from unittest.mock import MagicMock

import pytest

from auth.audit import AuditSink
from auth.errors import AuditWriteFailed, StoreUnavailable
from auth.models import AuditRecord, Credential, Decision, Outcome
from auth.pipeline import AUDIT_WRITE_FAILED, STORE_UNAVAILABLE, AuthAuditPipeline
from auth.store import CredentialStore

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeStore:
    def __init__(self, *credentials: Credential, down: bool = False) -> None:
        self.credentials = {c.username: c for c in credentials}
        self.down = down
        self.lookups: list[str] = []

    def lookup(self, username: str):
        self.lookups.append(username)
        if self.down:
            raise StoreUnavailable("connection refused")
        return self.credentials.get(username)


class FakeSink:
    def __init__(self, down: bool = False) -> None:
        self.records: list[AuditRecord] = []
        self.down = down
        self.attempts = 0

    def append(self, record: AuditRecord) -> AuditRecord:
        self.attempts += 1
        if self.down:
            raise AuditWriteFailed("disk full")
        self.records.append(record)
        return record


_ALICE = Credential(username="alice", secret="s3cret")


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def pipeline(sink: FakeSink) -> AuthAuditPipeline:
    return AuthAuditPipeline(FakeStore(_ALICE), sink)


def _conditions(caplog) -> list[str]:
    return [getattr(r, "condition", None) for r in caplog.records if getattr(r, "condition", None)]


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_correct_password_is_accepted(self, pipeline: AuthAuditPipeline, sink: FakeSink) -> None:
        decision = pipeline.authenticate("alice", "s3cret", "host1", "10.0.0.1")
        assert decision is Decision.ACCEPTED
        assert decision.accepted
        assert sink.records == [AuditRecord("alice", Outcome.SUCCESS, "host1", "10.0.0.1")]

    def test_wrong_password_is_rejected(self, pipeline: AuthAuditPipeline, sink: FakeSink) -> None:
        decision = pipeline.authenticate("alice", "wrong", "host1", "10.0.0.1")
        assert decision is Decision.REJECTED
        assert not decision.accepted
        assert len(sink.records) == 1
        assert sink.records[0].outcome is Outcome.FAILURE

    def test_unknown_user_in_empty_store_is_rejected(self, sink: FakeSink) -> None:
        pipeline = AuthAuditPipeline(FakeStore(), sink)
        decision = pipeline.authenticate("bob", "anything", "host1", "10.0.0.1")
        assert decision is Decision.REJECTED
        assert len(sink.records) == 1
        assert sink.records[0].username == "bob"
        assert sink.records[0].outcome is Outcome.FAILURE

    def test_store_unavailable_is_rejected_audited_and_reported(self, sink: FakeSink, caplog) -> None:
        caplog.set_level(logging.INFO, logger="shellgate.auth")
        pipeline = AuthAuditPipeline(FakeStore(_ALICE, down=True), sink)

        decision = pipeline.authenticate("alice", "s3cret", "host1", "10.0.0.1")

        assert decision is Decision.REJECTED
        assert len(sink.records) == 1
        assert sink.records[0].outcome is Outcome.FAILURE
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert errors[0].condition == STORE_UNAVAILABLE


# ---------------------------------------------------------------------------
# Comparison policy
# ---------------------------------------------------------------------------


class TestExactComparison:
    @pytest.mark.parametrize(
        "password",
        ["s3creT", "S3cret", "s3cre", "s3crett", " s3cret", "s3cret ", "", "s3cret\n"],
    )
    def test_near_misses_are_rejected(self, pipeline: AuthAuditPipeline, password: str) -> None:
        assert pipeline.authenticate("alice", password, "h", "a") is Decision.REJECTED

    def test_username_is_case_sensitive(self, pipeline: AuthAuditPipeline, sink: FakeSink) -> None:
        assert pipeline.authenticate("Alice", "s3cret", "h", "a") is Decision.REJECTED
        assert sink.records[0].username == "Alice"

    def test_empty_username_is_an_ordinary_lookup(self, sink: FakeSink) -> None:
        store = FakeStore(_ALICE)
        pipeline = AuthAuditPipeline(store, sink)
        assert pipeline.authenticate("", "", "h", "a") is Decision.REJECTED
        assert store.lookups == [""]
        assert sink.records[0].username == ""

    def test_non_ascii_secret_matches_exactly(self, sink: FakeSink) -> None:
        pipeline = AuthAuditPipeline(FakeStore(Credential("zoë", "pässwörd")), sink)
        assert pipeline.authenticate("zoë", "pässwörd", "h", "a") is Decision.ACCEPTED
        assert pipeline.authenticate("zoë", "passwörd", "h", "a") is Decision.REJECTED

    def test_custom_matcher_is_the_only_comparison(self, sink: FakeSink) -> None:
        matcher = MagicMock(return_value=True)
        pipeline = AuthAuditPipeline(FakeStore(_ALICE), sink, matcher=matcher)
        assert pipeline.authenticate("alice", "anything", "h", "a") is Decision.ACCEPTED
        matcher.assert_called_once_with("s3cret", "anything")

    def test_matcher_not_called_for_unknown_user(self, sink: FakeSink) -> None:
        matcher = MagicMock(return_value=True)
        pipeline = AuthAuditPipeline(FakeStore(), sink, matcher=matcher)
        assert pipeline.authenticate("ghost", "x", "h", "a") is Decision.REJECTED
        matcher.assert_not_called()


# ---------------------------------------------------------------------------
# Audit invariants
# ---------------------------------------------------------------------------


class TestAuditInvariants:
    @pytest.mark.parametrize(
        ("username", "password", "expected"),
        [
            ("alice", "s3cret", Decision.ACCEPTED),
            ("alice", "nope", Decision.REJECTED),
            ("mallory", "s3cret", Decision.REJECTED),
            ("", "", Decision.REJECTED),
        ],
    )
    def test_exactly_one_record_matching_the_decision(
        self, pipeline: AuthAuditPipeline, sink: FakeSink, username: str, password: str, expected: Decision
    ) -> None:
        decision = pipeline.authenticate(username, password, "host9", "192.0.2.7:4000")
        assert decision is expected
        assert len(sink.records) == 1
        record = sink.records[0]
        assert record.outcome is (Outcome.SUCCESS if expected.accepted else Outcome.FAILURE)
        assert (record.username, record.caller_host, record.caller_address) == (username, "host9", "192.0.2.7:4000")

    def test_caller_never_supplies_timestamp_or_id(self, pipeline: AuthAuditPipeline, sink: FakeSink) -> None:
        pipeline.authenticate("alice", "s3cret", "h", "a")
        assert sink.records[0].timestamp is None
        assert sink.records[0].id is None

    def test_repeated_calls_are_not_deduplicated(self, pipeline: AuthAuditPipeline, sink: FakeSink) -> None:
        first = pipeline.authenticate("alice", "s3cret", "h", "a")
        second = pipeline.authenticate("alice", "s3cret", "h", "a")
        assert first is second is Decision.ACCEPTED
        assert len(sink.records) == 2

    def test_outcome_does_not_depend_on_previous_call(self, pipeline: AuthAuditPipeline, sink: FakeSink) -> None:
        assert pipeline.authenticate("alice", "wrong", "h", "a") is Decision.REJECTED
        assert pipeline.authenticate("alice", "s3cret", "h", "a") is Decision.ACCEPTED
        assert [r.outcome for r in sink.records] == [Outcome.FAILURE, Outcome.SUCCESS]

    def test_every_call_reads_the_store(self, sink: FakeSink) -> None:
        store = FakeStore(_ALICE)
        pipeline = AuthAuditPipeline(store, sink)
        pipeline.authenticate("alice", "s3cret", "h", "a")
        store.credentials["alice"] = Credential("alice", "rotated")
        assert pipeline.authenticate("alice", "s3cret", "h", "a") is Decision.REJECTED
        assert pipeline.authenticate("alice", "rotated", "h", "a") is Decision.ACCEPTED
        assert store.lookups == ["alice", "alice", "alice"]

    def test_unexpected_matcher_error_still_audited(self, sink: FakeSink) -> None:
        pipeline = AuthAuditPipeline(FakeStore(_ALICE), sink, matcher=MagicMock(side_effect=RuntimeError("bug")))
        with pytest.raises(RuntimeError):
            pipeline.authenticate("alice", "s3cret", "h", "a")
        assert len(sink.records) == 1
        assert sink.records[0].outcome is Outcome.FAILURE


class TestAuditWriteFailure:
    def test_accepted_decision_stands_when_audit_fails(self, caplog) -> None:
        caplog.set_level(logging.ERROR, logger="shellgate.auth")
        sink = FakeSink(down=True)
        pipeline = AuthAuditPipeline(FakeStore(_ALICE), sink)

        assert pipeline.authenticate("alice", "s3cret", "h", "a") is Decision.ACCEPTED
        assert sink.attempts == 1
        assert _conditions(caplog) == [AUDIT_WRITE_FAILED]

    def test_rejected_decision_stands_when_audit_fails(self, caplog) -> None:
        caplog.set_level(logging.ERROR, logger="shellgate.auth")
        pipeline = AuthAuditPipeline(FakeStore(_ALICE), FakeSink(down=True))
        assert pipeline.authenticate("alice", "bad", "h", "a") is Decision.REJECTED
        assert _conditions(caplog) == [AUDIT_WRITE_FAILED]

    def test_both_outages_are_reported_separately(self, caplog) -> None:
        caplog.set_level(logging.ERROR, logger="shellgate.auth")
        sink = FakeSink(down=True)
        pipeline = AuthAuditPipeline(FakeStore(_ALICE, down=True), sink)
        assert pipeline.authenticate("alice", "s3cret", "h", "a") is Decision.REJECTED
        assert sink.attempts == 1
        assert _conditions(caplog) == [STORE_UNAVAILABLE, AUDIT_WRITE_FAILED]

    def test_bad_password_is_not_an_operational_error(self, pipeline: AuthAuditPipeline, caplog) -> None:
        caplog.set_level(logging.INFO, logger="shellgate.auth")
        pipeline.authenticate("alice", "bad", "h", "a")
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert _conditions(caplog) == []


# ---------------------------------------------------------------------------
# Undecodable input on real SQLite
# ---------------------------------------------------------------------------


class TestUndecodableUsername:
    @pytest.fixture
    def real_pipeline(self):
        store = CredentialStore("sqlite:///:memory:")
        sink = AuditSink("sqlite:///:memory:")
        store.add_credential(_ALICE)
        yield AuthAuditPipeline(store, sink), sink
        store.close()
        sink.close()

    @pytest.mark.parametrize("username", ["\ud800", "\udcff", "alice\udcff"])
    def test_rejected_and_audited_once(self, real_pipeline, username: str, caplog) -> None:
        pipeline, sink = real_pipeline
        caplog.set_level(logging.INFO, logger="shellgate.auth")

        assert pipeline.authenticate(username, "s3cret", "h", "a") is Decision.REJECTED

        assert sink.count() == 1
        assert sink.recent()[0].outcome is Outcome.FAILURE
        assert _conditions(caplog) == []

    def test_undecodable_password_is_a_mismatch(self, real_pipeline) -> None:
        pipeline, sink = real_pipeline
        assert pipeline.authenticate("alice", "s3cret\udcff", "h", "a") is Decision.REJECTED
        assert sink.count() == 1
