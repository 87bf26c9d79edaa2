"""Service-level tests for the uniqueness guard and lifecycle controller.

Covers:
- One request per (speaker, event), whatever its status
- Scores fixed at creation, ranks contiguous 1..N among pending siblings
- accept / reject only from pending; terminal states immutable
- Non-exclusive default and the exclusive-acceptance opt-in
- Concurrent creation of the same pair
- Store failures roll back and surface as StoreUnavailable
"""
import threading

import pytest
import pytz
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from app.exceptions import DuplicateRequest, InvalidTransition, NotFound, StoreUnavailable, ValidationError
from app.models.speaker_request import SpeakerRequest, RequestStatus
from app.services import ranker, request_service
from tests.conftest import make_event, make_signals, make_speaker, make_user


def _setup(db, speakers=("Speaker A", "Speaker B", "Speaker C")):
    organizer = make_user(db)
    event_row = make_event(db, organizer)
    return organizer, event_row, [make_speaker(db, name=name) for name in speakers]


def _create(db, speaker, event_row, organizer, **kwargs):
    kwargs.setdefault("signals", make_signals())
    return request_service.create_request(
        db, speaker.speaker_id, event_row.event_id, organizer.user_id, **kwargs
    )


def _pending_ranks(db, event_id):
    return sorted(
        r.rank for r in db.query(SpeakerRequest).filter(
            SpeakerRequest.event_id == event_id,
            SpeakerRequest.status == RequestStatus.pending,
        )
    )


class TestCreateRequest:
    """Uniqueness guard, scoring and initial ranking."""

    def test_create_pending_request(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer, message="Would you keynote?")

        assert request.status == RequestStatus.pending
        assert request.rank == 1
        assert request.responded_at is None
        assert request.rejection_reason == ""
        assert request.message == "Would you keynote?"
        assert request.match_score == 10.0
        assert "rating" in request.score_breakdown

    def test_duplicate_pair_rejected(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        first = _create(db, speaker, event_row, organizer)

        with pytest.raises(DuplicateRequest) as exc_info:
            _create(db, speaker, event_row, organizer)

        assert exc_info.value.request_id == first.request_id
        assert exc_info.value.context["speaker_id"] == speaker.speaker_id
        assert db.query(SpeakerRequest).count() == 1

    def test_duplicate_even_after_rejection(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        first = _create(db, speaker, event_row, organizer)
        request_service.reject_request(db, first.request_id, "Schedule clash")

        with pytest.raises(DuplicateRequest):
            _create(db, speaker, event_row, organizer)

    def test_same_speaker_different_events_allowed(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        other_event = make_event(db, organizer, title="Other Summit")

        _create(db, speaker, event_row, organizer)
        second = _create(db, speaker, other_event, organizer)
        assert second.rank == 1

    def test_missing_signals_is_validation_error(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        with pytest.raises(ValidationError) as exc_info:
            _create(db, speaker, event_row, organizer, signals=None)
        assert exc_info.value.field == "scoring_signals"
        assert db.query(SpeakerRequest).count() == 0

    def test_malformed_signals_is_validation_error(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        with pytest.raises(ValidationError) as exc_info:
            _create(db, speaker, event_row, organizer, signals={"speaker": {}})
        assert ["event"] in exc_info.value.context["errors"]

    def test_invalid_rating_reports_its_location(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        with pytest.raises(ValidationError) as exc_info:
            _create(db, speaker, event_row, organizer, signals=make_signals(ratings=[4, 9]))
        assert exc_info.value.context["errors"] == [["history", "ratings", 1]]

    def test_timestamps_use_the_utc_clock(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = SpeakerRequest(
            speaker_id=speaker.speaker_id, event_id=event_row.event_id,
            organizer_id=organizer.user_id, match_score=1.0,
        )
        db.add(request)
        db.flush()
        assert request.created_at.tzinfo is pytz.utc
        assert request.updated_at.tzinfo is pytz.utc
        db.rollback()

    def test_unknown_references_not_found(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        with pytest.raises(NotFound) as exc_info:
            request_service.create_request(db, "missing", event_row.event_id, organizer.user_id,
                                           signals=make_signals())
        assert exc_info.value.entity == "Speaker"

        with pytest.raises(NotFound) as exc_info:
            request_service.create_request(db, speaker.speaker_id, "missing", organizer.user_id,
                                           signals=make_signals())
        assert exc_info.value.entity == "Event"

        with pytest.raises(NotFound) as exc_info:
            request_service.create_request(db, speaker.speaker_id, event_row.event_id, "missing",
                                           signals=make_signals())
        assert exc_info.value.entity == "Organizer"
        assert db.query(SpeakerRequest).count() == 0

    def test_ranks_follow_scores(self, db, queued_scores):
        organizer, event_row, (a, b, c) = _setup(db)
        queued_scores.extend([80, 95, 80])
        req_a = _create(db, a, event_row, organizer)
        req_b = _create(db, b, event_row, organizer)
        req_c = _create(db, c, event_row, organizer)

        ranked = request_service.list_ranked_pending(db, event_row.event_id)
        assert [r.request_id for r in ranked] == [req_b.request_id, req_a.request_id, req_c.request_id]
        assert [r.rank for r in ranked] == [1, 2, 3]


class TestTransitions:
    """accept / reject from pending only."""

    def test_accept_stamps_responded_at(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer)

        accepted = request_service.accept_request(db, request.request_id)
        assert accepted.status == RequestStatus.accepted
        assert accepted.responded_at is not None
        assert accepted.rejection_reason == ""

    def test_reject_stores_reason(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer)

        rejected = request_service.reject_request(db, request.request_id, "  Fully booked  ")
        assert rejected.status == RequestStatus.rejected
        assert rejected.rejection_reason == "Fully booked"
        assert rejected.responded_at is not None

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reject_requires_reason(self, db, reason):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer)

        with pytest.raises(ValidationError):
            request_service.reject_request(db, request.request_id, reason)

        db.refresh(request)
        assert request.status == RequestStatus.pending
        assert request.responded_at is None

    @pytest.mark.parametrize("first, second", [
        ("accept", "accept"),
        ("accept", "reject"),
        ("reject", "reject"),
        ("reject", "accept"),
    ])
    def test_terminal_states_are_immutable(self, db, first, second):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer)

        def apply(action):
            if action == "accept":
                return request_service.accept_request(db, request.request_id)
            return request_service.reject_request(db, request.request_id, "Not a fit")

        done = apply(first)
        snapshot = (done.status, done.responded_at, done.rejection_reason)

        with pytest.raises(InvalidTransition) as exc_info:
            apply(second)
        assert exc_info.value.current_status == snapshot[0].value

        db.expire_all()
        stored = request_service.get_request(db, request.request_id)
        assert (stored.status, stored.responded_at, stored.rejection_reason) == snapshot

    def test_unknown_request_not_found(self, db):
        with pytest.raises(NotFound):
            request_service.accept_request(db, "no-such-request")

    def test_accepting_rank_one_reranks_siblings(self, db, queued_scores):
        organizer, event_row, (a, b, c) = _setup(db)
        queued_scores.extend([90, 70, 50])
        top = _create(db, a, event_row, organizer)
        _create(db, b, event_row, organizer)
        _create(db, c, event_row, organizer)

        request_service.accept_request(db, top.request_id)

        ranked = request_service.list_ranked_pending(db, event_row.event_id)
        assert top.request_id not in [r.request_id for r in ranked]
        assert [r.rank for r in ranked] == [1, 2]
        assert [r.speaker_id for r in ranked] == [b.speaker_id, c.speaker_id]

    def test_rejecting_middle_request_closes_gap(self, db, queued_scores):
        organizer, event_row, (a, b, c) = _setup(db)
        queued_scores.extend([90, 70, 50])
        _create(db, a, event_row, organizer)
        middle = _create(db, b, event_row, organizer)
        _create(db, c, event_row, organizer)

        request_service.reject_request(db, middle.request_id, "Topic overlap")
        assert _pending_ranks(db, event_row.event_id) == [1, 2]


class TestAcceptancePolicy:
    """Non-exclusive by default; exclusivity is an explicit opt-in."""

    def test_default_accept_leaves_siblings_pending(self, db):
        organizer, event_row, (a, b, c) = _setup(db)
        first = _create(db, a, event_row, organizer)
        _create(db, b, event_row, organizer)
        _create(db, c, event_row, organizer)

        request_service.accept_request(db, first.request_id)

        pending = request_service.list_ranked_pending(db, event_row.event_id)
        assert len(pending) == 2
        second = request_service.accept_request(db, pending[0].request_id)
        assert second.status == RequestStatus.accepted

    def test_exclusive_accept_rejects_siblings(self, db):
        organizer, event_row, (a, b, c) = _setup(db)
        chosen = _create(db, a, event_row, organizer)
        others = [_create(db, s, event_row, organizer) for s in (b, c)]

        request_service.accept_request(db, chosen.request_id, exclusive=True)

        assert request_service.list_ranked_pending(db, event_row.event_id) == []
        for other in others:
            db.refresh(other)
            assert other.status == RequestStatus.rejected
            assert other.rejection_reason == request_service.EXCLUSIVE_REJECTION_REASON
            assert other.responded_at is not None

    def test_exclusive_accept_does_not_touch_other_events(self, db):
        organizer, event_row, (a, b, _) = _setup(db)
        other_event = make_event(db, organizer, title="Other Summit")
        chosen = _create(db, a, event_row, organizer)
        elsewhere = _create(db, b, other_event, organizer)

        request_service.accept_request(db, chosen.request_id, exclusive=True)

        db.refresh(elsewhere)
        assert elsewhere.status == RequestStatus.pending
        assert elsewhere.rank == 1

    def test_exclusive_setting_applies_by_default(self, db, monkeypatch):
        from app.config import settings
        monkeypatch.setattr(settings, "EXCLUSIVE_ACCEPTANCE", True)
        organizer, event_row, (a, b, _) = _setup(db)
        chosen = _create(db, a, event_row, organizer)
        other = _create(db, b, event_row, organizer)

        request_service.accept_request(db, chosen.request_id)

        db.refresh(other)
        assert other.status == RequestStatus.rejected


class TestMessage:
    """The note is editable only before a response."""

    def test_update_message_while_pending(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer, message="v1")

        updated = request_service.update_message(db, request.request_id, "v2")
        assert updated.message == "v2"
        assert updated.rank == 1

    def test_update_message_after_response_fails(self, db):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer, message="v1")
        request_service.accept_request(db, request.request_id)

        with pytest.raises(InvalidTransition):
            request_service.update_message(db, request.request_id, "v2")


class TestConcurrency:
    """Concurrent workers, each with its own session."""

    def _run_concurrently(self, session_factory, jobs):
        barrier = threading.Barrier(len(jobs))
        outcomes = [None] * len(jobs)

        def worker(index, job):
            session = session_factory()
            try:
                barrier.wait()
                outcomes[index] = job(session)
            except Exception as exc:  # collected for assertions
                outcomes[index] = exc
            finally:
                session.close()

        threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return outcomes

    def test_same_pair_exactly_one_succeeds(self, db, session_factory):
        organizer, event_row, (speaker, *_) = _setup(db)
        ids = (speaker.speaker_id, event_row.event_id, organizer.user_id)

        def create(session):
            return request_service.create_request(session, *ids, signals=make_signals()).request_id

        outcomes = self._run_concurrently(session_factory, [create, create])

        successes = [o for o in outcomes if isinstance(o, str)]
        duplicates = [o for o in outcomes if isinstance(o, DuplicateRequest)]
        assert len(successes) == 1
        assert len(duplicates) == 1
        assert duplicates[0].request_id == successes[0]
        assert db.query(SpeakerRequest).count() == 1

    def test_concurrent_creations_keep_ranks_contiguous(self, db, session_factory):
        names = [f"Speaker {i}" for i in range(6)]
        organizer, event_row, speakers = _setup(db, speakers=names)

        def creator(speaker):
            def create(session):
                return request_service.create_request(
                    session, speaker.speaker_id, event_row.event_id, organizer.user_id,
                    signals=make_signals(),
                ).request_id
            return create

        outcomes = self._run_concurrently(session_factory, [creator(s) for s in speakers])

        assert all(isinstance(o, str) for o in outcomes), outcomes
        db.expire_all()
        assert _pending_ranks(db, event_row.event_id) == [1, 2, 3, 4, 5, 6]

    def test_concurrent_accept_and_reject_one_wins(self, db, session_factory):
        organizer, event_row, (speaker, *_) = _setup(db)
        request = _create(db, speaker, event_row, organizer)

        outcomes = self._run_concurrently(session_factory, [
            lambda s: request_service.accept_request(s, request.request_id).status,
            lambda s: request_service.reject_request(s, request.request_id, "No budget").status,
        ])

        assert sum(1 for o in outcomes if isinstance(o, InvalidTransition)) == 1
        assert sum(1 for o in outcomes if isinstance(o, RequestStatus)) == 1


def _connection_lost(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


class TestStoreFailures:
    """Store errors roll the whole transition back and surface as StoreUnavailable."""

    def _committed_ranks(self, session_factory, event_id):
        session = session_factory()
        try:
            return {
                r.request_id: (r.status, r.rank)
                for r in session.query(SpeakerRequest).filter(SpeakerRequest.event_id == event_id)
            }
        finally:
            session.close()

    def _seed(self, db, queued_scores):
        organizer, event_row, speakers = _setup(db, speakers=("A", "B", "C", "D"))
        queued_scores.extend([70, 50, 30])
        for speaker in speakers[:3]:
            _create(db, speaker, event_row, organizer)
        return organizer, event_row, speakers[3]

    def _rerank_then_fail(self, monkeypatch, error):
        real_rerank = ranker.rerank_event

        def rerank_and_fail(db, event_id):
            real_rerank(db, event_id)
            raise error

        monkeypatch.setattr(ranker, "rerank_event", rerank_and_fail)

    def test_create_failure_commits_nothing(self, db, session_factory, queued_scores, monkeypatch):
        organizer, event_row, newcomer = self._seed(db, queued_scores)
        before = self._committed_ranks(session_factory, event_row.event_id)
        self._rerank_then_fail(monkeypatch, OperationalError("UPDATE", {}, Exception("disk I/O error")))
        queued_scores.append(99)

        with pytest.raises(StoreUnavailable) as exc_info:
            _create(db, newcomer, event_row, organizer)

        assert exc_info.value.context["operation"] == "create_request"
        assert self._committed_ranks(session_factory, event_row.event_id) == before
        assert sorted(rank for _, rank in before.values()) == [1, 2, 3]

    def test_reject_failure_keeps_request_pending(self, db, session_factory, queued_scores, monkeypatch):
        _, event_row, _ = self._seed(db, queued_scores)
        before = self._committed_ranks(session_factory, event_row.event_id)
        top = next(request_id for request_id, (_, rank) in before.items() if rank == 1)
        self._rerank_then_fail(monkeypatch, DBAPIError(
            "UPDATE", {}, Exception("connection reset"), connection_invalidated=True,
        ))

        with pytest.raises(StoreUnavailable):
            request_service.reject_request(db, top, "Out of budget")

        assert self._committed_ranks(session_factory, event_row.event_id) == before
        db.expire_all()
        assert request_service.get_request(db, top).status == RequestStatus.pending
        assert _pending_ranks(db, event_row.event_id) == [1, 2, 3]

    def test_non_connection_error_is_not_masked(self, db, queued_scores, monkeypatch):
        _, event_row, _ = self._seed(db, queued_scores)
        request_id = request_service.list_ranked_pending(db, event_row.event_id)[0].request_id
        self._rerank_then_fail(monkeypatch, DBAPIError("UPDATE", {}, Exception("bad value")))

        with pytest.raises(DBAPIError):
            request_service.accept_request(db, request_id)

    @pytest.mark.parametrize("call", [
        lambda db, event_id: request_service.list_ranked_pending(db, event_id),
        lambda db, event_id: request_service.list_requests(db, event_id=event_id),
        lambda db, event_id: request_service.get_request(db, "any-request"),
        lambda db, event_id: request_service.accept_request(db, "any-request"),
    ], ids=["list_ranked_pending", "list_requests", "get_request", "accept_request"])
    def test_reads_surface_store_unavailable(self, db, call, monkeypatch):
        organizer = make_user(db)
        event_id = make_event(db, organizer).event_id
        monkeypatch.setattr(db, "query", _connection_lost)

        with pytest.raises(StoreUnavailable):
            call(db, event_id)

    def test_ranked_list_returns_503(self, client, monkeypatch):
        monkeypatch.setattr(Session, "query", _connection_lost)
        resp = client.get("/api/events/any-event/ranked-requests")

        assert resp.status_code == 503
        assert resp.json()["type"] == "StoreUnavailable"
        assert resp.json()["context"] == {"operation": "list_ranked_pending"}
