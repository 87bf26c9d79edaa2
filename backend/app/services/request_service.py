"""Speaker request service: creation guard and lifecycle controller.

Responsibilities:
- Uniqueness guard: one request per (speaker, event); the unique constraint
  is authoritative, the pre-insert lookup only gives an early error
- Match scoring at creation (score is immutable afterwards)
- pending -> accepted | rejected transitions; terminal states are final
- Re-ranking the event's pending set on every membership change, under the
  event lock and in the same transaction as the change
- Optional exclusive acceptance (accepting one request rejects its siblings)
"""
import contextlib
import logging
from typing import Any, Iterator, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import DuplicateRequest, InvalidTransition, NotFound, StoreUnavailable, ValidationError
from app.models.event import Event
from app.models.speaker import Speaker
from app.models.speaker_request import SpeakerRequest, RequestStatus
from app.models.user import User
from app.schemas.scoring import ScoringSignals
from app.services import match_scorer, ranker
from app.services.event_locks import event_lock
from app.utils import utcnow

logger = logging.getLogger(__name__)

EXCLUSIVE_REJECTION_REASON = "Another speaker was accepted for this event"


@contextlib.contextmanager
def _store_access(db: Session, operation: str) -> Iterator[None]:
    """Roll back on any failure; surface connection-level failures as StoreUnavailable."""
    try:
        yield
    except OperationalError as exc:
        db.rollback()
        logger.error("Store failure during %s: %s", operation, exc)
        raise StoreUnavailable(operation) from exc
    except DBAPIError as exc:
        db.rollback()
        if exc.connection_invalidated:
            logger.error("Connection lost during %s: %s", operation, exc)
            raise StoreUnavailable(operation) from exc
        raise
    except Exception:
        db.rollback()
        raise


def _require(db: Session, model, column, value: str, entity: str):
    row = db.query(model).filter(column == str(value)).first()
    if row is None:
        raise NotFound(entity, value)
    return row


def _find_pair(db: Session, speaker_id: str, event_id: str) -> Optional[SpeakerRequest]:
    return (
        db.query(SpeakerRequest)
        .filter(SpeakerRequest.speaker_id == str(speaker_id), SpeakerRequest.event_id == str(event_id))
        .first()
    )


def _coerce_signals(
    signals: Union[ScoringSignals, dict[str, Any], None],
    speaker_id: str,
    event_id: str,
) -> ScoringSignals:
    if signals is None:
        raise ValidationError(
            "Scoring signals are required to create a request",
            field="scoring_signals", speaker_id=str(speaker_id), event_id=str(event_id),
        )
    if isinstance(signals, ScoringSignals):
        return signals
    try:
        return ScoringSignals.model_validate(signals)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid scoring signals ({exc.error_count()} error(s))",
            field="scoring_signals", speaker_id=str(speaker_id), event_id=str(event_id),
            errors=[list(e["loc"]) for e in exc.errors()],
        ) from exc


def get_request(db: Session, request_id: str) -> SpeakerRequest:
    """Fetch a single request by ID."""
    with _store_access(db, "get_request"):
        return _require(db, SpeakerRequest, SpeakerRequest.request_id, request_id, "SpeakerRequest")


def list_requests(
    db: Session,
    event_id: Optional[str] = None,
    speaker_id: Optional[str] = None,
    organizer_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[SpeakerRequest]:
    """List requests, newest first, optionally filtered."""
    if status:
        try:
            status = RequestStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid request status: {status}", field="status")

    with _store_access(db, "list_requests"):
        query = db.query(SpeakerRequest)
        if event_id:
            query = query.filter(SpeakerRequest.event_id == str(event_id))
        if speaker_id:
            query = query.filter(SpeakerRequest.speaker_id == str(speaker_id))
        if organizer_id:
            query = query.filter(SpeakerRequest.organizer_id == str(organizer_id))
        if status:
            query = query.filter(SpeakerRequest.status == status)
        return query.order_by(SpeakerRequest.created_at.desc()).all()


def list_ranked_pending(db: Session, event_id: str) -> list[SpeakerRequest]:
    """Pending requests for an event, rank ascending."""
    with _store_access(db, "list_ranked_pending"):
        _require(db, Event, Event.event_id, event_id, "Event")
        return (
            db.query(SpeakerRequest)
            .filter(
                SpeakerRequest.event_id == str(event_id),
                SpeakerRequest.status == RequestStatus.pending,
            )
            .order_by(SpeakerRequest.rank.asc())
            .all()
        )


def create_request(
    db: Session,
    speaker_id: str,
    event_id: str,
    organizer_id: str,
    message: Optional[str] = "",
    signals: Union[ScoringSignals, dict[str, Any], None] = None,
) -> SpeakerRequest:
    """Score and persist a pending request, then re-rank the event."""
    speaker_id, event_id, organizer_id = str(speaker_id), str(event_id), str(organizer_id)
    parsed = _coerce_signals(signals, speaker_id, event_id)

    with _store_access(db, "create_request"):
        _require(db, Speaker, Speaker.speaker_id, speaker_id, "Speaker")
        _require(db, User, User.user_id, organizer_id, "Organizer")

        existing = _find_pair(db, speaker_id, event_id)
        if existing is not None:
            logger.warning("Duplicate request for speaker %s / event %s (existing %s)",
                           speaker_id, event_id, existing.request_id)
            raise DuplicateRequest(speaker_id, event_id, existing.request_id)

        result = match_scorer.score_match(parsed)

        with event_lock(db, event_id):
            request = SpeakerRequest(
                speaker_id=speaker_id,
                event_id=event_id,
                organizer_id=organizer_id,
                message=message or "",
                match_score=result.score,
                score_breakdown=result.breakdown,
                status=RequestStatus.pending,
            )
            db.add(request)
            try:
                db.flush()
            except IntegrityError as exc:
                # Lost the race: another worker inserted the same pair first
                db.rollback()
                winner = _find_pair(db, speaker_id, event_id)
                if winner is None:
                    raise
                logger.warning("Duplicate request for speaker %s / event %s (existing %s)",
                               speaker_id, event_id, winner.request_id)
                raise DuplicateRequest(speaker_id, event_id, winner.request_id) from exc

            ranker.rerank_event(db, event_id)
            db.commit()
        db.refresh(request)

    logger.info("SpeakerRequest %s created: speaker %s for event %s by organizer %s (score %.1f, rank %s)",
                request.request_id, speaker_id, event_id, organizer_id, request.match_score, request.rank)
    return request


@contextlib.contextmanager
def _pending_transition(
    db: Session,
    request_id: str,
    attempted: str,
    rerank: bool = True,
) -> Iterator[SpeakerRequest]:
    """Lock the request's event, re-check it is still pending, then commit.

    The body mutates the yielded request; on normal exit the event is
    re-ranked and the transaction committed while the lock is still held.
    """
    request = get_request(db, request_id)
    with event_lock(db, request.event_id):
        db.refresh(request, with_for_update=True)
        if request.status != RequestStatus.pending:
            logger.warning("Refused to %s request %s: already %s", attempted, request_id, request.status.value)
            raise InvalidTransition(str(request_id), request.status.value, attempted)
        yield request
        if rerank:
            ranker.rerank_event(db, request.event_id)
        db.commit()


def _reject_siblings(db: Session, accepted: SpeakerRequest) -> int:
    siblings = (
        db.query(SpeakerRequest)
        .filter(
            SpeakerRequest.event_id == accepted.event_id,
            SpeakerRequest.status == RequestStatus.pending,
            SpeakerRequest.request_id != accepted.request_id,
        )
        .all()
    )
    for sibling in siblings:
        sibling.status = RequestStatus.rejected
        sibling.rejection_reason = EXCLUSIVE_REJECTION_REASON
        sibling.responded_at = accepted.responded_at
    return len(siblings)


def accept_request(db: Session, request_id: str, exclusive: Optional[bool] = None) -> SpeakerRequest:
    """Accept a pending request.

    Non-exclusive by default: sibling requests for the same event stay
    pending. With ``exclusive`` (or ``EXCLUSIVE_ACCEPTANCE``) every other
    pending request for the event is rejected in the same transaction.
    """
    if exclusive is None:
        exclusive = settings.EXCLUSIVE_ACCEPTANCE

    displaced = 0
    with _store_access(db, "accept_request"):
        with _pending_transition(db, request_id, "accept") as request:
            request.status = RequestStatus.accepted
            request.responded_at = utcnow()
            if exclusive:
                displaced = _reject_siblings(db, request)
        db.refresh(request)

    if displaced:
        logger.info("SpeakerRequest %s accepted (exclusive); %d sibling(s) rejected", request_id, displaced)
    else:
        logger.info("SpeakerRequest %s accepted", request_id)
    return request


def reject_request(db: Session, request_id: str, reason: Optional[str]) -> SpeakerRequest:
    """Reject a pending request with a non-empty reason."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required", field="reason", request_id=str(request_id))

    with _store_access(db, "reject_request"):
        with _pending_transition(db, request_id, "reject") as request:
            request.status = RequestStatus.rejected
            request.rejection_reason = reason
            request.responded_at = utcnow()
        db.refresh(request)

    logger.info("SpeakerRequest %s rejected (reason: %s)", request_id, reason)
    return request


def update_message(db: Session, request_id: str, message: Optional[str]) -> SpeakerRequest:
    """Edit the request's note; only allowed before the speaker responds."""
    with _store_access(db, "update_message"):
        with _pending_transition(db, request_id, "edit", rerank=False) as request:
            request.message = message or ""
        db.refresh(request)

    logger.info("SpeakerRequest %s message updated", request_id)
    return request
