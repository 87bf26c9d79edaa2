"""Ranker: dense 1..N ranks over an event's pending requests.

Order: ``match_score`` descending, then ``created_at`` ascending (earlier
submissions win ties), then ``request_id`` so the order is total.
``rank`` is a derived projection of that order; nothing else writes it.
"""
import logging
from typing import Iterable

from sqlalchemy.orm import Session

from app.models.speaker_request import SpeakerRequest, RequestStatus
from app.utils import as_utc

logger = logging.getLogger(__name__)


def ranking_key(request: SpeakerRequest) -> tuple:
    return (-request.match_score, as_utc(request.created_at), request.request_id)


def order_pending(requests: Iterable[SpeakerRequest]) -> list[SpeakerRequest]:
    """Return pending requests in rank order (non-pending ones are dropped)."""
    pending = [r for r in requests if r.status == RequestStatus.pending]
    return sorted(pending, key=ranking_key)


def rerank_event(db: Session, event_id: str) -> list[SpeakerRequest]:
    """Recompute and stage ranks for one event's pending set.

    Runs inside the caller's transaction and under its event lock; only rows
    whose rank actually changes are written, so a second run is a no-op.
    """
    # Pending-set changes made in this session must be visible to the query
    db.flush()

    pending = (
        db.query(SpeakerRequest)
        .filter(
            SpeakerRequest.event_id == str(event_id),
            SpeakerRequest.status == RequestStatus.pending,
        )
        .all()
    )
    ordered = order_pending(pending)

    changed = 0
    for position, request in enumerate(ordered, start=1):
        if request.rank != position:
            request.rank = position
            changed += 1
    db.flush()

    logger.info("Re-ranked event %s: %d pending, %d rank(s) changed", event_id, len(ordered), changed)
    return ordered
