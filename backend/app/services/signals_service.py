"""Derive scoring signals from the stored speaker/event directory."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.exceptions import NotFound
from app.models.event import Event
from app.models.speaker import Speaker
from app.schemas.scoring import EventSignals, HistorySignals, ScoringSignals, SessionRecord, SpeakerSignals
from app.utils import utcnow

logger = logging.getLogger(__name__)


def speaker_signals(speaker: Speaker) -> SpeakerSignals:
    return SpeakerSignals(
        specializations=speaker.specializations or [],
        bio=speaker.bio or "",
        past_speaking_records=speaker.past_speaking_records or [],
    )


def event_signals(event: Event) -> EventSignals:
    return EventSignals(
        title=event.title or "",
        description=event.description or "",
        category=event.category or "",
        tags=event.tags or [],
    )


def history_signals(speaker: Speaker) -> HistorySignals:
    return HistorySignals(
        ratings=[review.rating for review in speaker.reviews],
        sessions=[
            SessionRecord(status=session.status.value, created_at=session.created_at)
            for session in speaker.sessions
        ],
    )


def build_signals(
    db: Session,
    speaker_id: str,
    event_id: str,
    as_of: Optional[datetime] = None,
) -> ScoringSignals:
    """Assemble the signal bundle for one (speaker, event) pair from the directory."""
    speaker = (
        db.query(Speaker)
        .options(selectinload(Speaker.reviews), selectinload(Speaker.sessions))
        .filter(Speaker.speaker_id == str(speaker_id))
        .first()
    )
    if speaker is None:
        raise NotFound("Speaker", speaker_id)
    event = db.query(Event).filter(Event.event_id == str(event_id)).first()
    if event is None:
        raise NotFound("Event", event_id)

    signals = ScoringSignals(
        speaker=speaker_signals(speaker),
        event=event_signals(event),
        history=history_signals(speaker),
        as_of=as_of or utcnow(),
    )
    logger.debug("Built signals for speaker %s / event %s", speaker_id, event_id)
    return signals
