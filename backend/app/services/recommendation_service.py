"""Speaker recommendations for an event.

Scores every active, non-suspended speaker who has no request for the event
yet and returns the best matches. Read-only: nothing is persisted.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.exceptions import NotFound
from app.models.event import Event
from app.models.speaker import Speaker
from app.models.speaker_request import SpeakerRequest
from app.schemas.scoring import ScoringSignals
from app.services.match_scorer import score_match
from app.services.signals_service import event_signals, history_signals, speaker_signals
from app.utils import utcnow

logger = logging.getLogger(__name__)


def recommend_speakers(
    db: Session,
    event_id: str,
    limit: Optional[int] = None,
    min_rating: float = 0,
    as_of: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Return up to ``limit`` ranked candidates for an event."""
    event = db.query(Event).filter(Event.event_id == str(event_id)).first()
    if event is None:
        raise NotFound("Event", event_id)

    limit = limit or settings.RECOMMENDATION_LIMIT
    as_of = as_of or utcnow()
    already_requested = {
        speaker_id
        for (speaker_id,) in db.query(SpeakerRequest.speaker_id).filter(SpeakerRequest.event_id == str(event_id))
    }
    candidates = (
        db.query(Speaker)
        .options(selectinload(Speaker.reviews), selectinload(Speaker.sessions))
        .filter(Speaker.is_active.is_(True), Speaker.is_suspended.is_(False))
        .all()
    )

    event_part = event_signals(event)
    scored = []
    for speaker in candidates:
        if speaker.speaker_id in already_requested:
            continue
        result = score_match(ScoringSignals(
            speaker=speaker_signals(speaker),
            event=event_part,
            history=history_signals(speaker),
            as_of=as_of,
        ))
        if min_rating > 0 and result.breakdown["rating"]["avg_rating"] < min_rating:
            continue
        scored.append((speaker, result))

    scored.sort(key=lambda item: (-item[1].score, item[0].name))

    recommendations = []
    for position, (speaker, result) in enumerate(scored[:limit], start=1):
        experience = result.breakdown["session_experience"]
        rating = result.breakdown["rating"]
        recommendations.append({
            "rank": position,
            "speaker": {
                "speaker_id": speaker.speaker_id,
                "name": speaker.name,
                "email": speaker.email,
                "bio": speaker.bio,
                "specializations": speaker.specializations or [],
            },
            "match_score": result.score,
            "avg_rating": rating["avg_rating"],
            "total_reviews": rating["total_reviews"],
            "completed_sessions": experience["completed_sessions"],
            "total_sessions": experience["total_sessions"],
            "breakdown": result.breakdown,
        })

    logger.info("Recommended %d of %d candidate speaker(s) for event %s",
                len(recommendations), len(candidates), event_id)
    return recommendations
