"""Speaker directory routes: profiles plus the review and session history used for scoring."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.speaker import Speaker, SpeakerReview, SpeakingSession, SessionStatus
from app.models.user import User
from app.schemas.speaker import (
    ReviewCreate, ReviewOut, SessionCreate, SessionOut, SpeakerCreate, SpeakerOut, SpeakerUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_speaker_or_404(db: Session, speaker_id: str) -> Speaker:
    speaker = db.query(Speaker).filter(Speaker.speaker_id == speaker_id).first()
    if not speaker:
        raise HTTPException(status_code=404, detail="Speaker not found")
    return speaker


@router.post("/", response_model=SpeakerOut, status_code=status.HTTP_201_CREATED)
def create_speaker(payload: SpeakerCreate, db: Session = Depends(get_db)):
    """Register a speaker profile."""
    speaker = Speaker(**payload.model_dump(mode="json"))
    db.add(speaker)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"A speaker with email {payload.email} already exists")
    db.refresh(speaker)
    logger.info("Created speaker %s (%s)", speaker.speaker_id, speaker.name)
    return speaker


@router.get("/", response_model=list[SpeakerOut])
def list_speakers(active_only: bool = False, db: Session = Depends(get_db)):
    """List speakers."""
    query = db.query(Speaker)
    if active_only:
        query = query.filter(Speaker.is_active.is_(True), Speaker.is_suspended.is_(False))
    return query.order_by(Speaker.name).all()


@router.get("/{speaker_id}", response_model=SpeakerOut)
def get_speaker(speaker_id: str, db: Session = Depends(get_db)):
    """Fetch a single speaker by ID."""
    return _get_speaker_or_404(db, speaker_id)


@router.patch("/{speaker_id}", response_model=SpeakerOut)
def update_speaker(speaker_id: str, payload: SpeakerUpdate, db: Session = Depends(get_db)):
    """Update a speaker profile (partial update).

    Existing requests keep the score they were created with.
    """
    speaker = _get_speaker_or_404(db, speaker_id)
    for field, value in payload.model_dump(exclude_unset=True, mode="json").items():
        setattr(speaker, field, value)
    db.commit()
    db.refresh(speaker)
    logger.info("Updated speaker %s", speaker_id)
    return speaker


@router.post("/{speaker_id}/reviews", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
def add_review(speaker_id: str, payload: ReviewCreate, db: Session = Depends(get_db)):
    """Record an organizer's 1-5 rating of a speaker."""
    _get_speaker_or_404(db, speaker_id)
    if not db.query(User).filter(User.user_id == payload.organizer_id).first():
        raise HTTPException(status_code=404, detail="Organizer not found")

    review = SpeakerReview(speaker_id=speaker_id, **payload.model_dump())
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info("Speaker %s rated %d by organizer %s", speaker_id, review.rating, payload.organizer_id)
    return review


@router.get("/{speaker_id}/reviews", response_model=list[ReviewOut])
def list_reviews(speaker_id: str, db: Session = Depends(get_db)):
    """List a speaker's reviews, newest first."""
    _get_speaker_or_404(db, speaker_id)
    return (
        db.query(SpeakerReview)
        .filter(SpeakerReview.speaker_id == speaker_id)
        .order_by(SpeakerReview.created_at.desc())
        .all()
    )


@router.post("/{speaker_id}/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def add_session(speaker_id: str, payload: SessionCreate, db: Session = Depends(get_db)):
    """Record a speaking session in the speaker's history."""
    _get_speaker_or_404(db, speaker_id)
    try:
        session_status = SessionStatus(payload.status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid session status: {payload.status}")

    session = SpeakingSession(
        speaker_id=speaker_id,
        event_id=payload.event_id,
        title=payload.title,
        status=session_status,
    )
    if payload.created_at is not None:
        session.created_at = payload.created_at
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Recorded %s session %s for speaker %s", session_status.value, session.session_id, speaker_id)
    return session


@router.get("/{speaker_id}/sessions", response_model=list[SessionOut])
def list_sessions(speaker_id: str, db: Session = Depends(get_db)):
    """List a speaker's sessions, newest first."""
    _get_speaker_or_404(db, speaker_id)
    return (
        db.query(SpeakingSession)
        .filter(SpeakingSession.speaker_id == speaker_id)
        .order_by(SpeakingSession.created_at.desc())
        .all()
    )
