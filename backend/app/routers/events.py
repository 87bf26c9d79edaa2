"""Event API routes, including the ranked request list and speaker recommendations."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.event import Event
from app.models.user import User
from app.schemas.event import EventCreate, EventOut
from app.schemas.speaker_request import RecommendationOut, SpeakerRequestOut
from app.services import recommendation_service, request_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, db: Session = Depends(get_db)):
    """Create an event owned by an organizer."""
    if not db.query(User).filter(User.user_id == payload.organizer_id).first():
        raise HTTPException(status_code=404, detail="Organizer not found")

    event = Event(**payload.model_dump())
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by organizer %s", event.title, event.event_id, event.organizer_id)
    return event


@router.get("/", response_model=list[EventOut])
def list_events(
    organizer_id: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """List events with optional filters."""
    query = db.query(Event)
    if organizer_id:
        query = query.filter(Event.organizer_id == organizer_id)
    if category:
        query = query.filter(Event.category == category)
    return query.order_by(Event.created_at).all()


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    """Fetch a single event by ID."""
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/{event_id}/ranked-requests", response_model=list[SpeakerRequestOut])
def list_ranked_requests(event_id: str, db: Session = Depends(get_db)):
    """Pending speaker requests for the event, best rank first."""
    return request_service.list_ranked_pending(db, event_id)


@router.get("/{event_id}/recommended-speakers", response_model=list[RecommendationOut])
def recommended_speakers(
    event_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    min_rating: float = Query(0, ge=0, le=5),
    db: Session = Depends(get_db),
):
    """Best-matching speakers who have not been requested for this event yet."""
    return recommendation_service.recommend_speakers(db, event_id, limit=limit, min_rating=min_rating)
