"""SpeakerRequest API routes: organizer proposes, speaker accepts or rejects."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.speaker_request import (
    SpeakerRequestCreate, SpeakerRequestOut, SpeakerRequestReject, SpeakerRequestUpdate,
)
from app.services import request_service, signals_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=SpeakerRequestOut, status_code=status.HTTP_201_CREATED)
def create_speaker_request(payload: SpeakerRequestCreate, db: Session = Depends(get_db)):
    """Propose a speaker for an event.

    The request is scored once, stored as pending and ranked against the
    event's other pending requests. Without explicit ``scoring_signals`` the
    signals are built from the stored speaker and event profiles.
    """
    signals = payload.scoring_signals
    if signals is None:
        signals = signals_service.build_signals(db, payload.speaker_id, payload.event_id)

    return request_service.create_request(
        db=db,
        speaker_id=payload.speaker_id,
        event_id=payload.event_id,
        organizer_id=payload.organizer_id,
        message=payload.message,
        signals=signals,
    )


@router.get("/", response_model=list[SpeakerRequestOut])
def list_speaker_requests(
    event_id: Optional[str] = None,
    speaker_id: Optional[str] = None,
    organizer_id: Optional[str] = None,
    status_filter: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """List speaker requests, optionally filtered by event, speaker, organizer or status."""
    return request_service.list_requests(
        db,
        event_id=event_id,
        speaker_id=speaker_id,
        organizer_id=organizer_id,
        status=status_filter,
    )


@router.get("/{request_id}", response_model=SpeakerRequestOut)
def get_speaker_request(request_id: str, db: Session = Depends(get_db)):
    """Fetch a single speaker request by ID."""
    return request_service.get_request(db, request_id)


@router.patch("/{request_id}", response_model=SpeakerRequestOut)
def update_speaker_request(request_id: str, payload: SpeakerRequestUpdate, db: Session = Depends(get_db)):
    """Edit the message of a request that is still pending."""
    return request_service.update_message(db, request_id, payload.message)


@router.post("/{request_id}/accept", response_model=SpeakerRequestOut)
def accept_speaker_request(
    request_id: str,
    exclusive: Optional[bool] = Query(None, description="Reject the event's other pending requests"),
    db: Session = Depends(get_db),
):
    """Accept a pending request; siblings are re-ranked."""
    return request_service.accept_request(db, request_id, exclusive=exclusive)


@router.post("/{request_id}/reject", response_model=SpeakerRequestOut)
def reject_speaker_request(request_id: str, payload: SpeakerRequestReject, db: Session = Depends(get_db)):
    """Reject a pending request with a reason; siblings are re-ranked."""
    return request_service.reject_request(db, request_id, payload.reason)
