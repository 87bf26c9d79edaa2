"""Pydantic schemas for SpeakerRequests."""
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel

from app.schemas.scoring import ScoringSignals


class SpeakerRequestCreate(BaseModel):
    speaker_id: str
    event_id: str
    organizer_id: str
    message: str = ""
    # Derived from the speaker/event directory when omitted
    scoring_signals: Optional[ScoringSignals] = None


class SpeakerRequestUpdate(BaseModel):
    message: str


class SpeakerRequestReject(BaseModel):
    reason: str


class SpeakerRequestOut(BaseModel):
    request_id: str
    speaker_id: str
    event_id: str
    organizer_id: str
    message: str
    match_score: float
    score_breakdown: Optional[dict[str, Any]] = None
    rank: Optional[int] = None
    status: str
    responded_at: Optional[datetime] = None
    rejection_reason: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RecommendedSpeaker(BaseModel):
    speaker_id: str
    name: str
    email: str
    bio: str
    specializations: list[str]


class RecommendationOut(BaseModel):
    rank: int
    speaker: RecommendedSpeaker
    match_score: float
    avg_rating: float
    total_reviews: int
    completed_sessions: int
    total_sessions: int
    breakdown: dict[str, dict[str, Any]]
