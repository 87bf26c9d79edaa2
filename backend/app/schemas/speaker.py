"""Pydantic schemas for Speakers and their review/session history."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.scoring import PastSpeakingRecord


class SpeakerCreate(BaseModel):
    name: str
    email: str
    bio: str = ""
    specializations: list[str] = []
    past_speaking_records: list[PastSpeakingRecord] = []
    is_active: bool = True


class SpeakerUpdate(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    specializations: Optional[list[str]] = None
    past_speaking_records: Optional[list[PastSpeakingRecord]] = None
    is_active: Optional[bool] = None
    is_suspended: Optional[bool] = None


class SpeakerOut(BaseModel):
    speaker_id: str
    name: str
    email: str
    bio: str
    specializations: list[str]
    past_speaking_records: list[PastSpeakingRecord]
    is_active: bool
    is_suspended: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ReviewCreate(BaseModel):
    organizer_id: str
    event_id: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    review: str = ""


class ReviewOut(BaseModel):
    review_id: str
    speaker_id: str
    organizer_id: str
    event_id: Optional[str] = None
    rating: int
    review: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionCreate(BaseModel):
    event_id: Optional[str] = None
    title: str = ""
    status: str = "scheduled"  # scheduled, completed, cancelled, rejected
    created_at: Optional[datetime] = None


class SessionOut(BaseModel):
    session_id: str
    speaker_id: str
    event_id: Optional[str] = None
    title: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
