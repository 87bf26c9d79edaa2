"""Pydantic schemas for match-scoring signals and results."""
import datetime as dt
from datetime import datetime
from typing import Annotated, Any, Optional
from pydantic import BaseModel, Field


class PastSpeakingRecord(BaseModel):
    event_name: str = ""
    topic: str = ""
    date: Optional[dt.date] = None
    organizer: str = ""


class SpeakerSignals(BaseModel):
    specializations: list[str] = []
    bio: str = ""
    past_speaking_records: list[PastSpeakingRecord] = []


class EventSignals(BaseModel):
    title: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = []


class SessionRecord(BaseModel):
    status: str  # scheduled, completed, cancelled, rejected
    created_at: datetime


class HistorySignals(BaseModel):
    ratings: list[Annotated[float, Field(ge=1, le=5)]] = []
    sessions: list[SessionRecord] = []


class ScoringSignals(BaseModel):
    """Everything the scorer looks at for one (speaker, event) pair.

    ``as_of`` anchors the recency window so identical signals always score the same.
    """

    speaker: SpeakerSignals
    event: EventSignals
    history: HistorySignals = Field(default_factory=HistorySignals)
    as_of: datetime


class MatchResult(BaseModel):
    score: float
    breakdown: dict[str, dict[str, Any]]
