"""SpeakerRequest ORM model: the request store.

One row per (speaker, event) pair, enforced by ``uq_speaker_request_speaker_event``.
``rank`` is derived by the ranker and only meaningful while ``status`` is pending.
"""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Float, Integer, DateTime, JSON, ForeignKey, Index, UniqueConstraint,
    Enum as SAEnum,
)
from app.database import Base
from app.utils import utcnow


class RequestStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class SpeakerRequest(Base):
    __tablename__ = "speaker_requests"

    request_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    speaker_id = Column(String(36), ForeignKey("speakers.speaker_id"), nullable=False)
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False)
    organizer_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    message = Column(Text, nullable=False, default="")
    match_score = Column(Float, nullable=False)
    score_breakdown = Column(JSON, nullable=True)
    rank = Column(Integer, nullable=True)
    status = Column(SAEnum(RequestStatus), nullable=False, default=RequestStatus.pending)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=False, default="")
    # Stamped in Python for sub-second precision; it is the ranking tiebreak.
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("speaker_id", "event_id", name="uq_speaker_request_speaker_event"),
        Index("ix_speaker_requests_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<SpeakerRequest(id={self.request_id}, speaker={self.speaker_id}, "
            f"event={self.event_id}, status={self.status}, rank={self.rank})>"
        )
