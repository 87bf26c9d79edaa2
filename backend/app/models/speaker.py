"""Speaker profile ORM models, with the review and session history used for scoring."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Boolean, Integer, DateTime, JSON, ForeignKey, CheckConstraint,
    Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class SessionStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"
    rejected = "rejected"


class Speaker(Base):
    __tablename__ = "speakers"

    speaker_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    bio = Column(Text, nullable=False, default="")
    specializations = Column(JSON, nullable=False, default=list)
    # [{"event_name": ..., "topic": ..., "date": "YYYY-MM-DD"}]
    past_speaking_records = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    is_suspended = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    reviews = relationship("SpeakerReview", back_populates="speaker", cascade="all, delete-orphan")
    sessions = relationship("SpeakingSession", back_populates="speaker", cascade="all, delete-orphan")


class SpeakerReview(Base):
    __tablename__ = "speaker_reviews"

    review_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    speaker_id = Column(String(36), ForeignKey("speakers.speaker_id"), nullable=False, index=True)
    organizer_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=True)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    speaker = relationship("Speaker", back_populates="reviews")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating_range"),
    )


class SpeakingSession(Base):
    __tablename__ = "speaking_sessions"

    session_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    speaker_id = Column(String(36), ForeignKey("speakers.speaker_id"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=True)
    title = Column(String(255), nullable=False, default="")
    status = Column(SAEnum(SessionStatus), nullable=False, default=SessionStatus.scheduled)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    speaker = relationship("Speaker", back_populates="sessions")
