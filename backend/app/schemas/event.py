"""Pydantic schemas for Events."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class EventCreate(BaseModel):
    title: str
    description: str = ""
    category: str = ""
    tags: list[str] = []
    organizer_id: str
    starts_at: Optional[datetime] = None


class EventOut(BaseModel):
    event_id: str
    title: str
    description: str
    category: str
    tags: list[str]
    organizer_id: str
    starts_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
