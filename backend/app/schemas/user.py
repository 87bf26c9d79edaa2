"""Pydantic schemas for Users."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class UserCreate(BaseModel):
    display_name: str
    email: Optional[str] = None
    role: str = "organizer"


class UserOut(BaseModel):
    user_id: str
    display_name: str
    email: Optional[str] = None
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}
