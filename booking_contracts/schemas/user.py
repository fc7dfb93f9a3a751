"""Pydantic schemas for Users."""
from datetime import datetime
from pydantic import BaseModel, Field

from booking_contracts.models.user import UserRole


class UserCreate(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    role: UserRole = UserRole.artist


class UserOut(BaseModel):
    user_id: str
    display_name: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}
