"""Pydantic schemas for Bookings."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    artist_user_id: str
    organizer_user_id: str
    offer_amount: Optional[Decimal] = Field(default=None, ge=0)
    final_amount: Optional[Decimal] = Field(default=None, ge=0)
    offer_currency: str = Field(default="INR", min_length=3, max_length=3)
    deposit_percent: Decimal = Field(default=Decimal("30"), ge=0, le=100)
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None
    slot_time: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    artist_name: Optional[str] = None
    organizer_name: Optional[str] = None
    meta: dict[str, Any] = {}


class BookingOut(BaseModel):
    booking_id: str
    artist_user_id: str
    organizer_user_id: str
    status: str
    offer_amount: Optional[Decimal] = None
    final_amount: Optional[Decimal] = None
    offer_currency: str
    deposit_percent: Decimal
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None
    slot_time: Optional[str] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    artist_name: Optional[str] = None
    organizer_name: Optional[str] = None
    meta: dict[str, Any]
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
