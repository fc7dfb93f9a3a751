"""Booking ORM model — snapshot of the negotiated booking a contract is built from.

The negotiation workflow that fills these rows lives outside this service;
the contract engine only reads the negotiated terms and moves ``status``
into ``contracting``, ``confirmed`` or ``cancelled``.
"""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Numeric, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from booking_contracts.database import Base


class BookingStatus(str, enum.Enum):
    inquiry = "inquiry"
    negotiating = "negotiating"
    contracting = "contracting"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


class Booking(Base):
    __tablename__ = "bookings"

    booking_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    artist_user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    organizer_user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    status = Column(SAEnum(BookingStatus), nullable=False, default=BookingStatus.negotiating)

    # Negotiated (locked) terms
    offer_amount = Column(Numeric(12, 2), nullable=True)
    final_amount = Column(Numeric(12, 2), nullable=True)
    offer_currency = Column(String(3), nullable=False, default="INR")
    deposit_percent = Column(Numeric(5, 2), nullable=False, default=30)
    event_title = Column(String(255), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=True)
    slot_time = Column(String(50), nullable=True)
    venue_name = Column(String(255), nullable=True)
    venue_address = Column(String(500), nullable=True)
    artist_name = Column(String(255), nullable=True)
    organizer_name = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=False, default=dict)

    cancel_reason = Column(String(100), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
