"""Booking API routes.

Bookings are produced by the negotiation flow; these endpoints exist so the
contract engine can be driven end to end (and seeded in tests).
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from booking_contracts.database import get_db
from booking_contracts.models.booking import Booking
from booking_contracts.models.user import User
from booking_contracts.schemas.booking import BookingCreate, BookingOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(payload: BookingCreate, db: Session = Depends(get_db)):
    """Record a negotiated booking between an artist and a promoter."""
    for user_id in (payload.artist_user_id, payload.organizer_user_id):
        if not db.query(User).filter(User.user_id == user_id).first():
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    if payload.artist_user_id == payload.organizer_user_id:
        raise HTTPException(status_code=400, detail="Artist and organizer must be different users")

    booking = Booking(**payload.model_dump())
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Created booking %s (artist=%s, organizer=%s)",
                booking.booking_id, booking.artist_user_id, booking.organizer_user_id)
    return booking


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    """Fetch a single booking by ID."""
    booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking
