"""
Void contracts whose review deadline has passed and cancel their bookings.

Meant to be run from cron (every few minutes is plenty).

Usage:
    python -m scripts.check_deadlines
"""

import logging

# Import the app to ensure all models are registered with SQLAlchemy
import booking_contracts.main  # noqa: F401

from booking_contracts.database import SessionLocal
from booking_contracts.services.deadline_monitor import sweep_expired_contracts

logger = logging.getLogger(__name__)


def check_deadlines() -> int:
    db = SessionLocal()
    try:
        voided = sweep_expired_contracts(db)
    finally:
        db.close()
    logger.info("Done. Voided %d expired contract(s).", voided)
    return voided


if __name__ == "__main__":
    check_deadlines()
