"""Deadline Monitor — voids ``sent`` contracts whose review window has closed.

Run periodically (see ``scripts/check_deadlines.py`` or
``POST /api/contracts/check-deadlines``). Each contract is voided with a
conditional UPDATE, so overlapping sweeps and a party action racing the
sweep never void twice or act on a voided contract.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from booking_contracts.models.contract import Contract, ContractStatus
from booking_contracts.services.clock import utcnow
from booking_contracts.services.contract_lifecycle import cancel_booking
from booking_contracts.services.transitions import TransitionApplied, publish

logger = logging.getLogger(__name__)

DEADLINE_EXPIRED_REASON = "contract_deadline_expired"


def find_expired_contracts(db: Session, now: datetime) -> list[Contract]:
    return (
        db.query(Contract)
        .filter(Contract.status == ContractStatus.sent, Contract.deadline_at < now)
        .order_by(Contract.deadline_at)
        .all()
    )


def void_expired_contract(db: Session, contract: Contract, now: datetime) -> bool:
    """Void one expired contract and cancel its booking. False if someone beat us to it."""
    updated = (
        db.query(Contract)
        .filter(
            Contract.contract_id == contract.contract_id,
            Contract.status == ContractStatus.sent,
            Contract.deadline_at < now,
        )
        .update(
            {
                Contract.status: ContractStatus.voided,
                Contract.voided_at: now,
                Contract.void_reason: DEADLINE_EXPIRED_REASON,
                Contract.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        return False

    cancel_booking(db, contract.booking_id, DEADLINE_EXPIRED_REASON, now)
    db.commit()

    publish(db, TransitionApplied(
        contract_id=contract.contract_id,
        booking_id=contract.booking_id,
        action="contract_voided_timeout",
        message=(
            "Contract deadline expired. The contract has been voided and the booking "
            "has been cancelled. Please start a new booking if you wish to proceed."
        ),
        context={"void_reason": DEADLINE_EXPIRED_REASON},
    ))
    return True


def sweep_expired_contracts(db: Session, now: Optional[datetime] = None) -> int:
    """Void every expired ``sent`` contract. Returns how many were voided by this sweep."""
    now = now or utcnow()
    voided = 0
    for contract in find_expired_contracts(db, now):
        contract_id, booking_id = contract.contract_id, contract.booking_id
        if void_expired_contract(db, contract, now):
            voided += 1
            logger.info("Voided expired contract %s (booking %s)", contract_id, booking_id)
    if voided:
        logger.info("Deadline sweep voided %d contract(s)", voided)
    return voided
