"""Contract Lifecycle Manager — the single authority for contract transitions.

Responsibilities:
- Idempotent contract initiation from a negotiated booking
- Per-party progression: review -> (optional edit round-trip) -> accept -> sign
- Deadline enforcement at the top of every mutating operation
- Hand-off to administrator arbitration once both parties have signed

Every party operation has the same shape:

1. load the contract and check preconditions, raising a typed error;
2. apply the change as a guarded UPDATE whose WHERE clause repeats the
   preconditions (status, deadline, stage flags, no pending edit);
3. commit, then publish exactly one ``TransitionApplied`` event.

A guarded UPDATE that matches no row means a concurrent request won the
race. The contract is reloaded and the precondition check rerun, so the
loser gets the same business error it would have seen arriving second.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from booking_contracts.config import settings
from booking_contracts.errors import (
    AuthorizationError,
    DeadlinePassedError,
    NotFoundError,
    StateConflictError,
    ValidationFailedError,
)
from booking_contracts.models.booking import Booking, BookingStatus
from booking_contracts.models.contract import Contract, ContractStatus, PartyRole
from booking_contracts.models.contract_edit_request import ContractEditRequest, EditRequestStatus
from booking_contracts.models.user import User, UserRole
from booking_contracts.services import contract_versions, edit_negotiator, signature_ledger
from booking_contracts.services.clock import as_utc, utcnow
from booking_contracts.services.contract_document import build_terms, format_local_datetime, render_contract
from booking_contracts.services.transitions import TransitionApplied, publish

logger = logging.getLogger(__name__)

SIGNER_SEQUENCE = {"steps": ["promoter", "artist"]}
ADMIN_REJECTED_REASON = "admin_rejected"
BOOKING_ADMIN_REJECTED_REASON = "contract_admin_rejected"

ROLE_LABELS = {PartyRole.artist: "Artist", PartyRole.promoter: "Promoter"}

# Per-party column names for each stage of the review -> accept -> sign ladder
_STAGE_FIELDS = {
    PartyRole.artist: {
        "review": "artist_review_done_at",
        "edit": "artist_edit_used",
        "accept": "artist_accepted_at",
        "sign": "signed_by_artist",
        "signed_at": "artist_signed_at",
    },
    PartyRole.promoter: {
        "review": "promoter_review_done_at",
        "edit": "promoter_edit_used",
        "accept": "promoter_accepted_at",
        "sign": "signed_by_promoter",
        "signed_at": "promoter_signed_at",
    },
}


class ReviewAction(str, enum.Enum):
    accept_as_is = "ACCEPT_AS_IS"
    propose_edits = "PROPOSE_EDITS"


class EditDecision(str, enum.Enum):
    approve = "APPROVE"
    reject = "REJECT"


class AdminDecision(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"


@dataclass
class ContractView:
    """A contract plus the fields derived for one viewer."""

    contract: Contract
    fully_executed: bool
    time_remaining: int
    user_role: Optional[str] = None
    user_can_edit: bool = False
    user_has_reviewed: bool = False
    user_has_accepted: bool = False
    user_has_signed: bool = False


# ── Lookups ────────────────────────────────────────────────────────

def _column(role: PartyRole, stage: str):
    return getattr(Contract, _STAGE_FIELDS[role][stage])


def _stage_value(contract: Contract, role: PartyRole, stage: str) -> Any:
    return getattr(contract, _STAGE_FIELDS[role][stage])


def _get_contract(db: Session, contract_id: str) -> Contract:
    contract = db.query(Contract).filter(Contract.contract_id == contract_id).first()
    if not contract:
        raise NotFoundError("Contract not found")
    return contract


def _get_booking(db: Session, booking_id: str) -> Booking:
    booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def resolve_party_role(booking: Booking, user_id: str) -> PartyRole:
    """Map a user to their side of the booking; anyone else is not a party."""
    if booking.artist_user_id == user_id:
        return PartyRole.artist
    if booking.organizer_user_id == user_id:
        return PartyRole.promoter
    raise AuthorizationError("Not authorized: you are not a party to this booking")


def _require_admin(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user or user.role != UserRole.admin:
        raise AuthorizationError("Administrator access required")
    return user


def _pending_edit(db: Session, contract_id: str) -> Optional[ContractEditRequest]:
    return (
        db.query(ContractEditRequest)
        .filter(
            ContractEditRequest.contract_id == contract_id,
            ContractEditRequest.status == EditRequestStatus.pending,
        )
        .first()
    )


def _pending_edit_exists(db: Session, contract_id: str):
    return (
        db.query(ContractEditRequest.request_id)
        .filter(
            ContractEditRequest.contract_id == contract_id,
            ContractEditRequest.status == EditRequestStatus.pending,
        )
        .exists()
    )


# ── Guards ─────────────────────────────────────────────────────────

def is_deadline_passed(contract: Contract, now: datetime) -> bool:
    deadline = as_utc(contract.deadline_at)
    return deadline is not None and now > deadline


def _check_open(contract: Contract, now: datetime) -> None:
    """Party actions are only valid on a ``sent`` contract inside its deadline."""
    if contract.status == ContractStatus.voided:
        raise StateConflictError("Contract has been voided")
    if contract.status == ContractStatus.signed:
        raise StateConflictError("Contract is already fully signed")
    if contract.status == ContractStatus.admin_review:
        raise StateConflictError("Contract is awaiting administrator review")
    if is_deadline_passed(contract, now):
        raise DeadlinePassedError()


def _guarded_update(
    db: Session,
    contract_id: str,
    now: datetime,
    guards: list,
    values: dict,
) -> bool:
    """Check-and-set on an open contract; True iff this request won the row."""
    updated = (
        db.query(Contract)
        .filter(
            Contract.contract_id == contract_id,
            Contract.status == ContractStatus.sent,
            Contract.deadline_at >= now,
            *guards,
        )
        .update({Contract.updated_at: now, **values}, synchronize_session=False)
    )
    return updated == 1


def _lost_race(db: Session, contract_id: str, check: Callable[[Contract], None]) -> None:
    db.rollback()
    check(_get_contract(db, contract_id))
    raise StateConflictError("Contract was modified concurrently. Reload and retry.")


def cancel_booking(db: Session, booking_id: str, reason: str, now: datetime) -> None:
    """Cascade a contract's failure to its booking (no-op if already cancelled)."""
    (
        db.query(Booking)
        .filter(Booking.booking_id == booking_id, Booking.status != BookingStatus.cancelled)
        .update(
            {
                Booking.status: BookingStatus.cancelled,
                Booking.cancel_reason: reason,
                Booking.cancelled_at: now,
                Booking.updated_at: now,
            },
            synchronize_session=False,
        )
    )


# ── Initiate / fetch ───────────────────────────────────────────────

def _existing_or_raise(contract: Contract) -> Contract:
    if contract.status == ContractStatus.voided:
        raise StateConflictError("Contract was voided. Booking is cancelled.")
    return contract


def initiate_contract(
    db: Session,
    booking_id: str,
    actor_user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Contract, bool]:
    """Create the booking's contract (version 1), or return the existing one.

    Returns ``(contract, created)``. Re-initiating is a no-op for a live
    contract and an error for a voided one.
    """
    now = now or utcnow()
    booking = _get_booking(db, booking_id)
    if actor_user_id:
        _get_user(db, actor_user_id)

    existing = db.query(Contract).filter(Contract.booking_id == booking_id).first()
    if existing:
        return _existing_or_raise(existing), False
    if booking.status == BookingStatus.cancelled:
        raise StateConflictError("Booking is cancelled")

    terms = build_terms(booking)
    deadline = now + timedelta(hours=settings.CONTRACT_DEADLINE_HOURS)
    contract = Contract(
        booking_id=booking_id,
        status=ContractStatus.sent,
        current_version=1,
        contract_text=render_contract(booking, terms),
        terms=terms,
        signer_sequence=SIGNER_SEQUENCE,
        initiated_at=now,
        deadline_at=deadline,
        artist_edit_used=False,
        promoter_edit_used=False,
        signed_by_artist=False,
        signed_by_promoter=False,
    )
    db.add(contract)
    try:
        db.flush()
        contract_versions.create_initial_version(db, contract, terms, actor_user_id)
        booking.status = BookingStatus.contracting
        db.commit()
    except IntegrityError:
        # Another request initiated the same booking first
        db.rollback()
        existing = db.query(Contract).filter(Contract.booking_id == booking_id).first()
        if existing is None:
            raise
        return _existing_or_raise(existing), False

    db.refresh(contract)
    publish(db, TransitionApplied(
        contract_id=contract.contract_id,
        booking_id=booking_id,
        action="contract_initiated",
        actor_user_id=actor_user_id,
        message=(
            f"Contract initiated. Review deadline: {format_local_datetime(deadline)} "
            f"({settings.CONTRACT_DEADLINE_HOURS} hours). Both parties must review, accept, "
            "and sign before the deadline."
        ),
        context={"deadline": deadline.isoformat()},
    ))
    return contract, True


def get_contract_details(
    db: Session,
    booking_id: str,
    viewer_user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ContractView:
    """Fetch a booking's contract with derived per-viewer fields. No side effects."""
    now = now or utcnow()
    contract = db.query(Contract).filter(Contract.booking_id == booking_id).first()
    if not contract:
        raise NotFoundError("No contract found for this booking")

    remaining = (as_utc(contract.deadline_at) - now).total_seconds()
    view = ContractView(
        contract=contract,
        fully_executed=signature_ledger.is_fully_executed(contract),
        time_remaining=max(0, int(remaining)),
    )
    if not viewer_user_id:
        return view

    viewer = _get_user(db, viewer_user_id)
    booking = _get_booking(db, booking_id)
    try:
        role = resolve_party_role(booking, viewer_user_id)
    except AuthorizationError:
        if viewer.role == UserRole.admin:
            return view
        raise

    view.user_role = role.value
    view.user_can_edit = not _stage_value(contract, role, "edit")
    view.user_has_reviewed = _stage_value(contract, role, "review") is not None
    view.user_has_accepted = _stage_value(contract, role, "accept") is not None
    view.user_has_signed = signature_ledger.has_signed(contract, role)
    return view


# ── Party actions ──────────────────────────────────────────────────

def _party(db: Session, contract: Contract, actor_user_id: str) -> tuple[Booking, PartyRole]:
    booking = _get_booking(db, contract.booking_id)
    return booking, resolve_party_role(booking, actor_user_id)


def review_contract(
    db: Session,
    contract_id: str,
    actor_user_id: str,
    action: ReviewAction,
    changes: Optional[dict[str, Any]] = None,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Contract, Optional[ContractEditRequest]]:
    """Complete the actor's review, either accepting as-is or proposing their one edit."""
    now = now or utcnow()
    contract = _get_contract(db, contract_id)
    booking, role = _party(db, contract, actor_user_id)
    review_col = _column(role, "review")
    edit_col = _column(role, "edit")

    def check(c: Contract) -> None:
        _check_open(c, now)
        if _stage_value(c, role, "review"):
            raise StateConflictError("You have already completed your review")
        if action == ReviewAction.propose_edits:
            if _stage_value(c, role, "edit"):
                raise StateConflictError("You have already used your one-time edit opportunity")
            if _pending_edit(db, c.contract_id):
                raise StateConflictError("There is already a pending edit request. Wait for it to be resolved.")

    check(contract)
    label = ROLE_LABELS[role]

    if action == ReviewAction.accept_as_is:
        if not _guarded_update(db, contract_id, now, [review_col.is_(None)], {review_col: now}):
            _lost_race(db, contract_id, check)
        db.commit()
        publish(db, TransitionApplied(
            contract_id=contract_id,
            booking_id=booking.booking_id,
            action="contract_reviewed_accepted",
            actor_user_id=actor_user_id,
            message=f"{label} has accepted the contract as-is.",
            context={"role": role.value},
        ))
        return contract, None

    errors = edit_negotiator.validate_changes(changes)
    if errors:
        raise ValidationFailedError(errors)

    guards = [review_col.is_(None), edit_col.is_(False), ~_pending_edit_exists(db, contract_id)]
    if not _guarded_update(db, contract_id, now, guards, {review_col: now, edit_col: True}):
        _lost_race(db, contract_id, check)
    request = edit_negotiator.open_edit_request(db, contract, role, actor_user_id, changes, note)
    db.commit()

    publish(db, TransitionApplied(
        contract_id=contract_id,
        booking_id=booking.booking_id,
        action="contract_edit_requested",
        actor_user_id=actor_user_id,
        message=(
            f"{label} has proposed edits to the contract. The other party must approve or reject."
            + (f' Note: "{note}"' if note else "")
        ),
        context={"role": role.value, "edit_request_id": request.request_id},
    ))
    return contract, request


def respond_to_edit_request(
    db: Session,
    contract_id: str,
    request_id: str,
    actor_user_id: str,
    decision: EditDecision,
    response_note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Contract, ContractEditRequest]:
    """The other party approves (new version) or rejects (no version) a pending edit."""
    now = now or utcnow()
    contract = _get_contract(db, contract_id)
    booking, role = _party(db, contract, actor_user_id)

    request = db.query(ContractEditRequest).filter(ContractEditRequest.request_id == request_id).first()
    if not request:
        raise NotFoundError("Edit request not found")
    if request.contract_id != contract_id:
        raise StateConflictError("Edit request does not belong to this contract")

    def check(c: Contract) -> None:
        _check_open(c, now)
        if request.status != EditRequestStatus.pending:
            raise StateConflictError("Edit request has already been processed")

    check(contract)
    if request.requested_by_role == role:
        raise AuthorizationError("You cannot respond to your own edit request")

    if not _guarded_update(db, contract_id, now, [], {}):
        _lost_race(db, contract_id, check)

    try:
        if decision == EditDecision.approve:
            new_version = edit_negotiator.approve(
                db, contract, booking, request, actor_user_id, response_note, now,
            )
            action = "contract_edit_approved"
            message = f"Edit request approved. Contract updated to version {new_version}."
            context = {"edit_request_id": request_id, "new_version": new_version}
        else:
            edit_negotiator.reject(db, request, actor_user_id, response_note, now)
            action = "contract_edit_rejected"
            message = f"Edit request rejected. Contract remains on version {contract.current_version}."
            context = {"edit_request_id": request_id}
        db.commit()
    except StateConflictError:
        db.rollback()
        raise

    if response_note:
        message += f' Note: "{response_note}"'
    publish(db, TransitionApplied(
        contract_id=contract_id,
        booking_id=booking.booking_id,
        action=action,
        actor_user_id=actor_user_id,
        message=message,
        context=context,
    ))
    return contract, request


def accept_contract(
    db: Session,
    contract_id: str,
    actor_user_id: str,
    now: Optional[datetime] = None,
) -> Contract:
    """Record the actor's acceptance of the current terms (requires a finished review)."""
    now = now or utcnow()
    contract = _get_contract(db, contract_id)
    booking, role = _party(db, contract, actor_user_id)
    accept_col = _column(role, "accept")

    def check(c: Contract) -> None:
        _check_open(c, now)
        if _pending_edit(db, c.contract_id):
            raise StateConflictError("Cannot accept while edit requests are pending")
        if not _stage_value(c, role, "review"):
            raise StateConflictError("You must complete your review before accepting")
        if _stage_value(c, role, "accept"):
            raise StateConflictError("You have already accepted this contract")

    check(contract)
    guards = [
        _column(role, "review").isnot(None),
        accept_col.is_(None),
        ~_pending_edit_exists(db, contract_id),
    ]
    if not _guarded_update(db, contract_id, now, guards, {accept_col: now}):
        _lost_race(db, contract_id, check)
    db.commit()

    publish(db, TransitionApplied(
        contract_id=contract_id,
        booking_id=booking.booking_id,
        action="contract_accepted",
        actor_user_id=actor_user_id,
        message=f"{ROLE_LABELS[role]} has accepted the contract terms. Awaiting signature.",
        context={"role": role.value},
    ))
    return contract


def sign_contract(
    db: Session,
    contract_id: str,
    actor_user_id: str,
    signature_data: Optional[str] = None,
    method: str = "type",
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Contract, bool]:
    """Sign for the actor's side. Returns ``(contract, fully_executed)``.

    The second signature moves the contract to ``admin_review``; the booking
    stays in ``contracting`` until an administrator approves.
    """
    now = now or utcnow()
    contract = _get_contract(db, contract_id)
    booking, role = _party(db, contract, actor_user_id)
    signer = _get_user(db, actor_user_id)
    sign_col = _column(role, "sign")

    def check(c: Contract) -> None:
        _check_open(c, now)
        if _pending_edit(db, c.contract_id):
            raise StateConflictError("Cannot sign while edit requests are pending")
        if not _stage_value(c, role, "accept"):
            raise StateConflictError("You must accept the contract terms before signing")
        if _stage_value(c, role, "sign"):
            raise StateConflictError("You have already signed this contract")

    check(contract)
    signature_ledger.signature_type_for(method)
    guards = [
        _column(role, "accept").isnot(None),
        sign_col.is_(False),
        ~_pending_edit_exists(db, contract_id),
    ]
    values = {sign_col: True, _column(role, "signed_at"): now}
    if not _guarded_update(db, contract_id, now, guards, values):
        _lost_race(db, contract_id, check)

    try:
        signature_ledger.record_signature(
            db, contract, signer, role, signature_data, method, ip_address, user_agent, now,
        )
    except IntegrityError:
        db.rollback()
        raise StateConflictError("You have already signed this contract")

    # Whichever signature lands second flips the contract into arbitration
    executed_now = (
        db.query(Contract)
        .filter(
            Contract.contract_id == contract_id,
            Contract.status == ContractStatus.sent,
            Contract.signed_by_artist.is_(True),
            Contract.signed_by_promoter.is_(True),
        )
        .update(
            {
                Contract.status: ContractStatus.admin_review,
                Contract.signed_at: now,
                Contract.updated_at: now,
            },
            synchronize_session=False,
        )
    ) == 1
    db.commit()

    fully_executed = signature_ledger.is_fully_executed(contract)
    if executed_now:
        message = (
            "Both parties have signed! The contract is now under final review by the "
            "platform admin. You will be notified once approved."
        )
    else:
        message = f"{ROLE_LABELS[role]} has signed the contract. Waiting for the other party."
    publish(db, TransitionApplied(
        contract_id=contract_id,
        booking_id=booking.booking_id,
        action="contract_signed",
        actor_user_id=actor_user_id,
        message=message,
        context={"role": role.value, "signature_method": method, "fully_executed": fully_executed},
    ))
    return contract, fully_executed


# ── Administrator arbitration ──────────────────────────────────────

def list_contracts_for_admin_review(db: Session, admin_user_id: str) -> list[Contract]:
    _require_admin(db, admin_user_id)
    return (
        db.query(Contract)
        .filter(Contract.status == ContractStatus.admin_review)
        .order_by(Contract.signed_at)
        .all()
    )


def admin_review_contract(
    db: Session,
    contract_id: str,
    admin_user_id: str,
    decision: AdminDecision,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Contract:
    """Approve (final, booking confirmed) or reject (void, booking cancelled) a fully signed contract.

    Rejection keeps both signature rows and flags; the contract is voided
    rather than sent back, so status never moves backwards.
    """
    now = now or utcnow()
    _require_admin(db, admin_user_id)
    contract = _get_contract(db, contract_id)
    if contract.status != ContractStatus.admin_review:
        raise StateConflictError(
            f"Contract is not awaiting administrator review (status: {contract.status.value})"
        )

    values = {
        Contract.admin_reviewed_by: admin_user_id,
        Contract.admin_reviewed_at: now,
        Contract.admin_note: note,
        Contract.updated_at: now,
    }
    if decision == AdminDecision.approved:
        values.update({Contract.status: ContractStatus.signed, Contract.finalized_at: now})
    else:
        values.update({
            Contract.status: ContractStatus.voided,
            Contract.voided_at: now,
            Contract.void_reason: ADMIN_REJECTED_REASON,
        })

    updated = (
        db.query(Contract)
        .filter(Contract.contract_id == contract_id, Contract.status == ContractStatus.admin_review)
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise StateConflictError("Contract is not awaiting administrator review")

    if decision == AdminDecision.approved:
        (
            db.query(Booking)
            .filter(Booking.booking_id == contract.booking_id)
            .update({Booking.status: BookingStatus.confirmed, Booking.updated_at: now}, synchronize_session=False)
        )
        action = "admin_contract_approved"
        message = "The platform admin approved the contract. The booking is confirmed."
    else:
        cancel_booking(db, contract.booking_id, BOOKING_ADMIN_REJECTED_REASON, now)
        action = "admin_contract_rejected"
        message = "The platform admin rejected the contract. The booking has been cancelled."
    if note:
        message += f' Note: "{note}"'
    db.commit()

    publish(db, TransitionApplied(
        contract_id=contract_id,
        booking_id=contract.booking_id,
        action=action,
        actor_user_id=admin_user_id,
        message=message,
        context={"decision": decision.value, "note": note},
    ))
    return contract


# ── Download ───────────────────────────────────────────────────────

def render_download(db: Session, contract_id: str, viewer_user_id: str) -> tuple[str, str]:
    """Return ``(filename, text)`` for an executed, administrator-approved contract."""
    contract = _get_contract(db, contract_id)
    booking = _get_booking(db, contract.booking_id)
    viewer = _get_user(db, viewer_user_id)
    if viewer.role != UserRole.admin:
        resolve_party_role(booking, viewer_user_id)
    if contract.status != ContractStatus.signed:
        raise StateConflictError("Contract must be fully signed before downloading")

    text = f"{contract.contract_text}\n\n{signature_ledger.render_signature_block(contract.signatures)}"
    logger.info("Contract %s downloaded by %s", contract_id, viewer_user_id)
    return f"contract-BK-{contract.booking_id}.txt", text
