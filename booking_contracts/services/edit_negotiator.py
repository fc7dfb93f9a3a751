"""Edit Request Negotiator.

Owns the one-edit-per-party rule, validation of proposed term changes, and
the per-category shallow merge applied when the other party approves.

Validation is aggregate: every rule runs and every violation is returned,
so the caller can show the full list at once.
"""
import copy
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from booking_contracts.errors import StateConflictError
from booking_contracts.models.booking import Booking
from booking_contracts.models.contract import Contract, PartyRole
from booking_contracts.models.contract_edit_request import ContractEditRequest, EditRequestStatus
from booking_contracts.schemas.terms import EDITABLE_CATEGORIES, LOCKED_FIELDS
from booking_contracts.services import contract_versions

logger = logging.getLogger(__name__)

SOUND_CHECK_RANGE = (15, 180)
GUEST_LIST_RANGE = (0, 20)
PENALTY_RANGE = (0, 100)
MILESTONE_TOTAL = Decimal("100")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validated_section(category: str, section: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Coerce ``section`` through its schema; the rule checks run on the coerced values.

    On a schema failure the raw section comes back alongside the errors.
    """
    try:
        model = EDITABLE_CATEGORIES[category].model_validate(section)
    except ValidationError as exc:
        return section, [
            f"{'.'.join([category, *(str(p) for p in err['loc'])])}: {err['msg']}"
            for err in exc.errors()
        ]
    return model.model_dump(exclude_unset=True), []


def _locked_field_errors(changes: dict[str, Any]) -> list[str]:
    errors = [
        f'Field "{name}" is a core negotiated term and cannot be modified'
        for name in LOCKED_FIELDS
        if name in changes
    ]
    financial = changes.get("financial")
    if isinstance(financial, dict) and ("total_fee" in financial or "currency" in financial):
        errors.append("Total fee and currency cannot be modified")
    return errors


def _milestone_errors(financial: dict[str, Any]) -> list[str]:
    milestones = financial.get("payment_milestones")
    if not isinstance(milestones, list):
        return []
    total = Decimal("0")
    for milestone in milestones:
        percentage = milestone.get("percentage", 0) if isinstance(milestone, dict) else 0
        try:
            total += Decimal(str(percentage or 0))
        except InvalidOperation:
            continue
    if total != MILESTONE_TOTAL:
        return [f"Payment milestones must sum to 100% (currently {total.normalize():f}%)"]
    return []


def _accommodation_errors(accommodation: dict[str, Any]) -> list[str]:
    check_in = accommodation.get("check_in_time")
    check_out = accommodation.get("check_out_time")
    # Same-day "HH:MM" strings compare correctly as text
    if isinstance(check_in, str) and isinstance(check_out, str) and check_in >= check_out:
        return ["Check-in time must be before check-out time"]
    return []


def _range_error(value: Any, bounds: tuple[int, int], message: str) -> list[str]:
    low, high = bounds
    if _is_number(value) and not (low <= value <= high):
        return [message]
    return []


def _penalty_errors(cancellation: dict[str, Any]) -> list[str]:
    penalties: list[Any] = []
    for schedule in ("artist_cancellation_penalties", "organizer_cancellation_penalties"):
        values = cancellation.get(schedule)
        if isinstance(values, dict):
            penalties.extend(values.values())
    low, high = PENALTY_RANGE
    if any(_is_number(p) and not (low <= p <= high) for p in penalties):
        return ["Cancellation penalties must be between 0 and 100%"]
    return []


def validate_changes(changes: Any) -> list[str]:
    """Return every rule violation in a proposed change set (empty list = valid)."""
    if not isinstance(changes, dict) or not changes:
        return ["Changes are required for edit proposals"]

    errors = _locked_field_errors(changes)
    for key in changes:
        if key not in LOCKED_FIELDS and key not in EDITABLE_CATEGORIES:
            errors.append(f'Unknown contract section "{key}"')

    for category in EDITABLE_CATEGORIES:
        if category not in changes:
            continue
        section = changes[category]
        if not isinstance(section, dict):
            errors.append(f"{category}: must be an object")
            continue
        if category == "financial":
            section = {k: v for k, v in section.items() if k not in ("total_fee", "currency")}
        section, schema_errors = _validated_section(category, section)
        errors.extend(schema_errors)

        if category == "financial":
            errors.extend(_milestone_errors(section))
        elif category == "accommodation":
            errors.extend(_accommodation_errors(section))
        elif category == "technical":
            errors.extend(_range_error(
                section.get("sound_check_duration"), SOUND_CHECK_RANGE,
                "Sound check duration must be between 15 and 180 minutes",
            ))
        elif category == "hospitality":
            errors.extend(_range_error(
                section.get("guest_list_count"), GUEST_LIST_RANGE,
                "Guest list count must be between 0 and 20",
            ))
        elif category == "cancellation":
            errors.extend(_penalty_errors(section))
    return errors


def normalize_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Canonical JSON form of a validated change set (only the keys the party sent)."""
    return {
        category: EDITABLE_CATEGORIES[category].model_validate(section).model_dump(exclude_unset=True)
        for category, section in changes.items()
    }


def merge_terms(current: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Shallow-merge each changed category over the current snapshot.

    Keys inside a category are overwritten one by one; nested records such as
    ``bank_details`` are replaced wholesale, never merged recursively.
    """
    merged = copy.deepcopy(current)
    for category in EDITABLE_CATEGORIES:
        if changes.get(category):
            merged[category] = {**(merged.get(category) or {}), **copy.deepcopy(changes[category])}
    return merged


def open_edit_request(
    db: Session,
    contract: Contract,
    role: PartyRole,
    actor_user_id: str,
    changes: dict[str, Any],
    note: Optional[str],
) -> ContractEditRequest:
    """Add the pending request for already-validated ``changes`` and flush it.

    The partial unique index on pending requests turns a lost race into an
    ``IntegrityError``, reported as the usual "already pending" rejection.
    """
    request = ContractEditRequest(
        contract_id=contract.contract_id,
        requested_by=actor_user_id,
        requested_by_role=role,
        changes=normalize_changes(changes),
        note=note,
        status=EditRequestStatus.pending,
    )
    db.add(request)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise StateConflictError("There is already a pending edit request. Wait for it to be resolved.")
    return request


def _close_request(
    db: Session,
    request: ContractEditRequest,
    status: EditRequestStatus,
    responder_id: str,
    response_note: Optional[str],
    now: datetime,
    resulting_version: Optional[int] = None,
) -> None:
    updated = (
        db.query(ContractEditRequest)
        .filter(
            ContractEditRequest.request_id == request.request_id,
            ContractEditRequest.status == EditRequestStatus.pending,
        )
        .update(
            {
                ContractEditRequest.status: status,
                ContractEditRequest.responded_by: responder_id,
                ContractEditRequest.responded_at: now,
                ContractEditRequest.response_note: response_note,
                ContractEditRequest.resulting_version: resulting_version,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise StateConflictError("Edit request has already been processed")


def approve(
    db: Session,
    contract: Contract,
    booking: Booking,
    request: ContractEditRequest,
    responder_id: str,
    response_note: Optional[str],
    now: datetime,
) -> int:
    """Merge the request into a new version. Returns the new version number."""
    merged = merge_terms(contract.terms or {}, request.changes or {})
    summary = f"{request.requested_by_role.value} edit approved: {request.note or 'Changes applied'}"
    version = contract_versions.create_version(
        db, contract, booking, merged, responder_id, summary[:500], now,
    )
    _close_request(
        db, request, EditRequestStatus.approved, responder_id, response_note, now,
        resulting_version=version.version,
    )
    logger.info("Edit request %s approved -> contract %s v%d", request.request_id, contract.contract_id, version.version)
    return version.version


def reject(
    db: Session,
    request: ContractEditRequest,
    responder_id: str,
    response_note: Optional[str],
    now: datetime,
) -> None:
    """Close the request without a new version; the requester's edit stays consumed."""
    _close_request(db, request, EditRequestStatus.rejected, responder_id, response_note, now)
    logger.info("Edit request %s rejected", request.request_id)
