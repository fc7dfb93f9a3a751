"""Contract API routes — initiate, review, edit round-trip, accept, sign, download.

The acting user is passed as the ``actor_user_id`` query parameter; every
rule about who may do what is enforced in ``contract_lifecycle``.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from booking_contracts.database import get_db
from booking_contracts.schemas.contract import (
    AcceptRequest,
    ContractActionOut,
    ContractDetailsOut,
    ContractOut,
    ContractVersionOut,
    DeadlineSweepOut,
    EditRequestOut,
    RespondRequest,
    ReviewRequest,
    SignatureOut,
    SignOut,
    SignRequest,
)
from booking_contracts.services import contract_lifecycle, deadline_monitor
from booking_contracts.services.contract_lifecycle import ContractView, EditDecision, ReviewAction

logger = logging.getLogger(__name__)
router = APIRouter()


def _details_out(view: ContractView) -> ContractDetailsOut:
    contract = view.contract
    pending = contract.pending_edit_request
    return ContractDetailsOut(
        **ContractOut.model_validate(contract).model_dump(),
        versions=[ContractVersionOut.model_validate(v) for v in contract.versions],
        edit_requests=[EditRequestOut.model_validate(r) for r in contract.edit_requests],
        signatures=[SignatureOut.model_validate(s) for s in contract.signatures],
        pending_edit_request_id=pending.request_id if pending else None,
        user_role=view.user_role,
        user_can_edit=view.user_can_edit,
        user_has_reviewed=view.user_has_reviewed,
        user_has_accepted=view.user_has_accepted,
        user_has_signed=view.user_has_signed,
        time_remaining=view.time_remaining,
    )


@router.post("/bookings/{booking_id}/contract/initiate", response_model=ContractOut,
             status_code=status.HTTP_201_CREATED)
def initiate_contract(
    booking_id: str,
    response: Response,
    actor_user_id: Optional[str] = Query(None, description="User triggering initiation"),
    db: Session = Depends(get_db),
):
    """Create the contract for a negotiated booking; returns the existing one if already initiated."""
    contract, created = contract_lifecycle.initiate_contract(db, booking_id, actor_user_id=actor_user_id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return contract


@router.get("/bookings/{booking_id}/contract", response_model=ContractDetailsOut)
def get_contract(
    booking_id: str,
    actor_user_id: Optional[str] = Query(None, description="Viewer, for the user_* fields"),
    db: Session = Depends(get_db),
):
    """Fetch the booking's contract with versions, edit requests, signatures and viewer-derived fields."""
    view = contract_lifecycle.get_contract_details(db, booking_id, viewer_user_id=actor_user_id)
    return _details_out(view)


@router.post("/contracts/check-deadlines", response_model=DeadlineSweepOut)
def check_deadlines(db: Session = Depends(get_db)):
    """Void every ``sent`` contract past its deadline (scheduled-job trigger)."""
    return DeadlineSweepOut(voided=deadline_monitor.sweep_expired_contracts(db))


@router.post("/contracts/{contract_id}/review", response_model=ContractActionOut)
def review_contract(
    contract_id: str,
    payload: ReviewRequest,
    actor_user_id: str = Query(..., description="ID of the reviewing party"),
    db: Session = Depends(get_db),
):
    contract, edit_request = contract_lifecycle.review_contract(
        db,
        contract_id,
        actor_user_id,
        payload.action,
        changes=payload.changes,
        note=payload.note,
    )
    if payload.action == ReviewAction.accept_as_is:
        message = "Contract reviewed and accepted as-is"
    else:
        message = "Edit request submitted. Waiting for the other party to respond."
    return ContractActionOut(
        message=message,
        contract=ContractOut.model_validate(contract),
        edit_request=EditRequestOut.model_validate(edit_request) if edit_request else None,
    )


@router.post("/contracts/{contract_id}/edit-requests/{request_id}/respond", response_model=ContractActionOut)
def respond_to_edit_request(
    contract_id: str,
    request_id: str,
    payload: RespondRequest,
    actor_user_id: str = Query(..., description="ID of the responding party"),
    db: Session = Depends(get_db),
):
    contract, edit_request = contract_lifecycle.respond_to_edit_request(
        db,
        contract_id,
        request_id,
        actor_user_id,
        payload.decision,
        response_note=payload.response_note,
    )
    if payload.decision == EditDecision.approve:
        message = f"Edit approved. Contract updated to version {contract.current_version}."
    else:
        message = "Edit request rejected"
    return ContractActionOut(
        message=message,
        contract=ContractOut.model_validate(contract),
        edit_request=EditRequestOut.model_validate(edit_request),
    )


@router.post("/contracts/{contract_id}/accept", response_model=ContractActionOut)
def accept_contract(
    contract_id: str,
    payload: AcceptRequest,
    actor_user_id: str = Query(..., description="ID of the accepting party"),
    db: Session = Depends(get_db),
):
    contract = contract_lifecycle.accept_contract(db, contract_id, actor_user_id)
    return ContractActionOut(
        message="Contract terms accepted. You can now sign.",
        contract=ContractOut.model_validate(contract),
    )


@router.post("/contracts/{contract_id}/sign", response_model=SignOut)
def sign_contract(
    contract_id: str,
    payload: SignRequest,
    request: Request,
    actor_user_id: str = Query(..., description="ID of the signing party"),
    db: Session = Depends(get_db),
):
    contract, fully_executed = contract_lifecycle.sign_contract(
        db,
        contract_id,
        actor_user_id,
        signature_data=payload.signature_data,
        method=payload.signature_method,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    if fully_executed:
        message = "Contract fully signed. Awaiting administrator review."
    else:
        message = "Signature recorded. Waiting for the other party to sign."
    return SignOut(
        message=message,
        contract=ContractOut.model_validate(contract),
        fully_executed=fully_executed,
    )


@router.get("/contracts/{contract_id}/pdf", response_class=PlainTextResponse)
def download_contract(
    contract_id: str,
    actor_user_id: str = Query(..., description="ID of the downloading user"),
    db: Session = Depends(get_db),
):
    """Download the executed contract text with its signature block."""
    filename, text = contract_lifecycle.render_download(db, contract_id, actor_user_id)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
