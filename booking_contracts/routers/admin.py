"""Administrator routes — arbitration of fully signed contracts."""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from booking_contracts.database import get_db
from booking_contracts.schemas.contract import AdminReviewRequest, ContractActionOut, ContractOut
from booking_contracts.services import contract_lifecycle
from booking_contracts.services.contract_lifecycle import AdminDecision

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/contracts/pending", response_model=list[ContractOut])
def list_pending_contracts(
    actor_user_id: str = Query(..., description="ID of the administrator"),
    db: Session = Depends(get_db),
):
    """List contracts signed by both parties and awaiting a decision."""
    return contract_lifecycle.list_contracts_for_admin_review(db, actor_user_id)


@router.post("/contracts/{contract_id}/review", response_model=ContractActionOut)
def review_contract(
    contract_id: str,
    payload: AdminReviewRequest,
    actor_user_id: str = Query(..., description="ID of the administrator"),
    db: Session = Depends(get_db),
):
    """Approve (booking confirmed) or reject (contract voided, booking cancelled)."""
    contract = contract_lifecycle.admin_review_contract(
        db, contract_id, actor_user_id, payload.decision, note=payload.note,
    )
    if payload.decision == AdminDecision.approved:
        message = "Contract approved. Booking confirmed."
    else:
        message = "Contract rejected. Booking cancelled."
    return ContractActionOut(message=message, contract=ContractOut.model_validate(contract))
