"""Pydantic schemas for Contracts and their versions, edit requests and signatures."""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from booking_contracts.services.contract_lifecycle import AdminDecision, EditDecision, ReviewAction


# ── Requests ──

class ReviewRequest(BaseModel):
    action: ReviewAction
    changes: Optional[dict[str, Any]] = None
    note: Optional[str] = Field(default=None, max_length=2000)


class RespondRequest(BaseModel):
    decision: EditDecision
    response_note: Optional[str] = Field(default=None, max_length=2000)


class AcceptRequest(BaseModel):
    agreed: Literal[True]


class SignRequest(BaseModel):
    signature_data: Optional[str] = None
    signature_method: Literal["type", "typed", "draw", "drawn", "upload", "uploaded"] = "type"


class AdminReviewRequest(BaseModel):
    decision: AdminDecision
    note: Optional[str] = Field(default=None, max_length=2000)


# ── Responses ──

class ContractVersionOut(BaseModel):
    version_id: str
    contract_id: str
    version: int
    contract_text: str
    terms: dict[str, Any]
    created_by: Optional[str] = None
    change_summary: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EditRequestOut(BaseModel):
    request_id: str
    contract_id: str
    requested_by: str
    requested_by_role: str
    changes: dict[str, Any]
    note: Optional[str] = None
    status: str
    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None
    response_note: Optional[str] = None
    resulting_version: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SignatureOut(BaseModel):
    signature_id: str
    contract_id: str
    user_id: str
    role: str
    signature_data: str
    signature_type: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    signed_at: datetime

    model_config = {"from_attributes": True}


class ContractOut(BaseModel):
    contract_id: str
    booking_id: str
    status: str
    current_version: int
    contract_text: str
    terms: dict[str, Any]
    signer_sequence: Optional[dict[str, Any]] = None
    initiated_at: datetime
    deadline_at: datetime
    artist_review_done_at: Optional[datetime] = None
    promoter_review_done_at: Optional[datetime] = None
    artist_accepted_at: Optional[datetime] = None
    promoter_accepted_at: Optional[datetime] = None
    artist_edit_used: bool
    promoter_edit_used: bool
    signed_by_artist: bool
    signed_by_promoter: bool
    artist_signed_at: Optional[datetime] = None
    promoter_signed_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    admin_reviewed_by: Optional[str] = None
    admin_reviewed_at: Optional[datetime] = None
    admin_note: Optional[str] = None
    finalized_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    fully_executed: bool

    model_config = {"from_attributes": True}


class ContractDetailsOut(ContractOut):
    versions: list[ContractVersionOut] = []
    edit_requests: list[EditRequestOut] = []
    signatures: list[SignatureOut] = []
    pending_edit_request_id: Optional[str] = None
    user_role: Optional[str] = None
    user_can_edit: bool = False
    user_has_reviewed: bool = False
    user_has_accepted: bool = False
    user_has_signed: bool = False
    time_remaining: int


class ContractActionOut(BaseModel):
    message: str
    contract: ContractOut
    edit_request: Optional[EditRequestOut] = None


class SignOut(BaseModel):
    message: str
    contract: ContractOut
    fully_executed: bool


class DeadlineSweepOut(BaseModel):
    voided: int
