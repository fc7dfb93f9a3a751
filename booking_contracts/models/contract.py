"""Contract ORM model — one per booking, mutated only through guarded transitions."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, DateTime, Integer, Boolean, JSON, ForeignKey, Index, Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from booking_contracts.database import Base


class ContractStatus(str, enum.Enum):
    sent = "sent"
    admin_review = "admin_review"
    signed = "signed"
    voided = "voided"


class PartyRole(str, enum.Enum):
    artist = "artist"
    promoter = "promoter"


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        Index("ix_contracts_status_deadline", "status", "deadline_at"),
    )

    contract_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.booking_id"), nullable=False, unique=True)
    status = Column(SAEnum(ContractStatus), nullable=False, default=ContractStatus.sent)
    current_version = Column(Integer, nullable=False, default=1)
    contract_text = Column(Text, nullable=False)
    terms = Column(JSON, nullable=False)
    signer_sequence = Column(JSON, nullable=True)

    initiated_at = Column(DateTime(timezone=True), nullable=False)
    deadline_at = Column(DateTime(timezone=True), nullable=False)

    # Per-party progress: review -> accept -> sign
    artist_review_done_at = Column(DateTime(timezone=True), nullable=True)
    promoter_review_done_at = Column(DateTime(timezone=True), nullable=True)
    artist_accepted_at = Column(DateTime(timezone=True), nullable=True)
    promoter_accepted_at = Column(DateTime(timezone=True), nullable=True)
    artist_edit_used = Column(Boolean, nullable=False, default=False)
    promoter_edit_used = Column(Boolean, nullable=False, default=False)
    signed_by_artist = Column(Boolean, nullable=False, default=False)
    signed_by_promoter = Column(Boolean, nullable=False, default=False)
    artist_signed_at = Column(DateTime(timezone=True), nullable=True)
    promoter_signed_at = Column(DateTime(timezone=True), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)

    # Administrator arbitration
    admin_reviewed_by = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    admin_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    admin_note = Column(Text, nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    versions = relationship(
        "ContractVersion", back_populates="contract", order_by="ContractVersion.version",
    )
    edit_requests = relationship(
        "ContractEditRequest", back_populates="contract", order_by="ContractEditRequest.created_at",
    )
    signatures = relationship(
        "ContractSignature", back_populates="contract", order_by="ContractSignature.signed_at",
    )

    @property
    def fully_executed(self) -> bool:
        return bool(self.signed_by_artist and self.signed_by_promoter)

    @property
    def pending_edit_request(self):
        for request in self.edit_requests:
            if request.status.value == "pending":
                return request
        return None
