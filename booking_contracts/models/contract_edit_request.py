"""ContractEditRequest ORM model — one-time edit proposals awaiting the other party."""
import uuid
from datetime import datetime, timezone
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, JSON, ForeignKey, Index, Enum as SAEnum, text
from sqlalchemy.orm import relationship
from booking_contracts.database import Base
from booking_contracts.models.contract import PartyRole


class EditRequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ContractEditRequest(Base):
    __tablename__ = "contract_edit_requests"
    __table_args__ = (
        # At most one pending request per contract
        Index(
            "uq_contract_edit_requests_one_pending",
            "contract_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    request_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id = Column(String(36), ForeignKey("contracts.contract_id"), nullable=False)
    requested_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    requested_by_role = Column(SAEnum(PartyRole), nullable=False)
    changes = Column(JSON, nullable=False)
    note = Column(Text, nullable=True)
    status = Column(SAEnum(EditRequestStatus), nullable=False, default=EditRequestStatus.pending)
    responded_by = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    response_note = Column(Text, nullable=True)
    resulting_version = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    contract = relationship("Contract", back_populates="edit_requests")
