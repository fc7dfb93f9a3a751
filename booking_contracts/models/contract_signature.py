"""ContractSignature ORM model — append-only signature ledger, one row per party."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from booking_contracts.database import Base
from booking_contracts.models.contract import PartyRole


class SignatureType(str, enum.Enum):
    typed = "typed"
    drawn = "drawn"
    uploaded = "uploaded"


class ContractSignature(Base):
    __tablename__ = "contract_signatures"
    __table_args__ = (
        UniqueConstraint("contract_id", "role", name="uq_contract_signatures_contract_role"),
    )

    signature_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id = Column(String(36), ForeignKey("contracts.contract_id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    role = Column(SAEnum(PartyRole), nullable=False)
    signature_data = Column(Text, nullable=False)
    signature_type = Column(SAEnum(SignatureType), nullable=False, default=SignatureType.typed)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=False)

    contract = relationship("Contract", back_populates="signatures")
