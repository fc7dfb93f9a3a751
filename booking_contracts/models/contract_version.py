"""ContractVersion ORM model — append-only history of term snapshots."""
import uuid
from sqlalchemy import Column, String, Text, DateTime, Integer, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from booking_contracts.database import Base


class ContractVersion(Base):
    __tablename__ = "contract_versions"
    __table_args__ = (
        UniqueConstraint("contract_id", "version", name="uq_contract_versions_contract_version"),
    )

    version_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id = Column(String(36), ForeignKey("contracts.contract_id"), nullable=False)
    version = Column(Integer, nullable=False)
    contract_text = Column(Text, nullable=False)
    terms = Column(JSON, nullable=False)
    created_by = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    change_summary = Column(String(500), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    contract = relationship("Contract", back_populates="versions")
