"""AuditLog ORM model — one row per committed contract transition."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Index
from booking_contracts.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    audit_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    who = Column(String(36), ForeignKey("users.user_id"), nullable=True)  # NULL = system
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=False, default="contract")
    entity_id = Column(String(36), nullable=False)
    context = Column(JSON, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
