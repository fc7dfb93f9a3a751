"""User ORM model — minimal identity record for contract parties and admins."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Enum as SAEnum
from sqlalchemy.sql import func
from booking_contracts.database import Base


class UserRole(str, enum.Enum):
    artist = "artist"
    promoter = "promoter"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    display_name = Column(String(100), nullable=False)
    role = Column(SAEnum(UserRole), nullable=False, default=UserRole.artist)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
