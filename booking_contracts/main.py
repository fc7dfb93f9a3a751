"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from booking_contracts.config import settings
from booking_contracts.database import Base, engine

# Import routers
from booking_contracts.routers import admin, bookings, contracts, users

# Import all models so Base.metadata knows about them
from booking_contracts.models.user import User                                  # noqa: F401
from booking_contracts.models.booking import Booking                            # noqa: F401
from booking_contracts.models.contract import Contract                          # noqa: F401
from booking_contracts.models.contract_version import ContractVersion          # noqa: F401
from booking_contracts.models.contract_edit_request import ContractEditRequest  # noqa: F401
from booking_contracts.models.contract_signature import ContractSignature      # noqa: F401
from booking_contracts.models.audit_log import AuditLog                         # noqa: F401
from booking_contracts.models.conversation import Conversation, ConversationMessage  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Booking Contracts",
    description="Contract workflow for artist/promoter bookings: review, one-time edits, acceptance, signatures and admin arbitration",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["Bookings"])
app.include_router(contracts.router, prefix="/api", tags=["Contracts"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
