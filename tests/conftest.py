"""Pytest fixtures — file-backed SQLite database, recreated for every test."""
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from booking_contracts.database import Base, get_db
from booking_contracts.main import app
from booking_contracts.services import contract_lifecycle

# Import all models so they register with Base.metadata
from booking_contracts.models.user import User                                  # noqa: F401
from booking_contracts.models.booking import Booking                            # noqa: F401
from booking_contracts.models.contract import Contract                          # noqa: F401
from booking_contracts.models.contract_version import ContractVersion          # noqa: F401
from booking_contracts.models.contract_edit_request import ContractEditRequest  # noqa: F401
from booking_contracts.models.contract_signature import ContractSignature      # noqa: F401
from booking_contracts.models.audit_log import AuditLog                         # noqa: F401
from booking_contracts.models.conversation import Conversation, ConversationMessage  # noqa: F401

SQLITE_URL = "sqlite:///./test.db"

BOOKING_FEE = 50000
EVENT_DATE = "2026-12-20T14:30:00+00:00"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def parties(client):
    """An artist, a promoter, an admin and a negotiated booking between the first two."""
    artist = create_test_user(client, name="DJ Nova", role="artist")
    promoter = create_test_user(client, name="Skyline Events", role="promoter")
    admin = create_test_user(client, name="Platform Admin", role="admin")
    booking = create_test_booking(client, artist["user_id"], promoter["user_id"])
    return {"artist": artist, "promoter": promoter, "admin": admin, "booking": booking}


@pytest.fixture
def contract(client, parties):
    """A freshly initiated contract for the ``parties`` booking."""
    return initiate_contract(client, parties["booking"]["booking_id"])


@pytest.fixture
def interleave(monkeypatch, db_engine):
    """Run a competing operation in its own session just before the next guarded UPDATE.

    ``interleave(fn)`` arms the hook; ``fn(session)`` runs and commits between the
    caller's precondition check and its check-and-set write.
    """
    OtherSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    guarded_update = contract_lifecycle._guarded_update
    armed = []

    def _racing_update(db, *args, **kwargs):
        if armed:
            competitor = armed.pop()
            other = OtherSession()
            try:
                competitor(other)
            finally:
                other.close()
        return guarded_update(db, *args, **kwargs)

    monkeypatch.setattr(contract_lifecycle, "_guarded_update", _racing_update)
    return armed.append


# ---------------------------------------------------------------------------
# Helpers: drive the API, return the response JSON
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, name: str = "Test User", role: str = "artist") -> dict:
    """Helper — POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={"display_name": name, "role": role})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_booking(client: TestClient, artist_id: str, organizer_id: str, **overrides) -> dict:
    """Helper — POST /api/bookings with a 50,000 INR negotiated offer."""
    payload = {
        "artist_user_id": artist_id,
        "organizer_user_id": organizer_id,
        "offer_amount": BOOKING_FEE,
        "final_amount": BOOKING_FEE,
        "offer_currency": "INR",
        "deposit_percent": 30,
        "event_title": "New Year Warm-up",
        "event_date": EVENT_DATE,
        "slot_time": "8:00 PM - 10:00 PM",
        "venue_name": "NSCI Dome",
        "venue_address": "Worli, Mumbai",
        "artist_name": "DJ Nova",
        "organizer_name": "Skyline Events",
        "meta": {"flight_class": "economy"},
    }
    payload.update(overrides)
    resp = client.post("/api/bookings/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def initiate_contract(client: TestClient, booking_id: str) -> dict:
    resp = client.post(f"/api/bookings/{booking_id}/contract/initiate")
    assert resp.status_code in (200, 201), resp.text
    return resp.json()


def get_contract(client: TestClient, booking_id: str, viewer_id: str | None = None) -> dict:
    params = {"actor_user_id": viewer_id} if viewer_id else {}
    resp = client.get(f"/api/bookings/{booking_id}/contract", params=params)
    assert resp.status_code == 200, resp.text
    return resp.json()


def review(client: TestClient, contract_id: str, user_id: str, action: str = "ACCEPT_AS_IS", **body):
    return client.post(
        f"/api/contracts/{contract_id}/review",
        params={"actor_user_id": user_id},
        json={"action": action, **body},
    )


def propose_edits(client: TestClient, contract_id: str, user_id: str, changes: dict, note: str | None = None):
    return review(client, contract_id, user_id, "PROPOSE_EDITS", changes=changes, note=note)


def respond(client: TestClient, contract_id: str, request_id: str, user_id: str, decision: str, note=None):
    return client.post(
        f"/api/contracts/{contract_id}/edit-requests/{request_id}/respond",
        params={"actor_user_id": user_id},
        json={"decision": decision, "response_note": note},
    )


def accept(client: TestClient, contract_id: str, user_id: str):
    return client.post(
        f"/api/contracts/{contract_id}/accept",
        params={"actor_user_id": user_id},
        json={"agreed": True},
    )


def sign(client: TestClient, contract_id: str, user_id: str, signature_data: str | None = None):
    body = {"signature_method": "type"}
    if signature_data:
        body["signature_data"] = signature_data
    return client.post(f"/api/contracts/{contract_id}/sign", params={"actor_user_id": user_id}, json=body)


def admin_review(client: TestClient, contract_id: str, admin_id: str, decision: str, note: str | None = None):
    return client.post(
        f"/api/admin/contracts/{contract_id}/review",
        params={"actor_user_id": admin_id},
        json={"decision": decision, "note": note},
    )


def complete_party_flow(client: TestClient, contract_id: str, parties: dict) -> dict:
    """Both parties review as-is, accept and sign. Returns the last sign response JSON."""
    artist_id = parties["artist"]["user_id"]
    promoter_id = parties["promoter"]["user_id"]
    for user_id in (artist_id, promoter_id):
        assert review(client, contract_id, user_id).status_code == 200
        assert accept(client, contract_id, user_id).status_code == 200
    assert sign(client, contract_id, promoter_id).status_code == 200
    resp = sign(client, contract_id, artist_id)
    assert resp.status_code == 200, resp.text
    return resp.json()
