"""Tests for the contract workflow — initiate, review, edit round-trip, accept, sign."""
from datetime import datetime, timedelta

import pytest

from booking_contracts.errors import ValidationFailedError
from booking_contracts.models.booking import Booking, BookingStatus
from booking_contracts.models.contract import Contract, ContractStatus
from booking_contracts.services import contract_lifecycle
from booking_contracts.services.clock import utcnow
from tests.conftest import (
    accept,
    admin_review,
    complete_party_flow,
    create_test_booking,
    create_test_user,
    get_contract,
    initiate_contract,
    propose_edits,
    respond,
    review,
    sign,
)

BUSINESS_CLASS = {"travel": {"flight_class": "business"}}


class TestInitiate:
    """Contract creation from a negotiated booking."""

    def test_initiate_creates_version_one(self, client, parties):
        booking_id = parties["booking"]["booking_id"]
        resp = client.post(f"/api/bookings/{booking_id}/contract/initiate")
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "sent"
        assert data["current_version"] == 1
        assert data["terms"]["fee"] == 50000
        assert "PERFORMANCE CONTRACT" in data["contract_text"]
        assert data["fully_executed"] is False

        initiated = datetime.fromisoformat(data["initiated_at"])
        deadline = datetime.fromisoformat(data["deadline_at"])
        assert deadline - initiated == timedelta(hours=48)

        booking = client.get(f"/api/bookings/{booking_id}").json()
        assert booking["status"] == "contracting"

    def test_initiate_is_idempotent(self, client, parties, contract):
        booking_id = parties["booking"]["booking_id"]
        resp = client.post(f"/api/bookings/{booking_id}/contract/initiate")
        assert resp.status_code == 200
        assert resp.json()["contract_id"] == contract["contract_id"]

        details = get_contract(client, booking_id)
        assert len(details["versions"]) == 1

    def test_initiate_unknown_booking(self, client):
        resp = client.post("/api/bookings/00000000-0000-0000-0000-000000000000/contract/initiate")
        assert resp.status_code == 404

    def test_initiate_cancelled_booking_rejected(self, client, db, parties):
        booking_id = parties["booking"]["booking_id"]
        db.query(Booking).filter(Booking.booking_id == booking_id).update({Booking.status: BookingStatus.cancelled})
        db.commit()
        resp = client.post(f"/api/bookings/{booking_id}/contract/initiate")
        assert resp.status_code == 400

    def test_reinitiate_voided_contract_rejected(self, client, db, parties, contract):
        db.query(Contract).filter(Contract.contract_id == contract["contract_id"]).update(
            {Contract.status: ContractStatus.voided}
        )
        db.commit()
        resp = client.post(f"/api/bookings/{parties['booking']['booking_id']}/contract/initiate")
        assert resp.status_code == 400
        assert "voided" in resp.json()["detail"]


class TestGetContract:
    """Contract details with per-viewer derived fields."""

    def test_details_for_party(self, client, parties, contract):
        data = get_contract(client, parties["booking"]["booking_id"], parties["artist"]["user_id"])
        assert data["contract_id"] == contract["contract_id"]
        assert data["user_role"] == "artist"
        assert data["user_can_edit"] is True
        assert data["user_has_accepted"] is False
        assert 0 < data["time_remaining"] <= 48 * 3600
        assert [v["version"] for v in data["versions"]] == [1]
        assert data["pending_edit_request_id"] is None

    def test_promoter_role(self, client, parties, contract):
        data = get_contract(client, parties["booking"]["booking_id"], parties["promoter"]["user_id"])
        assert data["user_role"] == "promoter"

    def test_admin_can_view(self, client, parties, contract):
        data = get_contract(client, parties["booking"]["booking_id"], parties["admin"]["user_id"])
        assert data["user_role"] is None

    def test_non_party_forbidden(self, client, parties, contract):
        outsider = create_test_user(client, name="Outsider", role="promoter")
        resp = client.get(
            f"/api/bookings/{parties['booking']['booking_id']}/contract",
            params={"actor_user_id": outsider["user_id"]},
        )
        assert resp.status_code == 403

    def test_no_contract_yet(self, client, parties):
        resp = client.get(f"/api/bookings/{parties['booking']['booking_id']}/contract")
        assert resp.status_code == 404


class TestReview:
    """Accept as-is, or spend the one-time edit."""

    def test_accept_as_is(self, client, parties, contract):
        resp = review(client, contract["contract_id"], parties["artist"]["user_id"])
        assert resp.status_code == 200
        assert resp.json()["contract"]["artist_review_done_at"] is not None
        assert resp.json()["contract"]["promoter_review_done_at"] is None

    def test_review_twice_rejected(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        assert review(client, contract["contract_id"], artist_id).status_code == 200
        resp = review(client, contract["contract_id"], artist_id)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "You have already completed your review"

    def test_non_party_forbidden(self, client, parties, contract):
        outsider = create_test_user(client, name="Outsider")
        resp = review(client, contract["contract_id"], outsider["user_id"])
        assert resp.status_code == 403

    def test_unknown_contract(self, client, parties):
        resp = review(client, "00000000-0000-0000-0000-000000000000", parties["artist"]["user_id"])
        assert resp.status_code == 404

    def test_propose_edits_opens_request(self, client, parties, contract):
        resp = propose_edits(client, contract["contract_id"], parties["artist"]["user_id"],
                             BUSINESS_CLASS, note="Long-haul flight")
        assert resp.status_code == 200
        data = resp.json()
        assert data["edit_request"]["status"] == "pending"
        assert data["edit_request"]["requested_by_role"] == "artist"
        assert data["edit_request"]["changes"] == BUSINESS_CLASS
        assert data["contract"]["artist_edit_used"] is True
        assert data["contract"]["artist_review_done_at"] is not None
        assert data["contract"]["current_version"] == 1

    def test_invalid_edits_rejected_without_side_effects(self, client, parties, contract):
        resp = propose_edits(client, contract["contract_id"], parties["artist"]["user_id"], {
            "fee": 90000,
            "technical": {"sound_check_duration": 5},
        })
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["message"] == "Invalid changes"
        assert 'Field "fee" is a core negotiated term and cannot be modified' in detail["errors"]
        assert "Sound check duration must be between 15 and 180 minutes" in detail["errors"]

        data = get_contract(client, parties["booking"]["booking_id"], parties["artist"]["user_id"])
        assert data["artist_edit_used"] is False
        assert data["artist_review_done_at"] is None
        assert data["edit_requests"] == []

    def test_empty_changes_rejected(self, client, parties, contract):
        resp = propose_edits(client, contract["contract_id"], parties["artist"]["user_id"], {})
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == ["Changes are required for edit proposals"]

    def test_one_pending_request_per_contract(self, client, parties, contract):
        cid = contract["contract_id"]
        assert propose_edits(client, cid, parties["artist"]["user_id"], BUSINESS_CLASS).status_code == 200
        resp = propose_edits(client, cid, parties["promoter"]["user_id"],
                             {"hospitality": {"guest_list_count": 1}})
        assert resp.status_code == 400
        assert "pending edit request" in resp.json()["detail"]

    def test_out_of_range_string_number_not_stored(self, client, parties, contract):
        resp = propose_edits(client, contract["contract_id"], parties["artist"]["user_id"],
                             {"hospitality": {"guest_list_count": "500"}})
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == ["Guest list count must be between 0 and 20"]
        assert get_contract(client, parties["booking"]["booking_id"])["edit_requests"] == []

    def test_concurrent_proposal_gets_pending_rejection(self, client, parties, contract, interleave):
        cid = contract["contract_id"]
        interleave(lambda session: contract_lifecycle.review_contract(
            session, cid, parties["promoter"]["user_id"], contract_lifecycle.ReviewAction.propose_edits,
            {"hospitality": {"guest_list_count": 2}},
        ))
        resp = propose_edits(client, cid, parties["artist"]["user_id"], BUSINESS_CLASS)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "There is already a pending edit request. Wait for it to be resolved."

        details = get_contract(client, parties["booking"]["booking_id"])
        assert [r["requested_by_role"] for r in details["edit_requests"]] == ["promoter"]
        assert details["artist_edit_used"] is False
        assert details["artist_review_done_at"] is None

    def test_unknown_action_rejected(self, client, parties, contract):
        resp = review(client, contract["contract_id"], parties["artist"]["user_id"], action="MAYBE")
        assert resp.status_code == 422


class TestEditResponse:
    """The other party approves or rejects a pending edit."""

    def _propose(self, client, parties, contract):
        resp = propose_edits(client, contract["contract_id"], parties["artist"]["user_id"], BUSINESS_CLASS)
        assert resp.status_code == 200
        return resp.json()["edit_request"]

    def test_approve_creates_next_version(self, client, parties, contract):
        request = self._propose(client, parties, contract)
        resp = respond(client, contract["contract_id"], request["request_id"],
                       parties["promoter"]["user_id"], "APPROVE", note="Fair enough")
        assert resp.status_code == 200
        data = resp.json()
        assert data["contract"]["current_version"] == 2
        assert data["contract"]["terms"]["travel"]["flight_class"] == "business"
        assert data["contract"]["terms"]["fee"] == 50000
        assert "Flight Class:       Business" in data["contract"]["contract_text"]
        assert data["edit_request"]["status"] == "approved"
        assert data["edit_request"]["resulting_version"] == 2
        assert data["edit_request"]["response_note"] == "Fair enough"

        details = get_contract(client, parties["booking"]["booking_id"])
        versions = details["versions"]
        assert [v["version"] for v in versions] == [1, 2]
        assert "Flight Class:       Economy" in versions[0]["contract_text"]
        assert versions[1]["contract_text"] == details["contract_text"]
        assert versions[1]["created_by"] == parties["promoter"]["user_id"]

    def test_reject_keeps_version(self, client, parties, contract):
        request = self._propose(client, parties, contract)
        resp = respond(client, contract["contract_id"], request["request_id"],
                       parties["promoter"]["user_id"], "REJECT")
        assert resp.status_code == 200
        assert resp.json()["contract"]["current_version"] == 1
        assert resp.json()["edit_request"]["status"] == "rejected"
        assert resp.json()["edit_request"]["resulting_version"] is None

    def test_edit_is_spent_after_rejection(self, client, parties, contract):
        request = self._propose(client, parties, contract)
        respond(client, contract["contract_id"], request["request_id"], parties["promoter"]["user_id"], "REJECT")
        resp = propose_edits(client, contract["contract_id"], parties["artist"]["user_id"], BUSINESS_CLASS)
        assert resp.status_code == 400

    def test_requester_cannot_respond(self, client, parties, contract):
        request = self._propose(client, parties, contract)
        resp = respond(client, contract["contract_id"], request["request_id"],
                       parties["artist"]["user_id"], "APPROVE")
        assert resp.status_code == 403

    def test_respond_twice_rejected(self, client, parties, contract):
        request = self._propose(client, parties, contract)
        promoter_id = parties["promoter"]["user_id"]
        assert respond(client, contract["contract_id"], request["request_id"], promoter_id, "APPROVE").status_code == 200
        resp = respond(client, contract["contract_id"], request["request_id"], promoter_id, "REJECT")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Edit request has already been processed"

    def test_request_must_belong_to_contract(self, client, parties, contract):
        request = self._propose(client, parties, contract)
        other_booking = create_test_booking(client, parties["artist"]["user_id"], parties["promoter"]["user_id"])
        other = initiate_contract(client, other_booking["booking_id"])
        resp = respond(client, other["contract_id"], request["request_id"], parties["promoter"]["user_id"], "APPROVE")
        assert resp.status_code == 400

    def test_unknown_request(self, client, parties, contract):
        resp = respond(client, contract["contract_id"], "00000000-0000-0000-0000-000000000000",
                       parties["promoter"]["user_id"], "APPROVE")
        assert resp.status_code == 404

    def test_both_parties_may_edit_once(self, client, parties, contract):
        cid = contract["contract_id"]
        first = self._propose(client, parties, contract)
        respond(client, cid, first["request_id"], parties["promoter"]["user_id"], "APPROVE")

        resp = propose_edits(client, cid, parties["promoter"]["user_id"], {"hospitality": {"guest_list_count": 4}})
        assert resp.status_code == 200
        second = resp.json()["edit_request"]
        resp = respond(client, cid, second["request_id"], parties["artist"]["user_id"], "APPROVE")
        assert resp.status_code == 200
        terms = resp.json()["contract"]["terms"]
        assert resp.json()["contract"]["current_version"] == 3
        assert terms["travel"]["flight_class"] == "business"
        assert terms["hospitality"]["guest_list_count"] == 4


class TestAccept:
    """Acceptance requires a finished review and no open edit."""

    def test_accept_after_review(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        review(client, contract["contract_id"], artist_id)
        resp = accept(client, contract["contract_id"], artist_id)
        assert resp.status_code == 200
        assert resp.json()["contract"]["artist_accepted_at"] is not None

    def test_accept_before_review(self, client, parties, contract):
        resp = accept(client, contract["contract_id"], parties["artist"]["user_id"])
        assert resp.status_code == 400
        assert resp.json()["detail"] == "You must complete your review before accepting"

    def test_accept_blocked_by_pending_edit(self, client, parties, contract):
        cid = contract["contract_id"]
        review(client, cid, parties["promoter"]["user_id"])
        propose_edits(client, cid, parties["artist"]["user_id"], BUSINESS_CLASS)
        resp = accept(client, cid, parties["promoter"]["user_id"])
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cannot accept while edit requests are pending"

    def test_accept_twice_rejected(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        review(client, contract["contract_id"], artist_id)
        accept(client, contract["contract_id"], artist_id)
        resp = accept(client, contract["contract_id"], artist_id)
        assert resp.status_code == 400

    def test_agreement_flag_required(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        review(client, contract["contract_id"], artist_id)
        resp = client.post(
            f"/api/contracts/{contract['contract_id']}/accept",
            params={"actor_user_id": artist_id},
            json={"agreed": False},
        )
        assert resp.status_code == 422


class TestSign:
    """Signatures and full execution."""

    def _ready(self, client, contract_id, user_id):
        review(client, contract_id, user_id)
        accept(client, contract_id, user_id)

    def test_sign_before_accept(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        review(client, contract["contract_id"], artist_id)
        resp = sign(client, contract["contract_id"], artist_id)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "You must accept the contract terms before signing"

    def test_first_signature(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        self._ready(client, contract["contract_id"], artist_id)
        resp = sign(client, contract["contract_id"], artist_id, signature_data="Nova")
        assert resp.status_code == 200
        data = resp.json()
        assert data["fully_executed"] is False
        assert data["contract"]["signed_by_artist"] is True
        assert data["contract"]["signed_by_promoter"] is False
        assert data["contract"]["status"] == "sent"

        details = get_contract(client, parties["booking"]["booking_id"], artist_id)
        assert details["user_has_signed"] is True
        assert details["signatures"][0]["signature_data"] == "Nova"
        assert details["signatures"][0]["signature_type"] == "typed"
        assert details["signatures"][0]["ip_address"] == "testclient"

    def test_sign_twice_rejected(self, client, parties, contract):
        artist_id = parties["artist"]["user_id"]
        self._ready(client, contract["contract_id"], artist_id)
        sign(client, contract["contract_id"], artist_id)
        resp = sign(client, contract["contract_id"], artist_id)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "You have already signed this contract"

    def test_second_signature_executes_contract(self, client, parties, contract):
        result = complete_party_flow(client, contract["contract_id"], parties)
        assert result["fully_executed"] is True
        assert result["contract"]["status"] == "admin_review"
        assert result["contract"]["signed_at"] is not None

        details = get_contract(client, parties["booking"]["booking_id"])
        assert {s["role"] for s in details["signatures"]} == {"artist", "promoter"}
        # Display name stands in when no signature data is sent
        assert {s["signature_data"] for s in details["signatures"]} == {"DJ Nova", "Skyline Events"}

        booking = client.get(f"/api/bookings/{parties['booking']['booking_id']}").json()
        assert booking["status"] == "contracting"

    def test_no_party_actions_after_execution(self, client, parties, contract):
        complete_party_flow(client, contract["contract_id"], parties)
        resp = review(client, contract["contract_id"], parties["artist"]["user_id"])
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Contract is awaiting administrator review"

    def test_sign_blocked_by_pending_edit(self, client, parties, contract):
        cid = contract["contract_id"]
        promoter_id = parties["promoter"]["user_id"]
        self._ready(client, cid, promoter_id)
        propose_edits(client, cid, parties["artist"]["user_id"], BUSINESS_CLASS)
        resp = sign(client, cid, promoter_id)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cannot sign while edit requests are pending"

    def test_unknown_signature_method_rejected(self, client, db, parties, contract):
        artist_id = parties["artist"]["user_id"]
        self._ready(client, contract["contract_id"], artist_id)
        with pytest.raises(ValidationFailedError) as exc:
            contract_lifecycle.sign_contract(db, contract["contract_id"], artist_id, method="fingerprint")
        assert exc.value.status_code == 400
        assert exc.value.errors == ['Unknown signature method "fingerprint"']

        details = get_contract(client, parties["booking"]["booking_id"], artist_id)
        assert details["user_has_signed"] is False
        assert details["signatures"] == []


class TestFullBookingFlow:
    """Edit, approve, accept, sign, admin approval, download."""

    def test_business_class_booking(self, client, parties, contract):
        cid = contract["contract_id"]
        artist_id = parties["artist"]["user_id"]
        promoter_id = parties["promoter"]["user_id"]
        booking_id = parties["booking"]["booking_id"]

        edit = propose_edits(client, cid, artist_id, BUSINESS_CLASS).json()["edit_request"]
        assert respond(client, cid, edit["request_id"], promoter_id, "APPROVE").status_code == 200
        assert review(client, cid, promoter_id).status_code == 200
        assert accept(client, cid, artist_id).status_code == 200
        assert accept(client, cid, promoter_id).status_code == 200
        assert sign(client, cid, promoter_id).json()["fully_executed"] is False
        assert sign(client, cid, artist_id).json()["fully_executed"] is True

        resp = admin_review(client, cid, parties["admin"]["user_id"], "approved")
        assert resp.status_code == 200
        assert resp.json()["contract"]["status"] == "signed"

        booking = client.get(f"/api/bookings/{booking_id}").json()
        assert booking["status"] == "confirmed"

        download = client.get(f"/api/contracts/{cid}/pdf", params={"actor_user_id": artist_id})
        assert download.status_code == 200
        assert "Flight Class:       Business" in download.text
        assert f"Contract Reference: BK-{booking_id}-2026" in download.text
        assert "SIGNATURES" in download.text
        assert "ARTIST: DJ Nova" in download.text
        assert "PROMOTER: Skyline Events" in download.text

    def test_service_level_flow_with_explicit_clock(self, db, parties):
        """Operations accept an explicit ``now`` so workflows can be replayed deterministically."""
        start = utcnow()
        contract, created = contract_lifecycle.initiate_contract(db, parties["booking"]["booking_id"], now=start)
        assert created is True
        artist_id = parties["artist"]["user_id"]
        later = start + timedelta(hours=47)
        contract_lifecycle.review_contract(
            db, contract.contract_id, artist_id, contract_lifecycle.ReviewAction.accept_as_is, now=later,
        )
        view = contract_lifecycle.get_contract_details(db, parties["booking"]["booking_id"], artist_id, now=later)
        assert view.user_has_reviewed is True
        assert view.time_remaining == 3600
