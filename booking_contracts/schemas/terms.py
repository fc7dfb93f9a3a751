"""Pydantic schemas for the editable contract term categories.

Each editable category is a flat record; every field is optional because a
change proposal only carries the keys a party wants to alter. Range rules
that need a user-facing message of their own (sound check, guest list,
cancellation penalties, milestone totals, check-in ordering) are enforced by
the edit negotiator, not here.
"""
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field


class _Category(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PaymentMilestone(_Category):
    milestone: Literal["deposit", "pre_event", "post_event"]
    percentage: float = Field(ge=0, le=100)
    due_date: Optional[str] = None


class BankDetails(_Category):
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    account_holder_name: Optional[str] = None


class FinancialTerms(_Category):
    payment_method: Optional[Literal["bank_transfer", "upi", "card"]] = None
    payment_milestones: Optional[list[PaymentMilestone]] = None
    bank_details: Optional[BankDetails] = None


class TravelTerms(_Category):
    responsibility: Optional[Literal["artist", "organizer", "shared"]] = None
    flight_class: Optional[Literal["economy", "premium_economy", "business"]] = None
    airport_pickup: Optional[bool] = None
    ground_transport: Optional[Literal["provided", "not_provided", "reimbursed"]] = None


class AccommodationTerms(_Category):
    included: Optional[bool] = None
    hotel_star_rating: Optional[int] = Field(default=None, ge=1, le=5)
    room_type: Optional[Literal["single", "double", "suite"]] = None
    check_in_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    check_out_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    nights: Optional[int] = Field(default=None, ge=0, le=14)


class TechnicalTerms(_Category):
    equipment_list: Optional[list[str]] = None
    sound_check_duration: Optional[int] = None
    backline_provided: Optional[list[str]] = None
    stage_setup_time: Optional[int] = Field(default=None, ge=0, le=180)


class HospitalityTerms(_Category):
    guest_list_count: Optional[int] = None
    green_room_access: Optional[bool] = None
    meals_provided: Optional[list[str]] = None
    security_provisions: Optional[Literal["standard", "enhanced"]] = None


class BrandingTerms(_Category):
    logo_usage_allowed: Optional[bool] = None
    promotional_approval_required: Optional[bool] = None
    social_media_guidelines: Optional[str] = None
    press_requirements: Optional[str] = None


class ContentRightsTerms(_Category):
    recording_allowed: Optional[bool] = None
    photography_allowed: Optional[bool] = None
    videography_allowed: Optional[bool] = None
    live_streaming_allowed: Optional[bool] = None
    social_media_posting_allowed: Optional[bool] = None


class ArtistCancellationPenalties(_Category):
    more_than_90_days: Optional[float] = None
    between_30_and_90_days: Optional[float] = None
    less_than_30_days: Optional[float] = None


class OrganizerCancellationPenalties(_Category):
    more_than_30_days: Optional[float] = None
    between_15_and_30_days: Optional[float] = None
    less_than_15_days: Optional[float] = None


class CancellationTerms(_Category):
    artist_cancellation_penalties: Optional[ArtistCancellationPenalties] = None
    organizer_cancellation_penalties: Optional[OrganizerCancellationPenalties] = None
    force_majeure_clause: Optional[Literal["standard", "custom"]] = None
    custom_force_majeure_text: Optional[str] = None


# Editable category name -> schema. Order is the order sections appear in the document.
EDITABLE_CATEGORIES: dict[str, type[_Category]] = {
    "financial": FinancialTerms,
    "travel": TravelTerms,
    "accommodation": AccommodationTerms,
    "technical": TechnicalTerms,
    "hospitality": HospitalityTerms,
    "branding": BrandingTerms,
    "content_rights": ContentRightsTerms,
    "cancellation": CancellationTerms,
}

# Terms fixed by the negotiation stage; never editable inside the contract workflow.
LOCKED_FIELDS = (
    "fee",
    "total_fee",
    "currency",
    "event_date",
    "event_time",
    "slot_type",
    "venue_name",
    "artist_name",
    "organizer_name",
    "performance_duration",
    "platform_commission",
)
