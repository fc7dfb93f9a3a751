"""Contract document generator.

Two pure functions, no DB or I/O:

- ``build_terms(booking)`` turns a negotiated booking into the structured
  term snapshot stored with version 1.
- ``render_contract(booking, terms)`` produces the human-readable contract.
  Output is byte-identical for the same booking snapshot and terms, because
  signatures are taken against a specific rendered text. Every editable
  field falls back to one of the named defaults below so no section ever
  renders blank.
"""
import copy
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import pytz

from booking_contracts.config import settings
from booking_contracts.models.booking import Booking
from booking_contracts.services.clock import as_utc

RULE = "─" * 63
DOUBLE_RULE = "═" * 63

# ── Defaults for unset terms ───────────────────────────────────────
DEFAULT_DEPOSIT_PERCENT = 30
DEFAULT_PAYMENT_METHOD = "Bank Transfer"
DEFAULT_PAYMENT_TERMS = "Deposit upon signing; balance 24h before event"
DEFAULT_TRAVEL_RESPONSIBILITY = "artist"
DEFAULT_FLIGHT_CLASS = "economy"
DEFAULT_GROUND_TRANSPORT = "not_provided"
DEFAULT_HOTEL_STAR_RATING = 3
DEFAULT_ROOM_TYPE = "single"
DEFAULT_CHECK_IN_TIME = "14:00"
DEFAULT_CHECK_OUT_TIME = "12:00"
DEFAULT_NIGHTS = 1
DEFAULT_SOUND_CHECK_MINUTES = 60
DEFAULT_STAGE_SETUP_MINUTES = 30
DEFAULT_EQUIPMENT = "Standard venue setup"
DEFAULT_BACKLINE = "As per venue availability"
DEFAULT_GUEST_LIST_COUNT = 2
DEFAULT_MEALS = "Standard artist hospitality"
DEFAULT_SECURITY = "standard"
DEFAULT_SOCIAL_MEDIA_GUIDELINES = "Standard guidelines apply"
DEFAULT_PRESS_REQUIREMENTS = "None specified"
DEFAULT_FORCE_MAJEURE = "standard"
DEFAULT_ARTIST_PENALTIES = {
    "more_than_90_days": 0,
    "between_30_and_90_days": 20,
    "less_than_30_days": 50,
}
DEFAULT_ORGANIZER_PENALTIES = {
    "more_than_30_days": 20,
    "between_15_and_30_days": 50,
    "less_than_15_days": 100,
}
DEFAULT_CONTENT_RIGHTS = {
    "recording_allowed": False,
    "photography_allowed": True,
    "videography_allowed": False,
    "live_streaming_allowed": False,
    "social_media_posting_allowed": True,
}
TBD = "TBD"


def _number(value: Any) -> float | int:
    """JSON-safe number: Decimal/float collapse to int when integral."""
    if value is None:
        return 0
    number = Decimal(str(value))
    return int(number) if number == number.to_integral_value() else float(number)


def _money(value: Any) -> str:
    number = Decimal(str(value or 0))
    if number == number.to_integral_value():
        return f"{number:,.0f}"
    return f"{number:,.2f}"


def _percent(value: Any) -> str:
    return f"{_number(value)}%"


def _label(value: Any) -> str:
    """'premium_economy' -> 'Premium Economy'."""
    return str(value).replace("_", " ").title()


def _allowed(value: Optional[bool]) -> str:
    return "Allowed" if value else "Not Allowed"


def _provided(value: Optional[bool]) -> str:
    return "Provided" if value else "Not Provided"


def _yes_no(value: Optional[bool]) -> str:
    return "Yes" if value else "No"


def _pick(section: dict, key: str, default: Any) -> Any:
    value = section.get(key)
    return default if value is None else value


def _local_event_datetime(booking: Booking) -> Optional[datetime]:
    event_date = as_utc(booking.event_date)
    if event_date is None:
        return None
    return event_date.astimezone(pytz.timezone(settings.CONTRACT_TIMEZONE))


def format_local_datetime(value: datetime) -> str:
    """Human-readable timestamp in the contract timezone, e.g. for deadlines."""
    tz = pytz.timezone(settings.CONTRACT_TIMEZONE)
    return as_utc(value).astimezone(tz).strftime("%d %b %Y, %I:%M %p %Z")


def _booking_fee(booking: Booking) -> Any:
    return booking.final_amount if booking.final_amount is not None else booking.offer_amount


def _deposit_percent(booking: Booking) -> Any:
    return booking.deposit_percent if booking.deposit_percent is not None else DEFAULT_DEPOSIT_PERCENT


def build_terms(booking: Booking) -> dict[str, Any]:
    """Build the version-1 term snapshot from negotiated booking data."""
    meta = booking.meta or {}
    deposit = _number(_deposit_percent(booking))
    event_date = as_utc(booking.event_date)
    return {
        # Locked (from negotiation)
        "fee": _number(_booking_fee(booking)),
        "currency": booking.offer_currency or settings.DEFAULT_CURRENCY,
        "deposit_percent": deposit,
        "event_title": booking.event_title or "",
        "event_date": event_date.isoformat() if event_date else None,
        "slot_time": booking.slot_time,
        "venue_name": booking.venue_name or "",
        "artist_name": booking.artist_name or "",
        "organizer_name": booking.organizer_name or "",
        # Editable categories
        "financial": {
            "payment_method": meta.get("payment_method", "bank_transfer"),
            "payment_milestones": copy.deepcopy(meta.get("payment_milestones")) or [
                {"milestone": "deposit", "percentage": deposit, "due_date": "upon_signing"},
                {"milestone": "pre_event", "percentage": _number(100 - Decimal(str(deposit))), "due_date": "24h_before"},
            ],
        },
        "travel": {
            "responsibility": "organizer" if meta.get("travel_provided") else DEFAULT_TRAVEL_RESPONSIBILITY,
            "flight_class": meta.get("flight_class", DEFAULT_FLIGHT_CLASS),
            "airport_pickup": bool(meta.get("airport_pickup", False)),
            "ground_transport": meta.get("ground_transport", DEFAULT_GROUND_TRANSPORT),
        },
        "accommodation": {
            "included": bool(meta.get("accommodation_provided", False)),
            "hotel_star_rating": meta.get("hotel_star_rating", DEFAULT_HOTEL_STAR_RATING),
            "room_type": meta.get("room_type", DEFAULT_ROOM_TYPE),
            "check_in_time": DEFAULT_CHECK_IN_TIME,
            "check_out_time": DEFAULT_CHECK_OUT_TIME,
            "nights": meta.get("nights", DEFAULT_NIGHTS),
        },
        "technical": {
            "equipment_list": list(meta.get("equipment_list", [])),
            "sound_check_duration": meta.get("sound_check_duration", DEFAULT_SOUND_CHECK_MINUTES),
            "backline_provided": list(meta.get("backline_provided", [])),
            "stage_setup_time": meta.get("stage_setup_time", DEFAULT_STAGE_SETUP_MINUTES),
        },
        "hospitality": {
            "guest_list_count": meta.get("guest_list_count", DEFAULT_GUEST_LIST_COUNT),
            "green_room_access": bool(meta.get("green_room", False)),
            "meals_provided": ["dinner", "drinks"] if meta.get("meals_provided") else [],
            "security_provisions": DEFAULT_SECURITY,
        },
        "branding": {
            "logo_usage_allowed": True,
            "promotional_approval_required": True,
            "social_media_guidelines": "",
            "press_requirements": "",
        },
        "content_rights": dict(DEFAULT_CONTENT_RIGHTS),
        "cancellation": {
            "artist_cancellation_penalties": dict(DEFAULT_ARTIST_PENALTIES),
            "organizer_cancellation_penalties": dict(DEFAULT_ORGANIZER_PENALTIES),
            "force_majeure_clause": DEFAULT_FORCE_MAJEURE,
            "custom_force_majeure_text": "",
        },
    }


def _payment_terms(financial: dict) -> str:
    milestones = financial.get("payment_milestones")
    if not milestones:
        return DEFAULT_PAYMENT_TERMS
    return ", ".join(f"{_label(m.get('milestone'))}: {_percent(m.get('percentage'))}" for m in milestones)


def _bank_details(financial: dict) -> str:
    details = financial.get("bank_details") or {}
    parts = [
        details.get("account_holder_name"),
        details.get("account_number"),
        details.get("ifsc_code"),
    ]
    parts = [p for p in parts if p]
    return " / ".join(parts) if parts else "To be shared before the first payment"


def render_contract(booking: Booking, terms: dict[str, Any]) -> str:
    """Render the contract document for a booking snapshot and term set."""
    financial = terms.get("financial") or {}
    travel = terms.get("travel") or {}
    accommodation = terms.get("accommodation") or {}
    technical = terms.get("technical") or {}
    hospitality = terms.get("hospitality") or {}
    branding = terms.get("branding") or {}
    rights = terms.get("content_rights") or {}
    cancellation = terms.get("cancellation") or {}
    artist_penalties = {**DEFAULT_ARTIST_PENALTIES, **(cancellation.get("artist_cancellation_penalties") or {})}
    organizer_penalties = {
        **DEFAULT_ORGANIZER_PENALTIES,
        **(cancellation.get("organizer_cancellation_penalties") or {}),
    }

    local_event = _local_event_datetime(booking)
    if local_event is not None:
        formatted_date = f"{local_event:%A}, {local_event:%B} {local_event.day}, {local_event.year}"
        formatted_time = booking.slot_time or f"{local_event:%I:%M %p}"
        reference = f"BK-{booking.booking_id}-{local_event.year}"
    else:
        formatted_date = "To Be Determined"
        formatted_time = booking.slot_time or TBD
        reference = f"BK-{booking.booking_id}"

    currency = booking.offer_currency or settings.DEFAULT_CURRENCY
    fee = Decimal(str(_booking_fee(booking) or 0))
    deposit = Decimal(str(_deposit_percent(booking)))
    deposit_amount = (fee * deposit / 100).quantize(Decimal("1"))
    balance_amount = (fee * (100 - deposit) / 100).quantize(Decimal("1"))

    equipment = ", ".join(_pick(technical, "equipment_list", [])) or DEFAULT_EQUIPMENT
    backline = ", ".join(_pick(technical, "backline_provided", [])) or DEFAULT_BACKLINE
    meals = ", ".join(_pick(hospitality, "meals_provided", [])) or DEFAULT_MEALS
    force_majeure = _pick(cancellation, "force_majeure_clause", DEFAULT_FORCE_MAJEURE)
    custom_clause = cancellation.get("custom_force_majeure_text") or ""

    lines = [
        DOUBLE_RULE,
        "                    PERFORMANCE CONTRACT",
        DOUBLE_RULE,
        "",
        f"Contract Reference: {reference}",
        "",
        RULE,
        "PARTIES",
        RULE,
        "",
        "ARTIST (Party A):",
        f"  Name: {booking.artist_name or 'Artist'}",
        "",
        "PROMOTER/ORGANIZER (Party B):",
        f"  Name: {booking.organizer_name or 'Organizer'}",
        "",
        RULE,
        "1. EVENT DETAILS  * Non-Editable Core Terms",
        RULE,
        "",
        f"  Event:       {booking.event_title or 'Performance Event'}",
        f"  Date:        {formatted_date}",
        f"  Time Slot:   {formatted_time}",
        f"  Venue:       {booking.venue_name or TBD}",
        f"  Location:    {booking.venue_address or TBD}",
        "",
        RULE,
        "2. FINANCIAL TERMS  * Fee and Currency Non-Editable",
        RULE,
        "",
        f"  Performance Fee:   {currency} {_money(fee)}",
        f"  Deposit:           {_percent(deposit)} ({currency} {_money(deposit_amount)})",
        f"  Balance Due:       {currency} {_money(balance_amount)}",
        f"  Payment Method:    {_label(_pick(financial, 'payment_method', DEFAULT_PAYMENT_METHOD))}",
        f"  Payment Terms:     {_payment_terms(financial)}",
        f"  Bank Details:      {_bank_details(financial)}",
        "",
        RULE,
        "3. TRAVEL ARRANGEMENTS",
        RULE,
        "",
        f"  Responsibility:     {_label(_pick(travel, 'responsibility', DEFAULT_TRAVEL_RESPONSIBILITY))}",
        f"  Flight Class:       {_label(_pick(travel, 'flight_class', DEFAULT_FLIGHT_CLASS))}",
        f"  Airport Pickup:     {_provided(travel.get('airport_pickup'))}",
        f"  Ground Transport:   {_label(_pick(travel, 'ground_transport', DEFAULT_GROUND_TRANSPORT))}",
        "",
        RULE,
        "4. ACCOMMODATION",
        RULE,
        "",
        f"  Included:       {_yes_no(accommodation.get('included'))}",
        f"  Hotel Rating:   {_pick(accommodation, 'hotel_star_rating', DEFAULT_HOTEL_STAR_RATING)} Star",
        f"  Room Type:      {_label(_pick(accommodation, 'room_type', DEFAULT_ROOM_TYPE))}",
        f"  Check-in:       {_pick(accommodation, 'check_in_time', DEFAULT_CHECK_IN_TIME)}",
        f"  Check-out:      {_pick(accommodation, 'check_out_time', DEFAULT_CHECK_OUT_TIME)}",
        f"  Nights:         {_pick(accommodation, 'nights', DEFAULT_NIGHTS)}",
        "",
        RULE,
        "5. TECHNICAL REQUIREMENTS",
        RULE,
        "",
        f"  Sound Check:    {_pick(technical, 'sound_check_duration', DEFAULT_SOUND_CHECK_MINUTES)} minutes",
        f"  Stage Setup:    {_pick(technical, 'stage_setup_time', DEFAULT_STAGE_SETUP_MINUTES)} minutes",
        f"  Equipment:      {equipment}",
        f"  Backline:       {backline}",
        "",
        RULE,
        "6. HOSPITALITY",
        RULE,
        "",
        f"  Guest List:     {_pick(hospitality, 'guest_list_count', DEFAULT_GUEST_LIST_COUNT)} passes",
        f"  Green Room:     {_provided(hospitality.get('green_room_access'))}",
        f"  Meals:          {meals}",
        f"  Security:       {_label(_pick(hospitality, 'security_provisions', DEFAULT_SECURITY))}",
        "",
        RULE,
        "7. CONTENT RIGHTS",
        RULE,
        "",
        f"  Recording:      {_allowed(_pick(rights, 'recording_allowed', DEFAULT_CONTENT_RIGHTS['recording_allowed']))}",
        f"  Photography:    {_allowed(_pick(rights, 'photography_allowed', DEFAULT_CONTENT_RIGHTS['photography_allowed']))}",
        f"  Videography:    {_allowed(_pick(rights, 'videography_allowed', DEFAULT_CONTENT_RIGHTS['videography_allowed']))}",
        f"  Live Streaming: {_allowed(_pick(rights, 'live_streaming_allowed', DEFAULT_CONTENT_RIGHTS['live_streaming_allowed']))}",
        f"  Social Posting: {_allowed(_pick(rights, 'social_media_posting_allowed', DEFAULT_CONTENT_RIGHTS['social_media_posting_allowed']))}",
        "",
        RULE,
        "8. BRANDING & PROMOTION",
        RULE,
        "",
        f"  Logo Usage:             {_allowed(_pick(branding, 'logo_usage_allowed', True))}",
        f"  Promo Approval Req:     {_yes_no(_pick(branding, 'promotional_approval_required', True))}",
        f"  Social Media:           {branding.get('social_media_guidelines') or DEFAULT_SOCIAL_MEDIA_GUIDELINES}",
        f"  Press Requirements:     {branding.get('press_requirements') or DEFAULT_PRESS_REQUIREMENTS}",
        "",
        RULE,
        "9. CANCELLATION POLICY",
        RULE,
        "",
        "  9.1 Artist Cancellation Penalties:",
        f"    - More than 90 days:     {_percent(artist_penalties['more_than_90_days'])}",
        f"    - 30-90 days:            {_percent(artist_penalties['between_30_and_90_days'])}",
        f"    - Less than 30 days:     {_percent(artist_penalties['less_than_30_days'])}",
        "",
        "  9.2 Organizer Cancellation Penalties:",
        f"    - More than 30 days:     {_percent(organizer_penalties['more_than_30_days'])}",
        f"    - 15-30 days:            {_percent(organizer_penalties['between_15_and_30_days'])}",
        f"    - Less than 15 days:     {_percent(organizer_penalties['less_than_15_days'])}",
        "",
        f"  Force Majeure:    {_label(force_majeure)}",
    ]
    if custom_clause:
        lines.append(f"  Custom Clause:    {custom_clause}")
    lines += [
        "",
        RULE,
        "10. STANDARD LEGAL TERMS",
        RULE,
        "",
        "  10.1 This agreement represents the entire understanding between the parties.",
        "  10.2 No partnership or agency relationship is created by this agreement.",
        "  10.3 Any disputes shall be resolved through arbitration.",
        "  10.4 This contract is governed by applicable local laws.",
        "  10.5 Force Majeure: Neither party liable for acts of God, government",
        "       restrictions, or other circumstances beyond reasonable control.",
        "  10.6 Recording/streaming rights as specified in Section 7.",
        "  10.7 Promoter responsible for all required permits and licenses.",
        "",
        DOUBLE_RULE,
    ]
    return "\n".join(lines)
