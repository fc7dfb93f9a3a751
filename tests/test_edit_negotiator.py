"""Tests for change-set validation and term merging."""
from booking_contracts.services.edit_negotiator import merge_terms, normalize_changes, validate_changes


class TestValidateChanges:
    """Every violation is reported, not just the first."""

    def test_valid_change_set(self):
        assert validate_changes({"travel": {"flight_class": "business"}}) == []

    def test_empty_changes(self):
        assert validate_changes({}) == ["Changes are required for edit proposals"]
        assert validate_changes(None) == ["Changes are required for edit proposals"]

    def test_locked_field(self):
        errors = validate_changes({"fee": 60000})
        assert 'Field "fee" is a core negotiated term and cannot be modified' in errors

    def test_fee_inside_financial_is_locked(self):
        errors = validate_changes({"financial": {"total_fee": 1, "payment_method": "upi"}})
        assert errors == ["Total fee and currency cannot be modified"]

    def test_unknown_section(self):
        assert validate_changes({"catering": {"vegan": True}}) == ['Unknown contract section "catering"']

    def test_section_must_be_object(self):
        assert validate_changes({"travel": "business"}) == ["travel: must be an object"]

    def test_schema_violation_names_the_field(self):
        errors = validate_changes({"travel": {"flight_class": "first"}})
        assert len(errors) == 1
        assert errors[0].startswith("travel.flight_class:")

    def test_unknown_field_in_section(self):
        errors = validate_changes({"hospitality": {"jacuzzi": True}})
        assert len(errors) == 1
        assert errors[0].startswith("hospitality.jacuzzi:")

    def test_milestones_must_sum_to_100(self):
        errors = validate_changes({"financial": {"payment_milestones": [
            {"milestone": "deposit", "percentage": 40},
            {"milestone": "pre_event", "percentage": 50},
        ]}})
        assert errors == ["Payment milestones must sum to 100% (currently 90%)"]

    def test_milestones_summing_to_100_pass(self):
        assert validate_changes({"financial": {"payment_milestones": [
            {"milestone": "deposit", "percentage": 50},
            {"milestone": "pre_event", "percentage": 25.5},
            {"milestone": "post_event", "percentage": 24.5},
        ]}}) == []

    def test_check_in_before_check_out(self):
        errors = validate_changes({"accommodation": {"check_in_time": "15:00", "check_out_time": "11:00"}})
        assert errors == ["Check-in time must be before check-out time"]

    def test_sound_check_range(self):
        assert validate_changes({"technical": {"sound_check_duration": 10}}) == [
            "Sound check duration must be between 15 and 180 minutes"
        ]
        assert validate_changes({"technical": {"sound_check_duration": 180}}) == []

    def test_guest_list_range(self):
        assert validate_changes({"hospitality": {"guest_list_count": 25}}) == [
            "Guest list count must be between 0 and 20"
        ]

    def test_penalty_range(self):
        errors = validate_changes({"cancellation": {
            "organizer_cancellation_penalties": {"less_than_15_days": 120},
        }})
        assert errors == ["Cancellation penalties must be between 0 and 100%"]

    def test_multiple_violations_reported_together(self):
        errors = validate_changes({
            "venue_name": "Elsewhere",
            "technical": {"sound_check_duration": 5},
            "hospitality": {"guest_list_count": 50},
        })
        assert len(errors) == 3

    def test_numeric_strings_are_range_checked(self):
        assert validate_changes({"hospitality": {"guest_list_count": "500"}}) == [
            "Guest list count must be between 0 and 20"
        ]
        assert validate_changes({"technical": {"sound_check_duration": "5"}}) == [
            "Sound check duration must be between 15 and 180 minutes"
        ]
        assert validate_changes({"cancellation": {
            "artist_cancellation_penalties": {"less_than_30_days": "250"},
        }}) == ["Cancellation penalties must be between 0 and 100%"]

    def test_numeric_strings_in_range_pass(self):
        assert validate_changes({"hospitality": {"guest_list_count": "4"}}) == []
        assert normalize_changes({"hospitality": {"guest_list_count": "4"}}) == {
            "hospitality": {"guest_list_count": 4}
        }


class TestMergeTerms:
    """Per-category shallow merge."""

    CURRENT = {
        "fee": 50000,
        "travel": {"flight_class": "economy", "airport_pickup": False},
        "financial": {"payment_method": "bank_transfer", "bank_details": {"account_number": "1", "ifsc_code": "X"}},
    }

    def test_only_changed_keys_overwritten(self):
        merged = merge_terms(self.CURRENT, {"travel": {"flight_class": "business"}})
        assert merged["travel"] == {"flight_class": "business", "airport_pickup": False}
        assert merged["fee"] == 50000

    def test_nested_record_replaced_wholesale(self):
        merged = merge_terms(self.CURRENT, {"financial": {"bank_details": {"account_number": "2"}}})
        assert merged["financial"]["bank_details"] == {"account_number": "2"}
        assert merged["financial"]["payment_method"] == "bank_transfer"

    def test_current_terms_not_mutated(self):
        merge_terms(self.CURRENT, {"travel": {"flight_class": "business"}})
        assert self.CURRENT["travel"]["flight_class"] == "economy"

    def test_normalize_keeps_only_sent_keys(self):
        assert normalize_changes({"travel": {"flight_class": "business"}}) == {
            "travel": {"flight_class": "business"}
        }
