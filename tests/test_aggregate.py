from datetime import date

import pytest

from booking_workflow.core.errors import PatchTypeError, UnknownFieldError, ValidationError
from booking_workflow.services.aggregate import BookingFormAggregate, ValidationOutcome

from conftest import CLIENT_INFO


def test_nested_patch_keeps_sibling_fields():
    form = BookingFormAggregate()
    form.patch({"hotel": {"address": "1 Main Street"}})
    form.patch({"hotel": {"check_in_time": "15:00"}})
    assert form.get("hotel.address") == "1 Main Street"
    assert form.get("hotel.check_in_time") == "15:00"


def test_unknown_path_rejected_without_partial_write():
    form = BookingFormAggregate()
    with pytest.raises(UnknownFieldError) as exc:
        form.patch({"origin": "JFK", "primary_traveler": {"nickname": "Ada"}})
    assert exc.value.path == "primary_traveler.nickname"
    assert form.get("origin") == ""


def test_wrong_types_rejected():
    form = BookingFormAggregate()
    with pytest.raises(PatchTypeError):
        form.patch({"passengers": "two"})
    with pytest.raises(PatchTypeError):
        form.patch({"departure_date": "next june"})
    with pytest.raises(PatchTypeError):
        form.patch({"hotel": "Grand"})
    assert isinstance(PatchTypeError("x", "y"), ValidationError)


def test_dates_parsed_from_iso_strings():
    form = BookingFormAggregate({"departure_date": "2025-06-01", "return_date": "2025-06-05T00:00:00"})
    assert form.get("departure_date") == date(2025, 6, 1)
    assert form.get("return_date") == date(2025, 6, 5)
    assert form.to_json()["departure_date"] == "2025-06-01"


def test_travelers_list_replaced_wholesale():
    form = BookingFormAggregate()
    form.patch({"additional_travelers": [
        {"first_name": "Grace", "last_name": "Hopper", "date_of_birth": "1990-01-01"},
        {"first_name": "Alan", "last_name": "Turing", "date_of_birth": "1991-02-02"},
    ]})
    form.patch({"additional_travelers": [{"first_name": "Edsger"}]})
    travelers = form.get("additional_travelers")
    assert len(travelers) == 1
    assert travelers[0] == {"first_name": "Edsger", "last_name": "", "date_of_birth": None}


def test_snapshot_is_a_copy():
    form = BookingFormAggregate(CLIENT_INFO)
    snap = form.snapshot()
    snap["primary_traveler"]["first_name"] = "Changed"
    assert form.get("primary_traveler.first_name") == "Ada"


def test_empty_form_reports_first_missing_field():
    outcome = BookingFormAggregate().validate_client_info()
    assert not outcome.ok
    assert outcome.first_error_path == "origin"
    assert outcome.errors["origin"] == "Origin is required"
    assert outcome.errors["primary_traveler.email"] == "Valid email is required"
    with pytest.raises(ValidationError):
        outcome.raise_for_errors()


def test_complete_client_info_validates():
    outcome = BookingFormAggregate(CLIENT_INFO).validate_client_info()
    assert outcome.ok, outcome.errors
    assert outcome.record.traveler_count == 1
    assert outcome.record.primary_traveler.email == "ada@acme-travel.io"


def test_round_trip_needs_return_date():
    form = BookingFormAggregate(CLIENT_INFO)
    form.patch({"return_date": None})
    outcome = form.validate_client_info()
    assert list(outcome.errors) == ["return_date"]

    form.patch({"trip_type": "one-way"})
    assert form.validate_client_info().ok


def test_return_before_departure_rejected():
    form = BookingFormAggregate(CLIENT_INFO)
    form.patch({"return_date": "2025-05-20"})
    assert "return_date" in form.validate_client_info().errors


def test_invalid_email_message():
    form = BookingFormAggregate(CLIENT_INFO)
    form.patch({"primary_traveler": {"email": "not-an-email"}})
    errors = form.validate_client_info().errors
    assert errors == {"primary_traveler.email": "Valid email is required"}


def test_stay_nights_prefers_hotel_dates():
    form = BookingFormAggregate(CLIENT_INFO)
    assert form.stay_nights() == 2
    form.patch({"hotel": {"check_in_date": "2025-06-01", "check_out_date": "2025-06-05"}})
    assert form.stay_nights() == 4
    form.reset()
    assert form.stay_nights() == 1


def test_outcome_without_record_or_errors_still_raises():
    with pytest.raises(ValidationError) as exc:
        ValidationOutcome().raise_for_errors()
    assert "__root__" in exc.value.errors
