# backend/booking_workflow/models/booking.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from .options import Cabin
from .search import TripType


class PrimaryTraveler(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    date_of_birth: date


class AdditionalTraveler(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: date


class FlightPreferences(BaseModel):
    outbound_id: Optional[str] = None
    return_id: Optional[str] = None
    seat_preference: Optional[str] = None
    meal_preference: Optional[str] = None
    loyalty_number: Optional[str] = None


class HotelStay(BaseModel):
    hotel_id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    room_type_id: Optional[str] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    check_in_time: Optional[str] = None
    special_requests: Optional[str] = None


class ClientInfo(BaseModel):
    """Fields captured on the client-info step."""
    model_config = ConfigDict(extra="ignore")

    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    departure_date: date
    return_date: Optional[date] = None
    trip_type: TripType = "round-trip"
    passengers: int = Field(1, ge=1, le=9)
    cabin: Cabin = "economy"
    budget: Optional[float] = Field(None, ge=0)
    department: Optional[str] = None
    project_code: Optional[str] = None
    cost_center: Optional[str] = None
    trip_purpose: Optional[str] = None
    primary_traveler: PrimaryTraveler
    additional_travelers: List[AdditionalTraveler] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_trip(self) -> "ClientInfo":
        if self.origin.strip().upper() == self.destination.strip().upper():
            raise ValueError("destination: must differ from origin")
        if self.trip_type == "round-trip":
            if self.return_date is None:
                raise ValueError("return_date: return date is required for round-trip")
            if self.return_date < self.departure_date:
                raise ValueError("return_date: must be on or after the departure date")
        return self

    @property
    def traveler_count(self) -> int:
        return 1 + len(self.additional_travelers)


class BookingRecord(ClientInfo):
    """The fully validated aggregate handed to the booking-creation boundary."""

    flights: FlightPreferences = Field(default_factory=FlightPreferences)
    hotel: HotelStay = Field(default_factory=HotelStay)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
