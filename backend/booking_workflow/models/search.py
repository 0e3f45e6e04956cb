# backend/booking_workflow/models/search.py
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .options import Cabin

TripType = Literal["one-way", "round-trip"]


class FlightSearchParameters(BaseModel):
    """
    Flight search criteria. Departure dates in the past are accepted
    (the UI discourages them, callers may still retry).
    """
    model_config = ConfigDict(frozen=True)

    origin: str = Field(..., min_length=2, max_length=64)
    destination: str = Field(..., min_length=2, max_length=64)
    departure_date: date
    return_date: Optional[date] = None
    passengers: int = Field(1, ge=1, le=9)
    cabin: Cabin = "economy"

    @field_validator("origin", "destination")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def _check_route(self) -> "FlightSearchParameters":
        if self.origin.upper() == self.destination.upper():
            raise ValueError("origin and destination must differ")
        if self.return_date is not None and self.return_date < self.departure_date:
            raise ValueError("return date must be on or after the departure date")
        return self

    @property
    def trip_type(self) -> TripType:
        return "round-trip" if self.return_date is not None else "one-way"

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "origin": self.origin,
            "destination": self.destination,
            "departureDate": self.departure_date.isoformat(),
            "passengers": self.passengers,
            "cabin": self.cabin,
        }
        if self.return_date is not None:
            payload["returnDate"] = self.return_date.isoformat()
        return payload


class HotelFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_star_rating: Optional[int] = Field(None, ge=1, le=5)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    amenities: Tuple[str, ...] = ()
    free_cancellation: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "HotelFilters":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not exceed max_price")
        return self

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.min_star_rating is not None:
            out["starRating"] = self.min_star_rating
        if self.min_price is not None or self.max_price is not None:
            out["priceRange"] = {
                "min": float(self.min_price) if self.min_price is not None else None,
                "max": float(self.max_price) if self.max_price is not None else None,
            }
        if self.amenities:
            out["amenities"] = list(self.amenities)
        if self.free_cancellation:
            out["cancellationPolicy"] = "free"
        return out


class HotelSearchParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    destination: str = Field(..., min_length=2, max_length=120)
    check_in: date
    check_out: date
    guests: int = Field(1, ge=1)
    rooms: int = Field(1, ge=1)
    filters: HotelFilters = Field(default_factory=HotelFilters)

    @field_validator("destination")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def _check_stay(self) -> "HotelSearchParameters":
        if self.check_out <= self.check_in:
            raise ValueError("check-out must be after check-in")
        return self

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def to_payload(self) -> Dict[str, Any]:
        return {
            "destination": self.destination,
            "checkIn": self.check_in.isoformat(),
            "checkOut": self.check_out.isoformat(),
            "guests": self.guests,
            "rooms": self.rooms,
            "filters": self.filters.to_payload(),
        }


def default_check_out(check_in: date, return_date: Optional[date]) -> date:
    # one-way trips (or same-day returns) still need one night
    if return_date is None or return_date <= check_in:
        return check_in + timedelta(days=1)
    return return_date
