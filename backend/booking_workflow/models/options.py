# backend/booking_workflow/models/options.py
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

Cabin = Literal["economy", "premium-economy", "business", "first"]


class Money(BaseModel):
    """The only price shape downstream code ever sees."""
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(amount=Decimal("0"), currency=currency)

    def __add__(self, other: "Money") -> "Money":
        if other.currency != self.currency:
            raise ValueError(f"currency mismatch {self.currency} vs {other.currency}")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def times(self, n: int) -> "Money":
        return Money(amount=self.amount * n, currency=self.currency)


class FlightSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    departure_airport: str
    departure_time: str  # ISO 8601
    arrival_airport: str
    arrival_time: str
    carrier: str
    flight_number: Optional[str] = None
    duration_minutes: int = Field(..., ge=0)


class FlightOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    carrier: str
    flight_number: str
    segments: Tuple[FlightSegment, ...] = Field(..., min_length=1)
    duration_minutes: int
    stops: int = Field(0, ge=0)
    price: Money
    cabin: str = "economy"
    seats_available: Optional[int] = None

    @property
    def origin(self) -> str:
        return self.segments[0].departure_airport

    @property
    def destination(self) -> str:
        return self.segments[-1].arrival_airport


class RoomType(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    occupancy: int = Field(1, ge=1)
    bed_configuration: Optional[str] = None
    price: Money  # per night
    cancellation_policy: Optional[str] = None
    refundable: bool = False


class HotelOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    address: str = ""
    star_rating: Optional[float] = None
    room_types: Tuple[RoomType, ...] = ()
    amenities: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()

    def room(self, room_id: str) -> Optional[RoomType]:
        for r in self.room_types:
            if r.id == room_id:
                return r
        return None

    @property
    def cheapest_room(self) -> Optional[RoomType]:
        if not self.room_types:
            return None
        return min(self.room_types, key=lambda r: r.price.amount)


class Place(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    lat: float
    lng: float
    country: Optional[str] = None


class SearchMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency: Optional[str] = None
    total_results: int = 0
    returned_results: int = 0
    dropped_results: int = 0
    source: str = "unknown"
    page: Optional[int] = None
    total_pages: Optional[int] = None
    cached: bool = False
