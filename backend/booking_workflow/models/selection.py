# backend/booking_workflow/models/selection.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .options import FlightOption, HotelOption, RoomType


class SelectionKind(str, Enum):
    OUTBOUND_FLIGHT = "outbound_flight"
    RETURN_FLIGHT = "return_flight"
    HOTEL = "hotel"
    ROOM_TYPE = "room_type"


@dataclass(frozen=True)
class Selection:
    """What the traveler picked so far. Replaced, never patched."""
    outbound_flight: Optional[FlightOption] = None
    return_flight: Optional[FlightOption] = None
    hotel: Optional[HotelOption] = None
    room_type: Optional[RoomType] = None

    def get(self, kind: SelectionKind) -> Any:
        return getattr(self, SelectionKind(kind).value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            k.value: (v.model_dump(mode="json") if v is not None else None)
            for k, v in ((k, self.get(k)) for k in SelectionKind)
        }


@dataclass(frozen=True)
class TravelerFlights:
    """Flights one traveler settled on before the next traveler picked theirs."""
    traveler: str
    outbound_flight: Optional[FlightOption] = None
    return_flight: Optional[FlightOption] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "traveler": self.traveler,
            "departure_flight": self.outbound_flight.model_dump(mode="json") if self.outbound_flight else None,
            "return_flight": self.return_flight.model_dump(mode="json") if self.return_flight else None,
        }
