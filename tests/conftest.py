import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from booking_workflow.models.options import FlightOption, FlightSegment, HotelOption, Money, RoomType
from booking_workflow.services.booking import BookingService
from booking_workflow.services.cache import InMemoryCache, cache
from booking_workflow.services.providers import set_provider
from booking_workflow.services.registry import registry
from booking_workflow.services.search import FlightSearchService, HotelSearchService
from booking_workflow.services.session import WorkflowSession

CLIENT_INFO: Dict[str, Any] = {
    "origin": "JFK",
    "destination": "LAX",
    "departure_date": "2025-06-01",
    "return_date": "2025-06-03",
    "trip_type": "round-trip",
    "passengers": 1,
    "cabin": "economy",
    "primary_traveler": {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@acme-travel.io",
        "phone": "+1 555 0100",
        "date_of_birth": "1985-12-10",
    },
}


# ---------- option builders ----------


def money(amount, currency="USD") -> Money:
    return Money(amount=Decimal(str(amount)), currency=currency)


def flight(fid: str, amount, currency="USD", origin="JFK", destination="LAX", minutes=330) -> FlightOption:
    seg = FlightSegment(
        departure_airport=origin,
        departure_time="2025-06-01T08:00:00",
        arrival_airport=destination,
        arrival_time="2025-06-01T13:30:00",
        carrier="AA",
        duration_minutes=minutes,
    )
    return FlightOption(
        id=fid,
        carrier="AA",
        flight_number="AA100",
        segments=(seg,),
        duration_minutes=minutes,
        price=money(amount, currency),
    )


def room(rid: str, amount, currency="USD") -> RoomType:
    return RoomType(id=rid, name=rid, price=money(amount, currency))


def hotel(hid: str, *rooms: RoomType) -> HotelOption:
    return HotelOption(id=hid, name=f"Hotel {hid}", address="1 Main Street", room_types=tuple(rooms))


# ---------- raw API payloads ----------


def raw_flight(fid: str, amount, origin="JFK", destination="LAX", day="2025-06-01") -> Dict[str, Any]:
    return {
        "id": fid,
        "airline": "AA",
        "flightNumber": "AA100",
        "segments": [
            {
                "departure": {"airport": origin, "time": f"{day}T08:00:00"},
                "arrival": {"airport": destination, "time": f"{day}T13:30:00"},
                "carrier": "AA",
                "duration": "PT5H30M",
            }
        ],
        "price": {"amount": amount, "currency": "USD"},
    }


def raw_hotel(hid: str, rooms: List[Tuple[str, Any]]) -> Dict[str, Any]:
    return {
        "id": hid,
        "name": f"Hotel {hid}",
        "address": "1 Main Street",
        "starRating": 4,
        "roomTypes": [{"id": rid, "name": rid, "price": price} for rid, price in rooms],
    }


class FakeBoundary:
    """Scripted booking API: records every call, answers from its attributes."""

    name = "fake"

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Any]] = []
        self.flights: List[Dict[str, Any]] = [
            raw_flight("out-1", 300),
            raw_flight("out-2", 410),
            raw_flight("ret-1", 250, origin="LAX", destination="JFK", day="2025-06-03"),
        ]
        self.hotels: List[Dict[str, Any]] = [
            raw_hotel("hotel-1", [("hotel-1-std", 120), ("hotel-1-dlx", 180)]),
            raw_hotel("hotel-2", [("hotel-2-std", 95)]),
        ]
        self.places: List[Dict[str, Any]] = [{"name": "Paris", "lat": 48.85, "lng": 2.35, "country": "FR"}]
        self.booking_id = "BK-TEST-1"
        # op -> exception raised instead of answering
        self.errors: Dict[str, BaseException] = {}
        # op -> full response body replacing the default one
        self.bodies: Dict[str, Any] = {}
        self.latency: Callable[[str, Any], float] = lambda op, payload: 0.0
        self.closed = False

    async def _answer(self, op: str, payload: Any, body: Any) -> Any:
        self.calls.append((op, payload))
        delay = self.latency(op, payload)
        if delay:
            await asyncio.sleep(delay)
        if op in self.errors:
            raise self.errors[op]
        return self.bodies.get(op, body)

    def calls_for(self, op: str) -> List[Any]:
        return [p for o, p in self.calls if o == op]

    async def search_flights(self, payload):
        return await self._answer("flights", payload, {"flights": list(self.flights), "metadata": {"currency": "USD"}})

    async def search_hotels(self, payload):
        return await self._answer("hotels", payload, {"hotels": list(self.hotels), "metadata": {"currency": "USD"}})

    async def create_booking(self, payload):
        return await self._answer("booking", payload, {"bookingId": self.booking_id})

    async def geocode(self, query):
        return await self._answer("geocode", query, {"results": list(self.places)})

    async def aclose(self):
        self.closed = True


def make_session(fake: FakeBoundary, debounce_seconds: float = 0.0, session_id: Optional[str] = None) -> WorkflowSession:
    return WorkflowSession(
        provider=fake,
        flight_service=FlightSearchService(fake, cache=InMemoryCache(default_ttl=0)),
        hotel_service=HotelSearchService(fake, cache=InMemoryCache(default_ttl=0)),
        booking_service=BookingService(fake),
        debounce_seconds=debounce_seconds,
        session_id=session_id,
    )


@pytest.fixture(autouse=True)
def _isolate_process_state():
    cache.clear()
    set_provider(None)
    yield
    cache.clear()
    registry.clear()
    set_provider(None)


@pytest.fixture
def fake() -> FakeBoundary:
    return FakeBoundary()


@pytest.fixture
def session(fake) -> WorkflowSession:
    return make_session(fake)
