import httpx
import pytest

from booking_workflow.core.errors import SearchError
from booking_workflow.providers.base import ProviderHTTPError
from booking_workflow.services.cache import InMemoryCache
from booking_workflow.services.search import FlightSearchService, HotelSearchService

from conftest import raw_flight

FLIGHT_PARAMS = {"origin": "JFK", "destination": "LAX", "departure_date": "2025-06-01", "return_date": "2025-06-03"}
HOTEL_PARAMS = {"destination": "Los Angeles", "check_in": "2025-06-01", "check_out": "2025-06-03"}


def _flights(fake, **kw):
    return FlightSearchService(fake, cache=kw.pop("cache", InMemoryCache(default_ttl=0)), **kw)


async def test_flights_sorted_by_price_and_malformed_dropped(fake):
    fake.flights = [raw_flight("b", 410), {"id": "broken", "price": 1}, raw_flight("a", 300)]
    outcome = await _flights(fake).search(FLIGHT_PARAMS)

    assert outcome.ok
    assert [f.id for f in outcome.options] == ["a", "b"]
    assert outcome.metadata.dropped_results == 1
    assert outcome.metadata.returned_results == 2
    payload = fake.calls_for("flights")[0]
    assert payload == {
        "origin": "JFK",
        "destination": "LAX",
        "departureDate": "2025-06-01",
        "returnDate": "2025-06-03",
        "passengers": 1,
        "cabin": "economy",
    }


async def test_invalid_parameters_never_reach_the_network(fake):
    outcome = await _flights(fake).search({**FLIGHT_PARAMS, "destination": "jfk"})
    assert not outcome.ok
    assert outcome.error.kind == SearchError.VALIDATION
    assert fake.calls == []


async def test_no_results_is_empty_failure(fake):
    fake.flights = []
    outcome = await _flights(fake).search(FLIGHT_PARAMS)
    assert outcome.error.kind == SearchError.EMPTY


async def test_timeout(fake):
    fake.latency = lambda op, payload: 1.0
    outcome = await _flights(fake, timeout=0.05).search(FLIGHT_PARAMS)
    assert outcome.error.kind == SearchError.TIMEOUT
    assert outcome.error.slot == "flights"


@pytest.mark.parametrize(
    "exc,kind,status",
    [
        (httpx.ConnectError("refused"), SearchError.NETWORK, None),
        (ProviderHTTPError(500, "boom", "flight search"), SearchError.HTTP, 500),
        (ProviderHTTPError(422, "bad date", "flight search"), SearchError.VALIDATION, 422),
        (ValueError("not json"), SearchError.MALFORMED, None),
    ],
)
async def test_boundary_failures_become_typed_errors(fake, exc, kind, status):
    fake.errors["flights"] = exc
    outcome = await _flights(fake).search(FLIGHT_PARAMS)
    assert outcome.error.kind == kind
    assert outcome.error.status_code == status
    assert outcome.error.to_dict()["kind"] == kind


async def test_unreadable_body_is_malformed(fake):
    fake.bodies["flights"] = {"flights": "nope"}
    outcome = await _flights(fake).search(FLIGHT_PARAMS)
    assert outcome.error.kind == SearchError.MALFORMED


async def test_identical_search_served_from_cache(fake):
    service = _flights(fake, cache=InMemoryCache(default_ttl=60))
    first = await service.search(FLIGHT_PARAMS)
    second = await service.search(FLIGHT_PARAMS)
    assert len(fake.calls_for("flights")) == 1
    assert not first.metadata.cached
    assert second.metadata.cached
    assert second.options == first.options


async def test_hotels_sorted_by_cheapest_room(fake):
    service = HotelSearchService(fake, cache=InMemoryCache(default_ttl=0))
    outcome = await service.search({**HOTEL_PARAMS, "filters": {"min_star_rating": 3, "free_cancellation": True}})
    assert [h.id for h in outcome.options] == ["hotel-2", "hotel-1"]
    payload = fake.calls_for("hotels")[0]
    assert payload["checkIn"] == "2025-06-01"
    assert payload["filters"] == {"starRating": 3, "cancellationPolicy": "free"}


async def test_hotel_stay_must_last_a_night(fake):
    service = HotelSearchService(fake, cache=InMemoryCache(default_ttl=0))
    outcome = await service.search({**HOTEL_PARAMS, "check_out": "2025-06-01"})
    assert outcome.error.kind == SearchError.VALIDATION
    assert fake.calls == []
