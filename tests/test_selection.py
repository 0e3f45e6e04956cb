import random
from decimal import Decimal

import pytest

from booking_workflow.core.errors import InvalidSelectionError, MixedCurrencyError
from booking_workflow.models.selection import Selection, SelectionKind
from booking_workflow.services.selection import SelectionStore

from conftest import flight, hotel, room


def test_one_way_trip_rejects_return_flight():
    store = SelectionStore(trip_type=lambda: "one-way")
    store.select(SelectionKind.OUTBOUND_FLIGHT, flight("out-1", 300))

    with pytest.raises(InvalidSelectionError):
        store.select(SelectionKind.RETURN_FLIGHT, flight("ret-1", 250, origin="LAX", destination="JFK"))
    assert store.selection.return_flight is None
    assert store.selection.outbound_flight.id == "out-1"


def test_room_type_needs_a_hotel_offering_it():
    store = SelectionStore()
    with pytest.raises(InvalidSelectionError):
        store.select("room_type", room("std", 100))

    store.select("hotel", hotel("h1", room("h1-std", 100)))
    with pytest.raises(InvalidSelectionError):
        store.select("room_type", room("h2-std", 100))
    assert store.selection.room_type is None


def test_changing_hotel_drops_room_type():
    std = room("h1-std", 100)
    h1 = hotel("h1", std)
    store = SelectionStore()
    store.select("hotel", h1)
    store.select("room_type", std)

    store.select("hotel", h1)
    assert store.selection.room_type == std

    store.select("hotel", hotel("h2", room("h2-std", 90)))
    assert store.selection.hotel.id == "h2"
    assert store.selection.room_type is None


def test_clearing_hotel_clears_room():
    std = room("h1-std", 100)
    store = SelectionStore()
    store.select("hotel", hotel("h1", std))
    store.select("room_type", std)
    store.clear("hotel")
    assert store.selection == Selection()


def test_wrong_option_type_rejected():
    store = SelectionStore()
    with pytest.raises(InvalidSelectionError):
        store.select("hotel", flight("out-1", 300))


def test_mixed_currency_leaves_state_untouched():
    store = SelectionStore()
    store.select("outbound_flight", flight("out-1", 300))
    before = store.selection, store.pricing

    with pytest.raises(MixedCurrencyError):
        store.select("return_flight", flight("ret-1", 250, currency="EUR"))
    assert (store.selection, store.pricing) == before


def test_trip_becoming_one_way_drops_return_flight():
    trip = {"type": "round-trip"}
    store = SelectionStore(trip_type=lambda: trip["type"])
    store.select("outbound_flight", flight("out-1", 300))
    store.select("return_flight", flight("ret-1", 250))

    assert store.enforce_trip_type() is False
    trip["type"] = "one-way"
    assert store.enforce_trip_type() is True
    assert store.selection.return_flight is None
    assert store.pricing.total.amount == Decimal("300")


def test_pricing_follows_nights_and_budget():
    state = {"nights": 1, "budget": 300.0}
    store = SelectionStore(nights=lambda: state["nights"], budget=lambda: state["budget"])
    std = room("h1-std", 120)
    store.select("hotel", hotel("h1", std))
    store.select("room_type", std)
    assert store.pricing.total.amount == Decimal("120")
    assert store.pricing.within_budget is True

    state["nights"] = 3
    store.recompute()
    assert store.pricing.total.amount == Decimal("360")
    assert store.pricing.within_budget is False


def test_room_always_belongs_to_selected_hotel():
    hotels = [
        hotel("h1", room("h1-a", 100), room("h1-b", 150)),
        hotel("h2", room("h2-a", 90)),
        hotel("h3", room("h3-a", 200), room("h3-b", 250)),
    ]
    rooms = [r for h in hotels for r in h.room_types]
    store = SelectionStore()
    rng = random.Random(7)

    for _ in range(300):
        action = rng.choice(["hotel", "room", "clear"])
        try:
            if action == "hotel":
                store.select("hotel", rng.choice(hotels))
            elif action == "room":
                store.select("room_type", rng.choice(rooms))
            else:
                store.clear(rng.choice(["hotel", "room_type"]))
        except InvalidSelectionError:
            pass
        sel = store.selection
        if sel.room_type is not None:
            assert sel.hotel is not None
            assert sel.hotel.room(sel.room_type.id) is not None


def test_reselecting_hotel_takes_its_current_room_price():
    store = SelectionStore(nights=lambda: 2)
    store.select("hotel", hotel("h1", room("h1-std", 100)))
    store.select("room_type", room("h1-std", 100))

    # a newer search returns the same hotel with a different nightly rate
    fresh = hotel("h1", room("h1-std", 180))
    store.select("hotel", fresh)

    assert store.selection.room_type == fresh.room("h1-std")
    assert store.selection.room_type.price.amount == Decimal("180")
    assert store.pricing.total.amount == Decimal("360")


def test_room_type_stored_is_the_hotels_own_room():
    offered = room("h1-std", 120)
    store = SelectionStore()
    store.select("hotel", hotel("h1", offered))
    # same id, stale price from the caller
    store.select("room_type", room("h1-std", 1))

    assert store.selection.room_type == offered
    assert store.pricing.total.amount == Decimal("120")
