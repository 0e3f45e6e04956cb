from decimal import Decimal

import pytest

from booking_workflow.core.errors import MixedCurrencyError
from booking_workflow.models.selection import Selection, TravelerFlights
from booking_workflow.services.pricing import PricingReconciler

from conftest import flight, hotel, room


def _round_trip_selection():
    std = room("std", 120)
    return Selection(
        outbound_flight=flight("out-1", 300),
        return_flight=flight("ret-1", 250, origin="LAX", destination="JFK"),
        hotel=hotel("h1", std),
        room_type=std,
    )


def test_round_trip_with_two_nights_totals_790_usd():
    total = PricingReconciler().compute(_round_trip_selection(), nights=2)
    assert total.amount == Decimal("790")
    assert total.currency == "USD"


def test_empty_selection_is_zero_in_default_currency():
    total = PricingReconciler(default_currency="eur").compute(Selection())
    assert total.amount == 0
    assert total.currency == "EUR"


def test_mixed_currencies_raise():
    sel = Selection(outbound_flight=flight("out-1", 300), return_flight=flight("ret-1", 250, currency="EUR"))
    with pytest.raises(MixedCurrencyError):
        PricingReconciler().compute(sel)


def test_nights_never_below_one():
    std = room("std", 80)
    total = PricingReconciler().compute(Selection(hotel=hotel("h1", std), room_type=std), nights=0)
    assert total.amount == Decimal("80")


def test_summary_budget_and_breakdown():
    rec = PricingReconciler()
    summary = rec.summarize(_round_trip_selection(), nights=2, budget=800)
    assert summary.within_budget is True
    assert set(summary.breakdown) == {"outbound_flight", "return_flight", "room"}
    assert summary.breakdown["room"].amount == Decimal("240")

    assert rec.summarize(_round_trip_selection(), nights=2, budget=700).within_budget is False
    assert rec.summarize(_round_trip_selection(), nights=2).within_budget is None

    data = summary.to_dict()
    assert Decimal(data["total"]["amount"]) == Decimal("790")
    assert data["total"]["currency"] == "USD"
    assert data["nights"] == 2


def test_other_travelers_flights_join_the_total():
    grace = TravelerFlights("Grace Hopper", flight("out-2", 410), flight("ret-2", 260, origin="LAX", destination="JFK"))
    summary = PricingReconciler().summarize(_round_trip_selection(), nights=2, others=[grace])
    assert summary.total.amount == Decimal("1460")
    assert summary.breakdown["Grace Hopper: outbound_flight"].amount == Decimal("410")


def test_other_travelers_in_another_currency_raise():
    eur = TravelerFlights("Grace Hopper", flight("out-2", 410, currency="EUR"))
    with pytest.raises(MixedCurrencyError):
        PricingReconciler().compute(_round_trip_selection(), nights=2, others=[eur])
