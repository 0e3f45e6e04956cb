# backend/booking_workflow/services/pricing.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.errors import MixedCurrencyError
from ..models.options import Money
from ..models.selection import Selection, TravelerFlights


@dataclass(frozen=True)
class PricingSummary:
    total: Money
    breakdown: Dict[str, Money] = field(default_factory=dict)
    nights: int = 1
    budget: Optional[Decimal] = None

    @property
    def within_budget(self) -> Optional[bool]:
        if self.budget is None:
            return None
        return self.total.amount <= self.budget

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": {"amount": str(self.total.amount), "currency": self.total.currency},
            "breakdown": {k: {"amount": str(v.amount), "currency": v.currency} for k, v in self.breakdown.items()},
            "nights": self.nights,
            "budget": str(self.budget) if self.budget is not None else None,
            "within_budget": self.within_budget,
        }


class PricingReconciler:
    """
    total = outbound + return + room x nights

    `others` holds flights already settled for the other travelers of the
    party; each adds its own outbound + return.

    Pure and synchronous. Never converts currencies: mixed inputs are a
    defect upstream and raise MixedCurrencyError.
    """

    def __init__(self, default_currency: Optional[str] = None) -> None:
        self.default_currency = (default_currency or settings.DEFAULT_CURRENCY).upper()

    def components(
        self, selection: Selection, nights: int = 1, others: Sequence[TravelerFlights] = ()
    ) -> List[Tuple[str, Money]]:
        parts: List[Tuple[str, Money]] = []
        for t in others:
            if t.outbound_flight is not None:
                parts.append((f"{t.traveler}: outbound_flight", t.outbound_flight.price))
            if t.return_flight is not None:
                parts.append((f"{t.traveler}: return_flight", t.return_flight.price))
        if selection.outbound_flight is not None:
            parts.append(("outbound_flight", selection.outbound_flight.price))
        if selection.return_flight is not None:
            parts.append(("return_flight", selection.return_flight.price))
        if selection.room_type is not None:
            parts.append(("room", selection.room_type.price.times(max(1, nights))))
        return parts

    def compute(self, selection: Selection, nights: int = 1, others: Sequence[TravelerFlights] = ()) -> Money:
        parts = self.components(selection, nights, others)
        currencies = {m.currency for _, m in parts}
        if len(currencies) > 1:
            raise MixedCurrencyError(f"cannot total prices in {', '.join(sorted(currencies))}")
        currency = currencies.pop() if currencies else self.default_currency
        total = Money.zero(currency)
        for _, m in parts:
            total = total + m
        return total

    def summarize(
        self,
        selection: Selection,
        nights: int = 1,
        budget: Optional[float] = None,
        others: Sequence[TravelerFlights] = (),
    ) -> PricingSummary:
        total = self.compute(selection, nights, others)
        return PricingSummary(
            total=total,
            breakdown=dict(self.components(selection, nights, others)),
            nights=max(1, nights),
            budget=Decimal(str(budget)) if budget is not None else None,
        )
