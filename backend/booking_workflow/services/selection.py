# backend/booking_workflow/services/selection.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..core.errors import InvalidSelectionError
from ..models.options import FlightOption, HotelOption, RoomType
from ..models.search import TripType
from ..models.selection import Selection, SelectionKind, TravelerFlights
from .pricing import PricingReconciler, PricingSummary

log = logging.getLogger(__name__)

Option = Union[FlightOption, HotelOption, RoomType]

_EXPECTED = {
    SelectionKind.OUTBOUND_FLIGHT: FlightOption,
    SelectionKind.RETURN_FLIGHT: FlightOption,
    SelectionKind.HOTEL: HotelOption,
    SelectionKind.ROOM_TYPE: RoomType,
}


class SelectionStore:
    """
    Per-session selection state.

    Invariants, checked on every select():
      - a return flight exists only on round-trip trips;
      - the room type always belongs to the selected hotel (choosing another
        hotel drops it);
      - every selected price shares one currency.
    A rejected select() leaves the state untouched. Every accepted change
    recomputes `pricing`.

    Parties of several travelers pick flights one traveler at a time:
    save_traveler_flights() files the current outbound/return pick under the
    current traveler and, unless it was the last one, clears the flights for
    the next. Settled picks of the other travelers count towards `pricing`.
    """

    def __init__(
        self,
        reconciler: Optional[PricingReconciler] = None,
        trip_type: Callable[[], TripType] = lambda: "round-trip",
        nights: Callable[[], int] = lambda: 1,
        budget: Callable[[], Optional[float]] = lambda: None,
    ) -> None:
        self.reconciler = reconciler or PricingReconciler()
        self._trip_type = trip_type
        self._nights = nights
        self._budget = budget
        self._selection = Selection()
        self._travelers: Dict[int, TravelerFlights] = {}
        self.current_traveler = 0
        self.pricing: PricingSummary = self._summarize(self._selection)

    @property
    def selection(self) -> Selection:
        return self._selection

    def select(self, kind: Union[SelectionKind, str], option: Option) -> Selection:
        kind = SelectionKind(kind)
        expected = _EXPECTED[kind]
        if not isinstance(option, expected):
            raise InvalidSelectionError(f"{kind.value} expects a {expected.__name__}, got {type(option).__name__}")

        current = self._selection
        if kind is SelectionKind.RETURN_FLIGHT and self._trip_type() != "round-trip":
            raise InvalidSelectionError("a one-way trip has no return flight")

        if kind is SelectionKind.HOTEL:
            room = current.room_type
            if room is not None:
                same_hotel = current.hotel is not None and current.hotel.id == option.id
                # the room always comes from the hotel just selected, never the older copy
                fresh = option.room(room.id) if same_hotel else None
                if fresh is None:
                    log.info("[selection] hotel changed to %s, dropping room %s", option.id, room.id)
                room = fresh
            candidate = replace(current, hotel=option, room_type=room)
        elif kind is SelectionKind.ROOM_TYPE:
            if current.hotel is None:
                raise InvalidSelectionError("select a hotel before choosing a room type")
            offered = current.hotel.room(option.id)
            if offered is None:
                raise InvalidSelectionError(f"room '{option.id}' is not offered by hotel '{current.hotel.id}'")
            candidate = replace(current, room_type=offered)
        else:
            candidate = replace(current, **{kind.value: option})

        # MixedCurrencyError is an InvalidSelectionError: raised before commit
        pricing = self._summarize(candidate)
        self._commit(candidate, pricing)
        return candidate

    def clear(self, kind: Union[SelectionKind, str]) -> Selection:
        kind = SelectionKind(kind)
        if kind is SelectionKind.HOTEL:
            candidate = replace(self._selection, hotel=None, room_type=None)
        else:
            candidate = replace(self._selection, **{kind.value: None})
        self._commit(candidate, self._summarize(candidate))
        return candidate

    def reset(self) -> None:
        self._travelers = {}
        self.current_traveler = 0
        self._commit(Selection(), self._summarize(Selection()))

    # ---------- one traveler at a time ----------

    def save_traveler_flights(self, travelers: Sequence[str]) -> TravelerFlights:
        if not travelers:
            raise InvalidSelectionError("the party has no travelers")
        index = min(self.current_traveler, len(travelers) - 1)
        current = self._selection
        if current.outbound_flight is None:
            raise InvalidSelectionError(f"select an outbound flight for {travelers[index]} first")

        entry = TravelerFlights(travelers[index], current.outbound_flight, current.return_flight)
        settled = dict(self._travelers)
        settled[index] = entry
        following = index
        candidate = current
        if index < len(travelers) - 1:
            following = index + 1
            earlier = settled.get(following)
            candidate = replace(
                current,
                outbound_flight=earlier.outbound_flight if earlier else None,
                return_flight=earlier.return_flight if earlier else None,
            )

        pricing = self._summarize(candidate, settled, following)
        self._travelers = settled
        self.current_traveler = following
        self._commit(candidate, pricing)
        log.info("[selection] flights saved for %s (%d/%d)", entry.traveler, index + 1, len(travelers))
        return entry

    def traveler_flights(self, travelers: Sequence[str]) -> List[TravelerFlights]:
        """One entry per traveler; the current traveler reads the live selection."""
        current = min(self.current_traveler, max(0, len(travelers) - 1))
        out: List[TravelerFlights] = []
        for i, name in enumerate(travelers):
            if i == current:
                out.append(TravelerFlights(name, self._selection.outbound_flight, self._selection.return_flight))
            elif i in self._travelers:
                out.append(replace(self._travelers[i], traveler=name))
            else:
                out.append(TravelerFlights(name))
        return out

    def reset_travelers(self) -> bool:
        if not self._travelers and self.current_traveler == 0:
            return False
        self._travelers = {}
        self.current_traveler = 0
        self.recompute()
        return True

    def enforce_trip_type(self) -> bool:
        """Drop every return flight once the trip became one-way."""
        if self._trip_type() == "round-trip":
            return False
        stale = {i: t for i, t in self._travelers.items() if t.return_flight is not None}
        for i, t in stale.items():
            self._travelers[i] = replace(t, return_flight=None)
        if self._selection.return_flight is not None:
            self.clear(SelectionKind.RETURN_FLIGHT)
            return True
        if stale:
            self.recompute()
        return bool(stale)

    def recompute(self) -> PricingSummary:
        """Nights or budget changed outside the store."""
        self.pricing = self._summarize(self._selection)
        return self.pricing

    def _summarize(
        self,
        selection: Selection,
        travelers: Optional[Dict[int, TravelerFlights]] = None,
        current: Optional[int] = None,
    ) -> PricingSummary:
        travelers = self._travelers if travelers is None else travelers
        current = self.current_traveler if current is None else current
        others = [t for i, t in sorted(travelers.items()) if i != current]
        return self.reconciler.summarize(selection, self._nights(), self._budget(), others)

    def _commit(self, selection: Selection, pricing: PricingSummary) -> None:
        self._selection = selection
        self.pricing = pricing
