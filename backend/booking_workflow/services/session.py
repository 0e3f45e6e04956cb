# backend/booking_workflow/services/session.py
"""
WorkflowSession: one traveler's pass through the booking steps.

It owns the sequencer, the form aggregate, the selection store and one
cancellation controller per search slot. Nothing is shared between
sessions.

Search results are applied only when they are the newest request of their
slot *and* the session still sits on the step that owns the slot; leaving a
step cancels its slot, so a late answer can never touch a later step.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ..core.config import settings
from ..core.errors import (
    InvalidSelectionError,
    SessionClosedError,
    StepTransitionError,
    SubmissionError,
    ValidationError,
)
from ..models.options import FlightOption, HotelOption, RoomType
from ..models.search import default_check_out
from ..models.selection import Selection, SelectionKind, TravelerFlights
from ..providers.base import BookingBoundary
from .aggregate import BookingFormAggregate
from .booking import BookingService
from .cancellation import SearchCancellationController
from .geocoding import CityLookup, GeocodingService
from .pricing import PricingReconciler
from .results import (
    SUPERSEDED,
    SearchFailure,
    SearchOutcome,
    SearchSuccess,
    SubmissionFailure,
    SubmissionOutcome,
    Superseded,
    TransitionResult,
    outcome_to_dict,
)
from .search import FlightSearchService, HotelSearchService
from .selection import Option, SelectionStore
from .sequencer import StepSequencer, WorkflowStep

logger = logging.getLogger(__name__)

SLOT_STEPS: Dict[str, WorkflowStep] = {
    "flights": WorkflowStep.FLIGHTS,
    "hotels": WorkflowStep.HOTELS,
}


class WorkflowSession:
    def __init__(
        self,
        provider: Optional[BookingBoundary] = None,
        flight_service: Optional[FlightSearchService] = None,
        hotel_service: Optional[HotelSearchService] = None,
        booking_service: Optional[BookingService] = None,
        debounce_seconds: Optional[float] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.sequencer = StepSequencer()
        self.form = BookingFormAggregate()
        self.selections = SelectionStore(
            PricingReconciler(),
            trip_type=lambda: self.form.trip_type,
            nights=self.form.stay_nights,
            budget=lambda: self.form.budget,
        )
        self.flight_service = flight_service or FlightSearchService(provider)
        self.hotel_service = hotel_service or HotelSearchService(provider)
        self.booking_service = booking_service or BookingService(provider)
        self.city_lookup = CityLookup(GeocodingService(provider))

        debounce = settings.search_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._services = {"flights": self.flight_service, "hotels": self.hotel_service}
        self._controllers: Dict[str, SearchCancellationController] = {
            slot: SearchCancellationController(slot, service.search, debounce)
            for slot, service in self._services.items()
        }
        self.results: Dict[str, Optional[SearchSuccess]] = {slot: None for slot in self._services}
        self.search_errors: Dict[str, SearchFailure] = {}
        self._background: Dict[str, asyncio.Task] = {}
        # bumped on every step change; results issued under an older epoch are dropped
        self._epoch = 0
        self._submitting = False
        self.closed = False
        self.close_reason: Optional[str] = None
        self.touched_at = time.monotonic()

    # ---------- state ----------

    @property
    def current_step(self) -> WorkflowStep:
        return self.sequencer.current_step

    @property
    def progress_percent(self) -> float:
        return self.sequencer.progress_percent

    @property
    def selection(self) -> Selection:
        return self.selections.selection

    def pending(self, slot: str) -> bool:
        task = self._background.get(slot)
        return self._controllers[slot].pending or (task is not None and not task.done())

    def touch(self) -> None:
        self.touched_at = time.monotonic()

    # ---------- form ----------

    def patch(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        self._ensure_open()
        party = self.traveler_names()
        self.form.patch(partial)
        if self.traveler_names() != party and self.selections.reset_travelers():
            logger.info("[session %s] party changed, per-traveler flights dropped", self.id[:8])
        if self.selections.enforce_trip_type():
            logger.info("[session %s] trip is one-way now, return flight dropped", self.id[:8])
            self._mirror()
        self.selections.recompute()
        return self.form.snapshot()

    # ---------- steps ----------

    def advance(self) -> TransitionResult:
        self._ensure_open()
        if self.current_step is WorkflowStep.CLIENT_INFO:
            outcome = self.form.validate_client_info()
            if not outcome.ok:
                logger.info("[session %s] client info incomplete (%s)", self.id[:8], outcome.first_error_path)
                return self._transition_result(moved=False, errors=outcome.errors)
        return self._transition(self.sequencer.advance)

    def retreat(self) -> TransitionResult:
        self._ensure_open()
        return self._transition(self.sequencer.retreat)

    def go_to(self, step: Union[WorkflowStep, str]) -> TransitionResult:
        self._ensure_open()
        return self._transition(lambda: self.sequencer.go_to(WorkflowStep(step)))

    def _transition(self, move: Callable[[], Any]) -> TransitionResult:
        before = self.current_step
        move()
        after = self.current_step
        if after is before:
            return self._transition_result(moved=False)
        self._epoch += 1
        logger.info("[session %s] %s -> %s", self.id[:8], before.value, after.value)
        self._leave(before)
        self._enter(after)
        return self._transition_result(moved=True)

    def _transition_result(self, moved: bool, errors: Optional[Dict[str, str]] = None) -> TransitionResult:
        return TransitionResult(
            step=self.current_step.value,
            progress_percent=self.progress_percent,
            moved=moved,
            errors=dict(errors or {}),
        )

    def _leave(self, step: WorkflowStep) -> None:
        for slot, owner in SLOT_STEPS.items():
            if owner is step:
                self._cancel_slot(slot)

    def _enter(self, step: WorkflowStep) -> None:
        if step is WorkflowStep.FLIGHTS:
            self._spawn("flights", self.search_flights)
        elif step is WorkflowStep.HOTELS:
            self._spawn("hotels", self.search_hotels)

    def _spawn(self, slot: str, search: Callable[[], Awaitable[Any]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("[%s] no running loop, search left to the caller", slot)
            return
        task = loop.create_task(self._background_search(slot, search), name=f"session:{self.id[:8]}:{slot}")
        self._background[slot] = task

        def _done(t: asyncio.Task, s: str = slot) -> None:
            if self._background.get(s) is t:
                del self._background[s]

        task.add_done_callback(_done)

    async def _background_search(self, slot: str, search: Callable[[], Awaitable[Any]]) -> None:
        try:
            await search()
        except SessionClosedError:
            logger.debug("[%s] session closed before the search ran", slot)

    def _cancel_slot(self, slot: str) -> None:
        task = self._background.pop(slot, None)
        if task is not None and not task.done():
            task.cancel()
        if self._controllers[slot].cancel():
            logger.info("[session %s] left step, %s search cancelled", self.id[:8], slot)

    async def wait_idle(self) -> None:
        """Wait for searches started by step transitions."""
        tasks = list(self._background.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ---------- searches ----------

    def flight_params(self) -> Dict[str, Any]:
        f = self.form
        return {
            "origin": f.get("origin"),
            "destination": f.get("destination"),
            "departure_date": f.get("departure_date"),
            "return_date": f.get("return_date") if f.trip_type == "round-trip" else None,
            "passengers": f.get("passengers") or 1,
            "cabin": f.get("cabin") or "economy",
        }

    def hotel_params(self) -> Dict[str, Any]:
        f = self.form
        check_in = f.get("hotel.check_in_date") or f.get("departure_date")
        check_out = f.get("hotel.check_out_date")
        if check_out is None and check_in is not None:
            back = f.get("return_date") if f.trip_type == "round-trip" else None
            check_out = default_check_out(check_in, back)
        return {
            "destination": f.get("destination"),
            "check_in": check_in,
            "check_out": check_out,
            "guests": f.get("passengers") or 1,
            "rooms": 1,
        }

    async def search_flights(self, params: Optional[Mapping[str, Any]] = None) -> Union[SearchOutcome, Superseded]:
        return await self._search("flights", params if params is not None else self.flight_params())

    async def search_hotels(self, params: Optional[Mapping[str, Any]] = None) -> Union[SearchOutcome, Superseded]:
        return await self._search("hotels", params if params is not None else self.hotel_params())

    async def _search(self, slot: str, params: Any) -> Union[SearchOutcome, Superseded]:
        self._ensure_open()
        parsed = self._services[slot].parse(params)
        if isinstance(parsed, SearchFailure):
            self.search_errors[slot] = parsed
            return parsed

        epoch = self._epoch
        outcome = await self._controllers[slot].issue(parsed)
        if isinstance(outcome, Superseded):
            return SUPERSEDED
        if self.closed or epoch != self._epoch or self.current_step is not SLOT_STEPS[slot]:
            logger.info("[session %s] %s result arrived off-step, dropped", self.id[:8], slot)
            return SUPERSEDED

        if isinstance(outcome, SearchSuccess):
            self.results[slot] = outcome
            self.search_errors.pop(slot, None)
            if slot == "hotels":
                self.form.patch({"hotel": {"check_in_date": parsed.check_in, "check_out_date": parsed.check_out}})
                self.selections.recompute()
        else:
            # previous options and selections stay usable
            self.search_errors[slot] = outcome
        return outcome

    # ---------- selections ----------

    def select(self, kind: Union[SelectionKind, str], option: Union[Option, str]) -> Selection:
        self._ensure_open()
        kind = SelectionKind(kind)
        if isinstance(option, str):
            option = self._lookup(kind, option)
        selection = self.selections.select(kind, option)
        self._mirror()
        return selection

    def clear(self, kind: Union[SelectionKind, str]) -> Selection:
        self._ensure_open()
        selection = self.selections.clear(kind)
        self._mirror()
        return selection

    def traveler_names(self) -> List[str]:
        """Primary traveler first, then the companions in form order."""
        people = [self.form.get("primary_traveler") or {}] + list(self.form.get("additional_travelers") or [])
        names = []
        for i, p in enumerate(people):
            name = " ".join(x for x in (p.get("first_name"), p.get("last_name")) if x).strip()
            names.append(name or f"Traveler {i + 1}")
        return names

    def save_traveler_flights(self) -> TransitionResult:
        """
        Files the current flight pick under the current traveler.

        The flights are then cleared for the next traveler; after the last
        traveler the session moves on to the hotels step.
        """
        self._ensure_open()
        if self.current_step is not WorkflowStep.FLIGHTS:
            raise StepTransitionError(f"flights are picked on the flights step, not '{self.current_step.value}'")
        names = self.traveler_names()
        index = min(self.selections.current_traveler, len(names) - 1)
        self.selections.save_traveler_flights(names)
        self._mirror()
        if index == len(names) - 1:
            return self.advance()
        return self._transition_result(moved=False)

    def traveler_flights(self) -> List[TravelerFlights]:
        return self.selections.traveler_flights(self.traveler_names())

    def _lookup(self, kind: SelectionKind, option_id: str) -> Option:
        if kind is SelectionKind.ROOM_TYPE:
            hotel = self.selection.hotel
            if hotel is None:
                raise InvalidSelectionError("select a hotel before choosing a room type")
            room: Optional[RoomType] = hotel.room(option_id)
            if room is None:
                raise InvalidSelectionError(f"room '{option_id}' is not offered by hotel '{hotel.id}'")
            return room

        slot = "hotels" if kind is SelectionKind.HOTEL else "flights"
        found = self.results.get(slot)
        for o in found.options if found is not None else ():
            if o.id == option_id:
                return o
        raise InvalidSelectionError(f"no {slot} result with id '{option_id}'")

    def _mirror(self) -> None:
        sel = self.selection
        outbound: Optional[FlightOption] = sel.outbound_flight
        back: Optional[FlightOption] = sel.return_flight
        hotel: Optional[HotelOption] = sel.hotel
        self.form.patch({
            "flights": {
                "outbound_id": outbound.id if outbound else None,
                "return_id": back.id if back else None,
            },
            "hotel": {
                "hotel_id": hotel.id if hotel else None,
                "name": hotel.name if hotel else None,
                "address": hotel.address if hotel else None,
                "room_type_id": sel.room_type.id if sel.room_type else None,
            },
        })

    # ---------- geocoding ----------

    async def lookup(self, query: str) -> Union[SearchOutcome, Superseded]:
        """Debounced city lookup; only the last query of a burst reaches the network."""
        self._ensure_open()
        return await self.city_lookup.lookup(query)

    # ---------- submission ----------

    async def submit(self) -> SubmissionOutcome:
        self._ensure_open()
        if self.current_step is not WorkflowStep.CONFIRMATION:
            return SubmissionFailure(SubmissionError(
                f"bookings are submitted from the confirmation step, not '{self.current_step.value}'",
                retryable=False,
            ))
        if self._submitting:
            return SubmissionFailure(SubmissionError("a submission is already in progress", retryable=False))

        outcome = self.form.to_validated()
        errors = dict(outcome.errors)
        selection = self.selection
        if selection.outbound_flight is None:
            errors.setdefault("flights.outbound_id", "Select an outbound flight")
        if errors:
            logger.info("[session %s] submit blocked (%s)", self.id[:8], next(iter(errors)))
            return SubmissionFailure(ValidationError(errors))

        self._submitting = True
        try:
            result = await self.booking_service.create(
                outcome.record, selection, self.selections.pricing, travelers=self.traveler_flights()
            )
        finally:
            self._submitting = False

        if result.ok:
            self._close("submitted")
        return result

    # ---------- lifecycle ----------

    def cancel(self) -> None:
        self._close("cancelled")

    def _close(self, reason: str) -> None:
        if self.closed:
            return
        for slot in list(self._controllers):
            self._cancel_slot(slot)
            self._controllers[slot].close()
        self.city_lookup.close()
        self.closed = True
        self.close_reason = reason
        self.form.reset()
        self.selections.reset()
        self.sequencer.reset()
        self.results = {slot: None for slot in self._services}
        self.search_errors.clear()
        logger.info("[session %s] closed (%s)", self.id[:8], reason)

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError(f"session {self.id} is {self.close_reason or 'closed'}")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "step": self.current_step.value,
            "progress_percent": self.progress_percent,
            "visited": [s.value for s in self.sequencer.visited],
            "closed": self.closed,
            "close_reason": self.close_reason,
            "form": self.form.to_json(),
            "selection": self.selection.to_dict(),
            "current_traveler": self.selections.current_traveler,
            "traveler_flights": [t.to_dict() for t in self.traveler_flights()],
            "pricing": self.selections.pricing.to_dict(),
            "results": {slot: outcome_to_dict(r) for slot, r in self.results.items()},
            "search_errors": {slot: f.error.to_dict() for slot, f in self.search_errors.items()},
            "pending": {slot: self.pending(slot) for slot in self._controllers},
        }
