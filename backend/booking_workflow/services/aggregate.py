# backend/booking_workflow/services/aggregate.py
"""
BookingFormAggregate: the booking record accumulated across the steps.

Merge rules for patch():
  - scalar fields are overwritten (None clears them);
  - object sections (primary_traveler, flights, hotel) merge key by key, so a
    patch touching hotel.check_in_time keeps hotel.address;
  - array sections (additional_travelers) are replaced wholesale, never merged
    by index;
  - paths the schema does not declare are rejected, and a rejected patch
    leaves the aggregate unchanged.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import PatchTypeError, UnknownFieldError, ValidationError
from ..models.booking import BookingRecord, ClientInfo

log = logging.getLogger(__name__)

_TRAVELER = {"first_name": str, "last_name": str, "email": str, "phone": str, "date_of_birth": date}
_COMPANION = {"first_name": str, "last_name": str, "date_of_birth": date}

FORM_SCHEMA: Dict[str, Any] = {
    "origin": str,
    "destination": str,
    "departure_date": date,
    "return_date": date,
    "trip_type": str,
    "passengers": int,
    "cabin": str,
    "budget": float,
    "department": str,
    "project_code": str,
    "cost_center": str,
    "trip_purpose": str,
    "primary_traveler": _TRAVELER,
    "additional_travelers": [_COMPANION],
    "flights": {
        "outbound_id": str,
        "return_id": str,
        "seat_preference": str,
        "meal_preference": str,
        "loyalty_number": str,
    },
    "hotel": {
        "hotel_id": str,
        "name": str,
        "address": str,
        "room_type_id": str,
        "check_in_date": date,
        "check_out_date": date,
        "check_in_time": str,
        "special_requests": str,
    },
}

# wording from the client-info form
REQUIRED_MESSAGES = {
    "origin": "Origin is required",
    "destination": "Destination is required",
    "departure_date": "Departure date is required",
    "return_date": "Return date is required for round-trip",
    "primary_traveler.first_name": "First name is required",
    "primary_traveler.last_name": "Last name is required",
    "primary_traveler.email": "Valid email is required",
    "primary_traveler.phone": "Phone number is required",
    "primary_traveler.date_of_birth": "Date of birth is required",
}


def default_form() -> Dict[str, Any]:
    return {
        "origin": "",
        "destination": "",
        "departure_date": None,
        "return_date": None,
        "trip_type": "round-trip",
        "passengers": 1,
        "cabin": "economy",
        "budget": None,
        "department": "",
        "project_code": "",
        "cost_center": "",
        "trip_purpose": "",
        "primary_traveler": {k: ("" if t is str else None) for k, t in _TRAVELER.items()},
        "additional_travelers": [],
        "flights": {k: None for k in FORM_SCHEMA["flights"]},
        "hotel": {k: None for k in FORM_SCHEMA["hotel"]},
    }


@dataclass
class ValidationOutcome:
    record: Optional[BaseModel] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def first_error_path(self) -> Optional[str]:
        return next(iter(self.errors), None)

    def raise_for_errors(self) -> BaseModel:
        if self.errors:
            raise ValidationError(self.errors)
        if self.record is None:
            raise ValidationError({"__root__": "nothing was validated"})
        return self.record


# ---------- merge ----------

def _coerce_scalar(path: str, kind: type, value: Any) -> Any:
    if value is None:
        return None
    if kind is date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            txt = value.strip()
            if not txt:
                return None
            try:
                return date.fromisoformat(txt[:10])
            except ValueError:
                raise PatchTypeError(path, "an ISO date (YYYY-MM-DD)")
        raise PatchTypeError(path, "an ISO date (YYYY-MM-DD)")
    if kind is str:
        if isinstance(value, str):
            return value
        raise PatchTypeError(path, "a string")
    if kind is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise PatchTypeError(path, "an integer")
    if kind is float:
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return float(value)
        raise PatchTypeError(path, "a number")
    raise PatchTypeError(path, kind.__name__)


def _merge(target: Dict[str, Any], partial: Mapping[str, Any], schema: Mapping[str, Any], prefix: str = "") -> None:
    for key, value in partial.items():
        path = f"{prefix}{key}"
        if key not in schema:
            raise UnknownFieldError(path)
        rule = schema[key]
        if isinstance(rule, dict):
            if value is None:
                target[key] = {k: None for k in rule}
                continue
            if not isinstance(value, Mapping):
                raise PatchTypeError(path, "an object")
            section = target.get(key)
            if not isinstance(section, dict):
                section = {}
                target[key] = section
            _merge(section, value, rule, prefix=f"{path}.")
        elif isinstance(rule, list):
            if value is None:
                target[key] = []
                continue
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
                raise PatchTypeError(path, "a list")
            item_schema = rule[0]
            items: List[Dict[str, Any]] = []
            for i, item in enumerate(value):
                if not isinstance(item, Mapping):
                    raise PatchTypeError(f"{path}.{i}", "an object")
                fresh = {k: ("" if t is str else None) for k, t in item_schema.items()}
                _merge(fresh, item, item_schema, prefix=f"{path}.{i}.")
                items.append(fresh)
            target[key] = items
        else:
            target[key] = _coerce_scalar(path, rule, value)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _blank_to_none(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_blank_to_none(v) for v in value]
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _error_map(e: PydanticValidationError) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        if not loc and ": " in msg:
            # model-level rule reported as "<path>: <message>"
            loc, msg = msg.split(": ", 1)
        if err.get("input") is None and loc in REQUIRED_MESSAGES:
            msg = REQUIRED_MESSAGES[loc]
        elif loc == "primary_traveler.email":
            msg = REQUIRED_MESSAGES[loc]
        out.setdefault(loc or "__root__", msg)
    return out


class BookingFormAggregate:
    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = default_form()
        if initial:
            self.patch(initial)

    # ---------- write ----------

    def patch(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(partial, Mapping):
            raise PatchTypeError("", "an object")
        draft = copy.deepcopy(self._data)
        _merge(draft, partial, FORM_SCHEMA)
        self._data = draft
        log.debug("[form] patched %s", ",".join(sorted(partial.keys())))
        return self.snapshot()

    def reset(self) -> None:
        self._data = default_form()

    # ---------- read ----------

    def get(self, path: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in path.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return default
        return node

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    @property
    def trip_type(self) -> str:
        return self._data.get("trip_type") or "round-trip"

    @property
    def budget(self) -> Optional[float]:
        return self._data.get("budget")

    def stay_nights(self) -> int:
        """Nights from the hotel dates, else from the trip dates; at least 1."""
        start = self.get("hotel.check_in_date") or self._data.get("departure_date")
        end = self.get("hotel.check_out_date") or self._data.get("return_date")
        if isinstance(start, date) and isinstance(end, date) and end > start:
            return (end - start).days
        return 1

    # ---------- validation ----------

    def _validate(self, model: Type[BaseModel]) -> ValidationOutcome:
        data = _blank_to_none(self._data)
        try:
            return ValidationOutcome(record=model.model_validate(data))
        except PydanticValidationError as e:
            return ValidationOutcome(errors=_error_map(e))

    def validate_client_info(self) -> ValidationOutcome:
        return self._validate(ClientInfo)

    def to_validated(self) -> ValidationOutcome:
        return self._validate(BookingRecord)

    def to_json(self) -> Dict[str, Any]:
        """Snapshot with dates rendered as ISO strings."""
        def _plain(v: Any) -> Any:
            if isinstance(v, dict):
                return {k: _plain(x) for k, x in v.items()}
            if isinstance(v, list):
                return [_plain(x) for x in v]
            if isinstance(v, date):
                return v.isoformat()
            return v
        return _plain(self._data)
