# backend/booking_workflow/services/normalize.py
"""
Raw booking-API payloads -> immutable FlightOption / HotelOption / Place.

The API is not consistent about prices (sometimes a bare number, sometimes a
numeric string, sometimes {amount, currency}); everything is turned into a
Money here so downstream code never branches on shape. Options whose price
or mandatory fields cannot be recovered are dropped (None).
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..models.options import FlightOption, FlightSegment, HotelOption, Money, Place, RoomType

log = logging.getLogger(__name__)


# ---------- Prices ----------

def sanitize_amount(p: Any) -> Optional[Decimal]:
    if isinstance(p, bool):
        return None
    try:
        d = Decimal(str(p).strip())
    except (InvalidOperation, ValueError, TypeError):
        return None
    if d.is_nan() or d.is_infinite() or d <= 0:
        return None
    return d.quantize(Decimal("0.01"))


def normalize_price(raw: Any, fallback_currency: Optional[str]) -> Optional[Money]:
    """Number | numeric string | {amount, currency} -> Money (None if unusable)."""
    currency = fallback_currency
    amount_raw = raw
    if isinstance(raw, dict):
        amount_raw = raw.get("amount", raw.get("total"))
        currency = raw.get("currency") or fallback_currency
    amount = sanitize_amount(amount_raw)
    if amount is None or not currency:
        return None
    try:
        return Money(amount=amount, currency=str(currency))
    except PydanticValidationError:
        return None


# ---------- Durations ----------

def parse_iso8601_duration_to_minutes(dur: Any) -> Optional[int]:
    """Parse 'PTxHyM' -> minutes. Plain ints / digit strings pass through."""
    if isinstance(dur, int) and not isinstance(dur, bool):
        return dur if dur >= 0 else None
    if not isinstance(dur, str):
        return None
    dur = dur.strip()
    if dur.isdigit():
        return int(dur)
    if not dur.startswith("PT"):
        return None
    total = 0
    num = ""
    seen = False
    for ch in dur[2:]:
        if ch.isdigit():
            num += ch
            continue
        if ch == "H" and num:
            total += int(num) * 60
            num = ""
            seen = True
        elif ch == "M" and num:
            total += int(num)
            num = ""
            seen = True
        else:
            num = ""
    return total if seen else None


# ---------- Flights ----------

def _endpoint(raw: Dict[str, Any], key: str) -> Tuple[Optional[str], Optional[str]]:
    blk = raw.get(key) or {}
    if isinstance(blk, dict):
        return blk.get("airport"), blk.get("time")
    return None, None


def _minutes_between(start: Optional[str], end: Optional[str]) -> Optional[int]:
    try:
        delta = datetime.fromisoformat(str(end).replace("Z", "+00:00")) - datetime.fromisoformat(
            str(start).replace("Z", "+00:00")
        )
    except (TypeError, ValueError):
        return None
    minutes = int(delta.total_seconds() // 60)
    return minutes if minutes >= 0 else None


def _segment(raw: Dict[str, Any], default_carrier: Optional[str]) -> Optional[FlightSegment]:
    dep_airport, dep_time = _endpoint(raw, "departure")
    arr_airport, arr_time = _endpoint(raw, "arrival")
    duration = parse_iso8601_duration_to_minutes(raw.get("duration"))
    if duration is None:
        duration = _minutes_between(dep_time, arr_time)
    carrier = raw.get("carrier") or raw.get("airline") or default_carrier
    if not (dep_airport and dep_time and arr_airport and arr_time and carrier) or duration is None:
        return None
    return FlightSegment(
        departure_airport=str(dep_airport),
        departure_time=str(dep_time),
        arrival_airport=str(arr_airport),
        arrival_time=str(arr_time),
        carrier=str(carrier),
        flight_number=raw.get("flightNumber"),
        duration_minutes=duration,
    )


def normalize_flight(raw: Dict[str, Any], currency: Optional[str]) -> Optional[FlightOption]:
    """
    Accepts both shapes the API returns:

    - with "segments": [{departure{airport,time}, arrival{...}, carrier, duration}, ...]
    - flat (single segment): departure{airport,time}, arrival{...}, duration
    """
    price = normalize_price(raw.get("price"), currency)
    if price is None:
        return None

    carrier = raw.get("airline") or raw.get("carrier")
    raw_segments = raw.get("segments")
    if not raw_segments:
        raw_segments = [raw]
    segments: List[FlightSegment] = []
    for rs in raw_segments:
        seg = _segment(rs, carrier) if isinstance(rs, dict) else None
        if seg is None:
            return None
        segments.append(seg)

    duration = parse_iso8601_duration_to_minutes(raw.get("duration"))
    if duration is None:
        duration = sum(s.duration_minutes for s in segments)

    stops = raw.get("stops")
    if not isinstance(stops, int) or stops < 0:
        stops = len(segments) - 1

    fid = raw.get("id") or f"{carrier}-{raw.get('flightNumber')}-{segments[0].departure_time}"
    try:
        return FlightOption(
            id=str(fid),
            carrier=str(carrier or segments[0].carrier),
            flight_number=str(raw.get("flightNumber") or segments[0].flight_number or ""),
            segments=tuple(segments),
            duration_minutes=duration,
            stops=stops,
            price=price,
            cabin=str(raw.get("cabin") or "economy"),
            seats_available=raw.get("availability", raw.get("seatsAvailable")),
        )
    except PydanticValidationError as e:
        log.debug("normalize: dropping flight %s: %s", fid, e)
        return None


# ---------- Hotels ----------

def normalize_room(raw: Dict[str, Any], currency: Optional[str]) -> Optional[RoomType]:
    price = normalize_price(raw.get("price"), currency)
    if price is None or not raw.get("id"):
        return None
    try:
        return RoomType(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            occupancy=int(raw.get("occupancy") or 1),
            bed_configuration=raw.get("bedConfiguration"),
            price=price,
            cancellation_policy=raw.get("cancellation") or raw.get("cancellationPolicy"),
            refundable=bool(raw.get("refundable", False)),
        )
    except (PydanticValidationError, TypeError, ValueError):
        return None


def normalize_hotel(raw: Dict[str, Any], currency: Optional[str]) -> Optional[HotelOption]:
    if not raw.get("id") or not raw.get("name"):
        return None

    rooms = [r for r in (normalize_room(x, currency) for x in raw.get("roomTypes") or [] if isinstance(x, dict)) if r]
    if not rooms and raw.get("price") is not None:
        # hotels listed with a single nightly price become one standard room
        price = normalize_price(raw.get("price"), currency)
        if price is not None:
            rooms = [RoomType(id=f"{raw['id']}-standard", name="Standard Room", price=price,
                              cancellation_policy=raw.get("cancellation"))]
    if not rooms:
        return None

    rating = raw.get("starRating", raw.get("rating"))
    if isinstance(rating, dict):
        rating = rating.get("score")
    try:
        return HotelOption(
            id=str(raw["id"]),
            name=str(raw["name"]),
            address=str(raw.get("address") or ""),
            star_rating=float(rating) if rating is not None else None,
            room_types=tuple(rooms),
            amenities=tuple(str(a) for a in raw.get("amenities") or []),
            images=tuple(str(i) for i in raw.get("images") or []),
        )
    except (PydanticValidationError, TypeError, ValueError) as e:
        log.debug("normalize: dropping hotel %s: %s", raw.get("id"), e)
        return None


# ---------- Places ----------

def normalize_place(raw: Dict[str, Any]) -> Optional[Place]:
    try:
        return Place(
            name=str(raw["name"]),
            lat=float(raw["lat"]),
            lng=float(raw.get("lng", raw.get("lon"))),
            country=raw.get("country"),
        )
    except (KeyError, TypeError, ValueError, PydanticValidationError):
        return None
