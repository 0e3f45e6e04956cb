# backend/booking_workflow/providers/dummy.py
"""
Offline booking API.

Flights and hotels are generated *deterministically* from a hash of the
request (no random), so the same criteria always give the same options and
prices. Lets the workflow run end to end without external keys.
"""
from __future__ import annotations

import asyncio
import hashlib
from datetime import date, datetime, timedelta
from typing import Any, Dict, List

from ..core.config import settings
from .base import RawResponse


def _hash_int(*parts: str) -> int:
    base = "|".join(parts).encode("utf-8")
    h = hashlib.sha1(base).hexdigest()
    return int(h[:16], 16)


def _lcg(n: int) -> int:
    # deterministic 64-bit LCG
    return (1103515245 * n + 12345) & 0x7FFFFFFFFFFFFFFF


def _lcg_float01(n: int) -> float:
    return (_lcg(n) % 10_000_000) / 10_000_000.0


def _cabin_multiplier(cabin: str) -> float:
    cabin = (cabin or "economy").lower()
    if cabin == "premium-economy":
        return 1.25
    if cabin == "business":
        return 1.8
    if cabin == "first":
        return 2.4
    return 1.0


def _base_price(seed: int) -> float:
    # route/date base price (~80..380)
    return 80.0 + 300.0 * _lcg_float01(seed)


def _hour(seed: int, offset: int) -> int:
    # departure hour (6..21)
    return 6 + int(_lcg_float01(seed + 1000 + offset) * 16)


def _minute(seed: int, offset: int) -> int:
    return int(_lcg_float01(seed + 2000 + offset) * 12) * 5


def _duration_min(seed: int, offset: int) -> int:
    # 50..410 min
    return 50 + int(_lcg_float01(seed + 3000 + offset) * 360)


CARRIERS = ["AA", "DL", "UA", "B6", "AS", "AF", "BA", "LH"]
HUBS = ["ORD", "DEN", "ATL", "DFW"]
HOTEL_BRANDS = ["Grand", "Central", "Harbor", "Park", "Plaza", "Riverside"]
AMENITIES = ["WiFi", "Pool", "Gym", "Parking", "Free Breakfast", "Restaurant", "Spa"]
ROOMS = [
    ("standard", "Standard Room", 2, "1 queen"),
    ("deluxe", "Deluxe King", 2, "1 king"),
    ("family", "Family Suite", 4, "2 queens"),
]


def _iso(d: date, minutes_from_midnight: int) -> str:
    dt = datetime(d.year, d.month, d.day) + timedelta(minutes=minutes_from_midnight)
    return dt.isoformat()


def _leg(origin: str, destination: str, day: date, cabin: str, passengers: int, tag: str) -> List[Dict[str, Any]]:
    seed = _hash_int(origin.upper(), destination.upper(), day.isoformat(), cabin, str(passengers), tag)
    n_flights = 4 + int(_lcg_float01(seed + 7) * 5)
    out: List[Dict[str, Any]] = []

    for i in range(n_flights):
        s = seed + i * 97
        carrier = CARRIERS[int(_lcg_float01(s + 500) * len(CARRIERS))]
        number = f"{carrier}{100 + int(_lcg_float01(s + 600) * 899)}"
        dep = _hour(s, i) * 60 + _minute(s, i)
        total = _duration_min(s, i)
        one_stop = _lcg_float01(s + 11) >= 0.6

        if one_stop:
            hub = HUBS[int(_lcg_float01(s + 700) * len(HUBS))]
            first = total // 2
            layover = 45
            segments = [
                {
                    "departure": {"airport": origin.upper(), "time": _iso(day, dep)},
                    "arrival": {"airport": hub, "time": _iso(day, dep + first)},
                    "carrier": carrier,
                    "flightNumber": number,
                    "duration": first,
                },
                {
                    "departure": {"airport": hub, "time": _iso(day, dep + first + layover)},
                    "arrival": {"airport": destination.upper(), "time": _iso(day, dep + total + layover)},
                    "carrier": carrier,
                    "flightNumber": f"{carrier}{200 + int(_lcg_float01(s + 800) * 799)}",
                    "duration": total - first,
                },
            ]
            total += layover
        else:
            segments = [
                {
                    "departure": {"airport": origin.upper(), "time": _iso(day, dep)},
                    "arrival": {"airport": destination.upper(), "time": _iso(day, dep + total)},
                    "carrier": carrier,
                    "flightNumber": number,
                    "duration": total,
                }
            ]

        price = _base_price(s) * _cabin_multiplier(cabin) * (0.95 + 0.1 * _lcg_float01(s + 333))
        if one_stop:
            price *= 0.85

        out.append({
            "id": f"{tag}-{number}-{day.isoformat()}",
            "airline": carrier,
            "flightNumber": number,
            "segments": segments,
            "duration": f"PT{total // 60}H{total % 60}M",
            "stops": len(segments) - 1,
            "price": {"amount": round(price, 2), "currency": settings.DEFAULT_CURRENCY},
            "cabin": cabin,
            "availability": 1 + int(_lcg_float01(s + 900) * 9),
        })
    return out


class DummyBookingProvider:
    name = "dummy"

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self._bookings = 0

    async def _pause(self) -> None:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

    async def search_flights(self, payload: Dict[str, Any]) -> RawResponse:
        await self._pause()
        origin = str(payload["origin"])
        destination = str(payload["destination"])
        cabin = str(payload.get("cabin") or "economy")
        passengers = int(payload.get("passengers") or 1)
        dep = date.fromisoformat(payload["departureDate"])

        flights = _leg(origin, destination, dep, cabin, passengers, "out")
        ret = payload.get("returnDate")
        if ret:
            flights += _leg(destination, origin, date.fromisoformat(ret), cabin, passengers, "ret")

        return {
            "flights": flights,
            "metadata": {"currency": settings.DEFAULT_CURRENCY, "totalResults": len(flights), "source": self.name},
        }

    async def search_hotels(self, payload: Dict[str, Any]) -> RawResponse:
        await self._pause()
        destination = str(payload["destination"])
        seed = _hash_int(destination.lower(), payload["checkIn"], payload["checkOut"], str(payload.get("guests")))
        n_hotels = 3 + int(_lcg_float01(seed + 3) * 4)
        city = destination.split(",")[0].strip() or destination

        hotels: List[Dict[str, Any]] = []
        for i in range(n_hotels):
            s = seed + i * 131
            brand = HOTEL_BRANDS[int(_lcg_float01(s + 10) * len(HOTEL_BRANDS))]
            stars = 2 + int(_lcg_float01(s + 20) * 4)
            base = 60.0 + 40.0 * stars * (0.8 + 0.4 * _lcg_float01(s + 30))
            amenities = [a for j, a in enumerate(AMENITIES) if _lcg_float01(s + 40 + j) > 0.45]
            rooms = []
            for j, (rid, rname, occ, beds) in enumerate(ROOMS):
                refundable = _lcg_float01(s + 60 + j) > 0.4
                rooms.append({
                    "id": f"h{i}-{rid}",
                    "name": rname,
                    "occupancy": occ,
                    "bedConfiguration": beds,
                    # bare numbers on purpose: currency comes from metadata
                    "price": round(base * (1 + 0.35 * j), 2),
                    "cancellation": "Free cancellation until 48h before check-in" if refundable else "Non-refundable",
                    "refundable": refundable,
                })
            hotels.append({
                "id": f"hotel-{s % 100000}",
                "name": f"{brand} {city} Hotel",
                "address": f"{10 + i * 7} Main Street, {city}",
                "starRating": stars,
                "roomTypes": rooms,
                "amenities": amenities,
                "images": [],
            })

        hotels = _apply_hotel_filters(hotels, payload.get("filters") or {})
        return {
            "hotels": hotels,
            "pagination": {"page": 1, "totalPages": 1, "total": len(hotels)},
            "metadata": {"currency": settings.DEFAULT_CURRENCY, "totalResults": len(hotels), "source": self.name},
        }

    async def create_booking(self, payload: Dict[str, Any]) -> RawResponse:
        await self._pause()
        self._bookings += 1
        digest = _hash_int(str(sorted(payload.items())), str(self._bookings))
        return {"bookingId": f"BK-{digest % 10**8:08d}"}

    async def geocode(self, query: str) -> RawResponse:
        await self._pause()
        seed = _hash_int(query.lower())
        return {
            "results": [{
                "name": query.strip(),
                "lat": round(-60 + 120 * _lcg_float01(seed), 4),
                "lng": round(-180 + 360 * _lcg_float01(seed + 1), 4),
                "country": None,
            }]
        }

    async def aclose(self) -> None:
        return None


def _apply_hotel_filters(hotels: List[Dict[str, Any]], filters: Dict[str, Any]) -> List[Dict[str, Any]]:
    res = hotels
    min_stars = filters.get("starRating")
    if min_stars:
        res = [h for h in res if int(h.get("starRating") or 0) >= int(min_stars)]
    amenities = filters.get("amenities") or []
    if amenities:
        res = [h for h in res if all(a in h.get("amenities", []) for a in amenities)]
    price_range = filters.get("priceRange") or {}
    lo, hi = price_range.get("min"), price_range.get("max")
    if lo is not None or hi is not None:
        def _in_range(h: Dict[str, Any]) -> bool:
            cheapest = min(r["price"] for r in h["roomTypes"])
            return (lo is None or cheapest >= lo) and (hi is None or cheapest <= hi)
        res = [h for h in res if _in_range(h)]
    if filters.get("cancellationPolicy") == "free":
        res = [h for h in res if any(r.get("refundable") for r in h["roomTypes"])]
    return res
