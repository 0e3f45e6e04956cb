# backend/booking_workflow/providers/base.py
from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable

RawResponse = Dict[str, Any]


@runtime_checkable
class BookingBoundary(Protocol):
    """
    Minimal interface of the external booking API.

    Every method returns the *raw* decoded JSON body; normalization into
    FlightOption / HotelOption happens in services.normalize. Transport and
    HTTP failures are raised (httpx exceptions or ProviderHTTPError) and
    translated into typed results by the services.
    """
    name: str

    async def search_flights(self, payload: Dict[str, Any]) -> RawResponse:
        ...

    async def search_hotels(self, payload: Dict[str, Any]) -> RawResponse:
        ...

    async def create_booking(self, payload: Dict[str, Any]) -> RawResponse:
        ...

    async def geocode(self, query: str) -> RawResponse:
        ...

    async def aclose(self) -> None:
        ...


class ProviderHTTPError(Exception):
    """Non-2xx answer from the booking API."""

    def __init__(self, status_code: int, body: str = "", operation: str = "") -> None:
        snippet = body.strip()[:240]
        super().__init__(f"{operation or 'request'} -> HTTP {status_code}" + (f" {snippet}" if snippet else ""))
        self.status_code = status_code
        self.body = body
        self.operation = operation
