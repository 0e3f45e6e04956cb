# backend/booking_workflow/services/geocoding.py
"""
City / hotel-name lookup used by the trip-creation entry point.

Not part of the booking steps themselves, but it shares the slot discipline:
the 800 ms debounce means only the last query typed in a burst reaches the
geocoding boundary.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Union

from ..core.config import settings
from ..core.errors import SearchError
from ..models.options import Place, SearchMetadata
from ..providers.base import BookingBoundary
from .cancellation import SearchCancellationController
from .normalize import normalize_place
from .providers import get_provider
from .results import SearchFailure, SearchOutcome, SearchSuccess, Superseded
from .search import call_boundary

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3


class GeocodingService:
    slot = "geocode"

    def __init__(self, provider: Optional[BookingBoundary] = None, timeout: Optional[float] = None) -> None:
        self._provider = provider
        self.timeout = timeout if timeout is not None else settings.SEARCH_TIMEOUT_SECONDS

    @property
    def provider(self) -> BookingBoundary:
        return self._provider or get_provider()

    async def geocode(self, query: str) -> SearchOutcome:
        q = (query or "").strip()
        if len(q) < MIN_QUERY_LENGTH:
            return SearchSuccess((), SearchMetadata(source="short-query"))

        raw = await call_boundary(self.slot, lambda: self.provider.geocode(q), self.timeout)
        if isinstance(raw, SearchError):
            return SearchFailure(raw)

        items = raw.get("results") or []
        places: List[Place] = []
        for r in items if isinstance(items, list) else []:
            p = normalize_place(r) if isinstance(r, dict) else None
            if p is not None:
                places.append(p)
        if not places:
            return SearchFailure(SearchError(SearchError.EMPTY, f"no place matches '{q}'", slot=self.slot))
        return SearchSuccess(
            tuple(places),
            SearchMetadata(total_results=len(items), returned_results=len(places),
                           dropped_results=len(items) - len(places), source=getattr(self.provider, "name", "?")),
        )


class CityLookup:
    """Debounced, last-query-wins wrapper around GeocodingService."""

    def __init__(self, service: Optional[GeocodingService] = None, debounce_seconds: Optional[float] = None) -> None:
        self.service = service or GeocodingService()
        self.controller = SearchCancellationController(
            self.service.slot,
            self.service.geocode,
            settings.lookup_debounce_seconds if debounce_seconds is None else debounce_seconds,
        )

    async def lookup(self, query: str) -> Union[SearchOutcome, Superseded]:
        return await self.controller.issue(query)

    def close(self) -> None:
        self.controller.close()
