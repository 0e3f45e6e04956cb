# backend/booking_workflow/services/search.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..core.errors import SearchError
from ..models.options import FlightOption, HotelOption, SearchMetadata
from ..models.search import FlightSearchParameters, HotelSearchParameters
from ..providers.base import BookingBoundary, ProviderHTTPError, RawResponse
from .cache import InMemoryCache, cache as default_cache, search_key
from .normalize import normalize_flight, normalize_hotel
from .providers import get_provider
from .results import SearchFailure, SearchOutcome, SearchSuccess

logger = logging.getLogger(__name__)


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{loc}: {msg}" if loc else msg


async def call_boundary(
    slot: str,
    call: Callable[[], Awaitable[RawResponse]],
    timeout: float,
) -> Union[RawResponse, SearchError]:
    """
    Runs one boundary call under a timeout and turns every failure into a
    SearchError value. CancelledError is *not* caught: a superseded request
    must unwind, not be reported.
    """
    try:
        return await asyncio.wait_for(call(), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        logger.warning("[%s] timed out after %.1fs", slot, timeout)
        return SearchError(SearchError.TIMEOUT, f"{slot} search timed out", slot=slot)
    except httpx.TransportError as e:
        logger.warning("[%s] network error: %s", slot, e)
        return SearchError(SearchError.NETWORK, f"{slot} search unavailable: {e}", slot=slot)
    except ProviderHTTPError as e:
        kind = SearchError.VALIDATION if e.status_code in (400, 422) else SearchError.HTTP
        return SearchError(kind, str(e), slot=slot, status_code=e.status_code)
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("[%s] malformed response: %s", slot, e)
        return SearchError(SearchError.MALFORMED, f"{slot} search returned an unreadable response", slot=slot)


class _SearchService:
    slot = "search"
    params_model: Any = None

    def __init__(
        self,
        provider: Optional[BookingBoundary] = None,
        cache: Optional[InMemoryCache] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._provider = provider
        self.cache = cache if cache is not None else default_cache
        self.timeout = timeout if timeout is not None else settings.SEARCH_TIMEOUT_SECONDS

    @property
    def provider(self) -> BookingBoundary:
        return self._provider or get_provider()

    def parse(self, params: Union[Mapping[str, Any], Any]) -> Union[Any, SearchFailure]:
        if isinstance(params, self.params_model):
            return params
        try:
            return self.params_model.model_validate(params)
        except PydanticValidationError as e:
            return SearchFailure(SearchError(SearchError.VALIDATION, _first_error(e), slot=self.slot))

    async def search(self, params: Union[Mapping[str, Any], Any]) -> SearchOutcome:
        parsed = self.parse(params)
        if isinstance(parsed, SearchFailure):
            return parsed

        payload = parsed.to_payload()
        key = search_key(self.slot, payload)
        hit = self.cache.get(key)
        if hit is not None:
            return SearchSuccess(hit.options, hit.metadata.model_copy(update={"cached": True}))

        t0 = time.time()
        raw = await call_boundary(self.slot, lambda: self._fetch(payload), self.timeout)
        if isinstance(raw, SearchError):
            return SearchFailure(raw)

        try:
            outcome = self._build(raw)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("[%s] malformed response: %s", self.slot, e)
            return SearchFailure(SearchError(SearchError.MALFORMED, f"{self.slot} search returned an unreadable response", slot=self.slot))

        elapsed = int((time.time() - t0) * 1000)
        if isinstance(outcome, SearchSuccess):
            logger.info(
                "[%s] %s -> %d options (dropped=%d) in %d ms",
                self.slot,
                getattr(self.provider, "name", "?"),
                len(outcome.options),
                outcome.metadata.dropped_results,
                elapsed,
            )
            self.cache.set(key, outcome)
        return outcome

    async def _fetch(self, payload: Dict[str, Any]) -> RawResponse:
        raise NotImplementedError

    def _build(self, raw: RawResponse) -> SearchOutcome:
        raise NotImplementedError

    def _empty(self) -> SearchFailure:
        return SearchFailure(SearchError(SearchError.EMPTY, f"no {self.slot} match these criteria", slot=self.slot))


def _metadata(raw: RawResponse, kept: int, total: int, source: str) -> SearchMetadata:
    meta = raw.get("metadata") or {}
    pagination = raw.get("pagination") or {}
    return SearchMetadata(
        currency=(meta.get("currency") or None),
        total_results=int(meta.get("totalResults") or total),
        returned_results=kept,
        dropped_results=total - kept,
        source=str(meta.get("source") or source),
        page=pagination.get("page"),
        total_pages=pagination.get("totalPages"),
    )


class FlightSearchService(_SearchService):
    """FlightSearchParameters -> sorted FlightOption list (price asc)."""
    slot = "flights"
    params_model = FlightSearchParameters

    async def _fetch(self, payload: Dict[str, Any]) -> RawResponse:
        return await self.provider.search_flights(payload)

    def _build(self, raw: RawResponse) -> SearchOutcome:
        currency = (raw.get("metadata") or {}).get("currency") or settings.DEFAULT_CURRENCY
        items = raw.get("flights") or []
        if not isinstance(items, list):
            raise ValueError("'flights' is not a list")
        options: List[FlightOption] = []
        for r in items:
            f = normalize_flight(r, currency) if isinstance(r, dict) else None
            if f is not None:
                options.append(f)
        if not options:
            return self._empty()
        options.sort(key=lambda o: (o.price.amount, o.duration_minutes))
        return SearchSuccess(tuple(options), _metadata(raw, len(options), len(items), getattr(self.provider, "name", "?")))


class HotelSearchService(_SearchService):
    """HotelSearchParameters -> HotelOption list (cheapest room first)."""
    slot = "hotels"
    params_model = HotelSearchParameters

    async def _fetch(self, payload: Dict[str, Any]) -> RawResponse:
        return await self.provider.search_hotels(payload)

    def _build(self, raw: RawResponse) -> SearchOutcome:
        currency = (raw.get("metadata") or {}).get("currency") or settings.DEFAULT_CURRENCY
        items = raw.get("hotels") or []
        if not isinstance(items, list):
            raise ValueError("'hotels' is not a list")
        options: List[HotelOption] = []
        for r in items:
            h = normalize_hotel(r, currency) if isinstance(r, dict) else None
            if h is not None:
                options.append(h)
        if not options:
            return self._empty()
        options.sort(key=lambda h: h.cheapest_room.price.amount if h.cheapest_room else 0)
        return SearchSuccess(tuple(options), _metadata(raw, len(options), len(items), getattr(self.provider, "name", "?")))
