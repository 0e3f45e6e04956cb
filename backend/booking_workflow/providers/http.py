# backend/booking_workflow/providers/http.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..core.config import settings
from .base import ProviderHTTPError, RawResponse

logger = logging.getLogger(__name__)


class HttpBookingProvider:
    """
    Client for the booking REST API (search + booking creation + geocoding).

    One AsyncClient is shared by all sessions of the process; cancelling the
    awaiting task closes the in-flight request at the transport level.
    """
    name = "http"

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        tok = token if token is not None else settings.BOOKING_API_TOKEN
        if tok:
            headers["Authorization"] = f"Bearer {tok}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.BOOKING_API_BASE_URL,
            headers=headers,
            timeout=timeout if timeout is not None else settings.SEARCH_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def search_flights(self, payload: Dict[str, Any]) -> RawResponse:
        return await self._post("/api/flights/search", payload, "flight search")

    async def search_hotels(self, payload: Dict[str, Any]) -> RawResponse:
        return await self._post("/api/hotels/search", payload, "hotel search")

    async def create_booking(self, payload: Dict[str, Any]) -> RawResponse:
        return await self._post(
            "/api/bookings",
            payload,
            "booking creation",
            timeout=settings.SUBMIT_TIMEOUT_SECONDS,
        )

    async def geocode(self, query: str) -> RawResponse:
        t0 = time.time()
        resp = await self._client.get("/api/geocode", params={"q": query})
        return self._decode(resp, "geocode", t0)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---------- helpers ----------

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        operation: str,
        timeout: Optional[float] = None,
    ) -> RawResponse:
        t0 = time.time()
        kwargs: Dict[str, Any] = {"json": payload}
        if timeout is not None:
            kwargs["timeout"] = timeout
        resp = await self._client.post(path, **kwargs)
        return self._decode(resp, operation, t0)

    def _decode(self, resp: httpx.Response, operation: str, t0: float) -> RawResponse:
        elapsed = int((time.time() - t0) * 1000)
        if resp.status_code >= 400:
            logger.warning("%s -> HTTP %s (%d ms) %s", operation, resp.status_code, elapsed, resp.text[:240])
            raise ProviderHTTPError(resp.status_code, resp.text, operation)
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"{operation}: expected a JSON object, got {type(data).__name__}")
        logger.info("%s OK (%d ms)", operation, elapsed)
        return data
