# backend/booking_workflow/services/booking.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Sequence

import httpx

from ..core.config import settings
from ..core.errors import SubmissionError
from ..models.booking import BookingRecord
from ..models.selection import Selection, TravelerFlights
from ..providers.base import BookingBoundary, ProviderHTTPError
from .pricing import PricingSummary
from .providers import get_provider
from .results import SubmissionFailure, SubmissionOutcome, SubmissionSuccess

logger = logging.getLogger(__name__)


def booking_payload(
    record: BookingRecord,
    selection: Selection,
    pricing: PricingSummary,
    travelers: Sequence[TravelerFlights] = (),
) -> Dict[str, Any]:
    payload = record.to_payload()
    payload["selection"] = selection.to_dict()
    payload["travelerBookings"] = [
        {
            "traveler": t.traveler,
            "departureFlight": t.outbound_flight.model_dump(mode="json") if t.outbound_flight else None,
            "returnFlight": t.return_flight.model_dump(mode="json") if t.return_flight else None,
        }
        for t in travelers
    ]
    payload["totalCost"] = {"amount": str(pricing.total.amount), "currency": pricing.total.currency}
    payload["nights"] = pricing.nights
    return payload


class BookingService:
    """Hands a validated booking to the booking-creation boundary."""

    def __init__(self, provider: Optional[BookingBoundary] = None, timeout: Optional[float] = None) -> None:
        self._provider = provider
        self.timeout = timeout if timeout is not None else settings.SUBMIT_TIMEOUT_SECONDS

    @property
    def provider(self) -> BookingBoundary:
        return self._provider or get_provider()

    async def create(
        self,
        record: BookingRecord,
        selection: Selection,
        pricing: PricingSummary,
        travelers: Sequence[TravelerFlights] = (),
    ) -> SubmissionOutcome:
        payload = booking_payload(record, selection, pricing, travelers)
        t0 = time.time()
        try:
            raw = await asyncio.wait_for(self.provider.create_booking(payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("[booking] timed out after %.1fs", self.timeout)
            return SubmissionFailure(SubmissionError("booking request timed out"))
        except httpx.TransportError as e:
            logger.warning("[booking] network error: %s", e)
            return SubmissionFailure(SubmissionError(f"booking service unavailable: {e}"))
        except ProviderHTTPError as e:
            logger.warning("[booking] rejected: %s", e)
            # 4xx means the payload itself was refused; resending it will not help
            retryable = not (400 <= e.status_code < 500)
            return SubmissionFailure(SubmissionError(str(e), status_code=e.status_code, retryable=retryable))

        booking_id = raw.get("bookingId") if isinstance(raw, dict) else None
        if not booking_id:
            logger.warning("[booking] response without bookingId: %r", raw)
            return SubmissionFailure(SubmissionError("booking service returned no booking id"))

        logger.info("[booking] created %s (%s %s) in %d ms", booking_id, pricing.total.amount,
                    pricing.total.currency, int((time.time() - t0) * 1000))
        return SubmissionSuccess(booking_id=str(booking_id), total=pricing.total)
