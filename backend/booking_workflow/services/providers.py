# backend/booking_workflow/services/providers.py
from __future__ import annotations

import logging
from typing import Optional

from ..core.config import settings
from ..providers.base import BookingBoundary

logger = logging.getLogger(__name__)


# --------- Provider loading ---------

def _load_provider(name: str) -> Optional[BookingBoundary]:
    n = name.strip().lower()
    if n == "http":
        if not settings.BOOKING_API_BASE_URL:
            logger.warning("providers: 'http' requested but BOOKING_API_BASE_URL is empty -> skip")
            return None
        from ..providers.http import HttpBookingProvider
        return HttpBookingProvider()
    if n == "dummy":
        from ..providers.dummy import DummyBookingProvider
        return DummyBookingProvider()

    logger.warning("providers: unknown name '%s' -> ignored", name)
    return None


# Process-wide instance (built on first use)
_PROVIDER: Optional[BookingBoundary] = None


def get_provider() -> BookingBoundary:
    """
    Reads PROVIDERS (e.g. 'http' or 'dummy') and returns the first provider that
    loads. Always returns something: falls back to dummy.
    """
    global _PROVIDER
    if _PROVIDER is not None:
        return _PROVIDER

    names = [s.strip() for s in settings.PROVIDERS.split(",") if s.strip()]
    for n in names:
        p = _load_provider(n)
        if p is not None:
            _PROVIDER = p
            break

    if _PROVIDER is None:
        from ..providers.dummy import DummyBookingProvider
        _PROVIDER = DummyBookingProvider()
        logger.info("providers: falling back to dummy (no valid provider configured)")

    logger.info("providers: using %s", getattr(_PROVIDER, "name", "unknown"))
    return _PROVIDER


def set_provider(provider: Optional[BookingBoundary]) -> None:
    """Override the process-wide provider (tests, app startup)."""
    global _PROVIDER
    _PROVIDER = provider


async def close_provider() -> None:
    global _PROVIDER
    if _PROVIDER is not None:
        await _PROVIDER.aclose()
        _PROVIDER = None
