# backend/booking_workflow/services/cancellation.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from ..core.errors import SessionClosedError
from .results import SUPERSEDED, Superseded

log = logging.getLogger(__name__)

P = TypeVar("P")
R = TypeVar("R")

Runner = Callable[[P], Awaitable[R]]


class SearchCancellationController(Generic[P, R]):
    """
    One authoritative in-flight request per search slot ("flights", "hotels", ...).

    Each issue() supersedes the previous request: its task is cancelled (which
    aborts the underlying httpx request) and, if it resolves anyway, its result
    is discarded. Only the most recently issued request can return a result;
    every other caller receives SUPERSEDED.

    The optional debounce delays the actual call, so a burst of issue() calls
    within the quiet period ends up as a single network request carrying the
    last parameters.
    """

    def __init__(self, slot: str, runner: Runner, debounce_seconds: float = 0.0) -> None:
        self.slot = slot
        self._runner = runner
        self.debounce_seconds = max(0.0, debounce_seconds)
        self._generation = 0
        self._current: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._current is not None and not self._current.done()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    async def issue(self, params: P) -> Union[R, Superseded]:
        if self._closed:
            raise SessionClosedError(f"[{self.slot}] controller is closed")

        self._supersede("new request")
        self._generation += 1
        generation = self._generation
        task = asyncio.create_task(self._run(params), name=f"search:{self.slot}:{generation}")
        self._current = task

        try:
            result = await task
        except asyncio.CancelledError:
            if self._is_stale(generation):
                return SUPERSEDED
            # the caller itself was cancelled
            raise
        finally:
            if self._current is task:
                self._current = None

        if self._is_stale(generation):
            # abort had no effect but the request was superseded meanwhile
            log.info("[%s] discarding late result of request #%s", self.slot, generation)
            return SUPERSEDED
        return result

    def cancel(self) -> bool:
        """Supersede the outstanding request without issuing a new one."""
        if not self.pending:
            return False
        self._supersede("cancelled")
        self._generation += 1
        return True

    def close(self) -> None:
        self.cancel()
        self._generation += 1
        self._closed = True

    def is_current(self, generation: int) -> bool:
        return not self._is_stale(generation)

    # ---------- internals ----------

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    def _supersede(self, reason: str) -> None:
        task = self._current
        if task is not None and not task.done():
            log.info("[%s] superseding request (%s)", self.slot, reason)
            task.cancel()
        self._current = None

    async def _run(self, params: P) -> Any:
        if self.debounce_seconds:
            await asyncio.sleep(self.debounce_seconds)
        return await self._runner(params)
