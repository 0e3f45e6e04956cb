import asyncio

import pytest

from booking_workflow.core.errors import SessionClosedError
from booking_workflow.services.cache import InMemoryCache
from booking_workflow.services.cancellation import SearchCancellationController
from booking_workflow.services.results import SUPERSEDED
from booking_workflow.services.search import HotelSearchService


async def _stubborn(params):
    """A backend that ignores aborts: the response still arrives."""
    try:
        await asyncio.sleep(params["delay"])
    except asyncio.CancelledError:
        pass
    return params["name"]


@pytest.mark.parametrize("second_delay", [0.0, 0.05])
async def test_latest_request_wins_regardless_of_arrival_order(second_delay):
    ctl = SearchCancellationController("flights", _stubborn)

    first = asyncio.create_task(ctl.issue({"name": "p1", "delay": 0.2}))
    await asyncio.sleep(0.01)
    second = await ctl.issue({"name": "p2", "delay": second_delay})

    assert second == "p2"
    assert await first is SUPERSEDED
    assert not ctl.pending


async def test_superseded_request_is_cancelled():
    seen = []

    async def runner(params):
        try:
            await asyncio.sleep(0.2 if params == "old" else 0)
        except asyncio.CancelledError:
            seen.append(params)
            raise
        return params

    ctl = SearchCancellationController("hotels", runner)
    first = asyncio.create_task(ctl.issue("old"))
    await asyncio.sleep(0.01)

    assert await ctl.issue("new") == "new"
    assert await first is SUPERSEDED
    assert seen == ["old"]


async def test_cancel_without_new_request():
    ctl = SearchCancellationController("flights", _stubborn)
    assert ctl.cancel() is False

    task = asyncio.create_task(ctl.issue({"name": "p1", "delay": 0.2}))
    await asyncio.sleep(0.01)
    assert ctl.pending
    assert ctl.cancel() is True
    assert await task is SUPERSEDED
    assert not ctl.pending


async def test_closed_controller_rejects_new_requests():
    ctl = SearchCancellationController("flights", _stubborn)
    ctl.close()
    assert ctl.closed
    with pytest.raises(SessionClosedError):
        await ctl.issue({"name": "p1", "delay": 0})


async def test_caller_cancellation_propagates():
    ctl = SearchCancellationController("flights", _stubborn)
    task = asyncio.create_task(ctl.issue({"name": "p1", "delay": 0.2}))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_generation_increases_per_issue():
    ctl = SearchCancellationController("flights", lambda p: asyncio.sleep(0, result=p))
    await ctl.issue(1)
    await ctl.issue(2)
    assert ctl.generation == 2
    assert ctl.is_current(2)
    assert not ctl.is_current(1)


async def test_debounced_burst_sends_one_request_with_final_parameters(fake):
    service = HotelSearchService(fake, cache=InMemoryCache(default_ttl=0))
    ctl = SearchCancellationController("hotels", service.search, debounce_seconds=0.05)
    base = {"check_in": "2025-07-01", "check_out": "2025-07-03"}

    first = asyncio.create_task(ctl.issue({**base, "destination": "Paris"}))
    await asyncio.sleep(0.01)
    outcome = await ctl.issue({**base, "destination": "Paris, France"})

    assert await first is SUPERSEDED
    assert outcome.ok
    calls = fake.calls_for("hotels")
    assert len(calls) == 1
    assert calls[0]["destination"] == "Paris, France"
    assert calls[0]["checkIn"] == "2025-07-01"
    assert calls[0]["checkOut"] == "2025-07-03"
