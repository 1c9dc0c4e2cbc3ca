"""Tests for dispatch.py - request tracking and the async dispatcher."""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ghtui.dispatch import Dispatcher, Request, RequestTracker, ResourceKind, Result
from ghtui.errors import ProviderError

LOG = ResourceKind.LOG


def result_for(kind: ResourceKind, target, generation: int, payload=None) -> Result:
    return Result(kind, target, generation, payload=payload)


class TestRequestTracker:
    """Tests for RequestTracker."""

    def test_begin_marks_pending(self) -> None:
        tracker = RequestTracker()
        assert tracker.begin(LOG, 1) == 1
        assert tracker.is_pending(LOG, 1)
        assert tracker.pending == frozenset({(LOG, 1)})

    def test_duplicate_begin_suppressed(self) -> None:
        tracker = RequestTracker()
        tracker.begin(LOG, 1)
        assert tracker.begin(LOG, 1) is None
        assert tracker.current(LOG, 1) == 1

    def test_keys_are_independent(self) -> None:
        tracker = RequestTracker()
        assert tracker.begin(LOG, 1) == 1
        assert tracker.begin(LOG, 2) == 1
        assert tracker.begin(ResourceKind.JOBS, 1) == 1

    def test_force_supersedes(self) -> None:
        tracker = RequestTracker()
        tracker.begin(LOG, 1)
        assert tracker.begin(LOG, 1, force=True) == 2

    def test_stale_result_discarded_without_clearing_pending(self) -> None:
        tracker = RequestTracker()
        tracker.begin(LOG, 1)
        tracker.begin(LOG, 1, force=True)

        assert tracker.settle(result_for(LOG, 1, 1)) is False
        assert tracker.is_pending(LOG, 1)

        assert tracker.settle(result_for(LOG, 1, 2)) is True
        assert not tracker.is_pending(LOG, 1)

    def test_generation_two_then_late_generation_one(self) -> None:
        tracker = RequestTracker()
        tracker.begin(LOG, 1)
        tracker.begin(LOG, 1, force=True)
        assert tracker.settle(result_for(LOG, 1, 2))
        assert not tracker.settle(result_for(LOG, 1, 1))

    def test_invalidate_makes_inflight_stale(self) -> None:
        tracker = RequestTracker()
        tracker.begin(LOG, 1)
        tracker.invalidate(LOG, 1)
        assert not tracker.is_pending(LOG, 1)
        assert not tracker.settle(result_for(LOG, 1, 1))
        assert tracker.begin(LOG, 1) == 3

    def test_invalidate_unknown_key_is_noop(self) -> None:
        tracker = RequestTracker()
        tracker.invalidate(LOG, 99)
        assert tracker.current(LOG, 99) == 0

    def test_mutation_kinds(self) -> None:
        assert ResourceKind.APPROVE.is_mutation
        assert ResourceKind.OPEN_BROWSER.is_mutation
        assert not ResourceKind.PR_LIST.is_mutation


class TestDispatcher:
    """Tests for Dispatcher."""

    @pytest.mark.asyncio
    async def test_success_delivers_one_result(self) -> None:
        woken = []
        dispatcher = Dispatcher(timeout=1.0, on_result=lambda: woken.append(True))

        async def call():
            return "payload"

        dispatcher.spawn(Request(LOG, 7, 1, call))
        result = await asyncio.wait_for(dispatcher.results.get(), 1.0)

        assert result == Result(LOG, 7, 1, payload="payload")
        assert result.ok
        assert woken == [True]
        assert dispatcher.results.empty()

    @pytest.mark.asyncio
    async def test_provider_error_becomes_failure(self) -> None:
        dispatcher = Dispatcher(timeout=1.0)

        async def call():
            raise ProviderError("404 Not Found", status_code=404)

        dispatcher.spawn(Request(ResourceKind.JOBS, 3, 4, call))
        result = await asyncio.wait_for(dispatcher.results.get(), 1.0)

        assert not result.ok
        assert result.error == "404 Not Found"
        assert result.generation == 4

    @pytest.mark.asyncio
    async def test_unexpected_error_still_delivers(self) -> None:
        dispatcher = Dispatcher(timeout=1.0)

        async def call():
            raise KeyError("login")

        dispatcher.spawn(Request(ResourceKind.PR_LIST, None, 1, call))
        result = await asyncio.wait_for(dispatcher.results.get(), 1.0)
        assert not result.ok
        assert "login" in result.error

    @pytest.mark.asyncio
    async def test_timeout_delivers_error(self) -> None:
        dispatcher = Dispatcher(timeout=0.05)

        async def call():
            await asyncio.sleep(10)

        dispatcher.spawn(Request(ResourceKind.RUN_LIST, None, 1, call))
        result = await asyncio.wait_for(dispatcher.results.get(), 1.0)
        assert result.error == "timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_results_arrive_in_completion_order(self) -> None:
        dispatcher = Dispatcher(timeout=1.0)
        slow_started = asyncio.Event()

        async def slow():
            slow_started.set()
            await asyncio.sleep(0.05)
            return "slow"

        async def fast():
            await slow_started.wait()
            return "fast"

        dispatcher.spawn(Request(LOG, 1, 1, slow))
        dispatcher.spawn(Request(LOG, 1, 2, fast))

        first = await asyncio.wait_for(dispatcher.results.get(), 1.0)
        second = await asyncio.wait_for(dispatcher.results.get(), 1.0)
        assert (first.generation, second.generation) == (2, 1)

    @pytest.mark.asyncio
    async def test_close_cancels_outstanding(self) -> None:
        dispatcher = Dispatcher(timeout=None)

        async def call():
            await asyncio.sleep(10)

        dispatcher.spawn(Request(LOG, 1, 1, call))
        await asyncio.sleep(0)
        assert dispatcher.in_flight == 1
        await dispatcher.close()
        assert dispatcher.results.empty()
