"""Tests for the shared, bounded Parallelizer."""

import asyncio
import pytest
from provisio.application.orchestration.parallelizer import Parallelizer
from provisio.domain.errors import ParallelizationError


class Tracker:
    def __init__(self, delay=0.01):
        self.delay = delay
        self.in_flight = 0
        self.peak = 0
        self.started = []

    async def __call__(self, item):
        self.started.append(item)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if isinstance(item, Exception):
            raise item
        return item * 2


class TestParallelizer:
    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        parallelizer = Parallelizer(max_simultaneous=3)

        async def op(item):
            await asyncio.sleep(0.01 * (5 - item))
            return item * 10

        result = await parallelizer.map(range(5), op)
        assert result.results() == [0, 10, 20, 30, 40]
        assert [o.index for o in result] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_bound_is_respected(self):
        parallelizer = Parallelizer(max_simultaneous=3)
        tracker = Tracker()
        await parallelizer.map(range(10), tracker)
        assert tracker.peak == 3
        assert parallelizer.peak_in_flight == 3
        assert parallelizer.in_flight == 0

    @pytest.mark.asyncio
    async def test_bound_is_shared_across_fanouts(self):
        parallelizer = Parallelizer(max_simultaneous=2)
        tracker = Tracker()
        await asyncio.gather(
            parallelizer.map(range(5), tracker),
            parallelizer.map(range(5, 10), tracker),
        )
        assert tracker.peak == 2

    @pytest.mark.asyncio
    async def test_per_call_limit_tightens(self):
        parallelizer = Parallelizer(max_simultaneous=10)
        tracker = Tracker()
        await parallelizer.map(range(8), tracker, max_simultaneous=2)
        assert tracker.peak == 2

    @pytest.mark.asyncio
    async def test_per_call_limit_never_loosens(self):
        parallelizer = Parallelizer(max_simultaneous=2)
        tracker = Tracker()
        await parallelizer.map(range(8), tracker, max_simultaneous=5)
        assert tracker.peak == 2

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self):
        parallelizer = Parallelizer(max_simultaneous=2)
        tracker = Tracker()
        items = [1, RuntimeError("boom"), 3, 4]
        result = await parallelizer.map(items, tracker)

        assert len(tracker.started) == 4
        assert len(result) == 4
        assert not result.ok
        assert [o.index for o in result.failed] == [1]
        assert result.results() == [2, None, 6, 8]
        assert str(result.errors[0]) == "boom"

    @pytest.mark.asyncio
    async def test_raise_for_errors(self):
        parallelizer = Parallelizer()
        result = await parallelizer.map([RuntimeError("a"), 1], Tracker())
        with pytest.raises(ParallelizationError) as exc_info:
            result.raise_for_errors()
        assert len(exc_info.value.errors) == 1

    @pytest.mark.asyncio
    async def test_parallelize_is_non_blocking(self):
        parallelizer = Parallelizer()
        gate = asyncio.Event()

        async def op(item):
            await gate.wait()
            return item

        run = parallelizer.parallelize([1, 2], op)
        assert not run.done()
        gate.set()
        result = await run
        assert run.done()
        assert result.results() == [1, 2]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        result = await Parallelizer().map([], Tracker())
        assert len(result) == 0
        assert result.ok

    def test_invalid_bound(self):
        with pytest.raises(ValueError, match="at least 1"):
            Parallelizer(max_simultaneous=0)

    def test_run_sync(self):
        result = Parallelizer(max_simultaneous=2).run_sync([1, 2, 3], Tracker())
        assert result.results() == [2, 4, 6]

    def test_run_sync_reused_while_bound_is_full(self):
        parallelizer = Parallelizer(max_simultaneous=1)
        first = parallelizer.run_sync([1, 2, 3], Tracker())
        tracker = Tracker()
        second = parallelizer.run_sync([1, 2, 3], tracker)
        assert first.results() == [2, 4, 6]
        assert second.results() == [2, 4, 6]
        assert tracker.peak == 1
