"""Tests for the order-preserving fork-join group."""

from __future__ import annotations

import asyncio

import pytest

from uxflow.agents.parallel import ParallelGroup, parallel_map


def _delayed(value, delay: float):
    async def _run():
        await asyncio.sleep(delay)
        return value

    return _run


class TestParallelGroup:
    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        group = ParallelGroup()
        thunks = [_delayed("slow", 0.03), _delayed("fast", 0.0), _delayed("medium", 0.01)]
        assert await group.all(thunks) == ["slow", "fast", "medium"]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        assert await ParallelGroup().all([]) == []

    @pytest.mark.asyncio
    async def test_runs_concurrently(self):
        running = 0
        peak = 0

        async def _task():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return True

        await ParallelGroup().all([_task for _ in range(4)])
        assert peak == 4

    @pytest.mark.asyncio
    async def test_max_concurrent_limits_parallelism(self):
        running = 0
        peak = 0

        async def _task():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return True

        results = await ParallelGroup(max_concurrent=2).all([_task for _ in range(5)])
        assert results == [True] * 5
        assert peak == 2

    @pytest.mark.asyncio
    async def test_first_exception_propagates(self):
        async def _boom():
            raise RuntimeError("agent crashed")

        with pytest.raises(RuntimeError, match="agent crashed"):
            await ParallelGroup().all([_delayed(1, 0), _boom])

    @pytest.mark.asyncio
    async def test_failure_cancels_running_siblings(self):
        finished = []
        cancelled = []

        async def _slow():
            try:
                await asyncio.sleep(0.2)
            except asyncio.CancelledError:
                cancelled.append("slow")
                raise
            finished.append("slow")

        async def _boom():
            await asyncio.sleep(0)
            raise RuntimeError("layout agent failed")

        with pytest.raises(RuntimeError, match="layout agent failed"):
            await ParallelGroup().all([_boom, _slow])

        assert cancelled == ["slow"]
        await asyncio.sleep(0.25)
        assert finished == []

    def test_invalid_max_concurrent(self):
        with pytest.raises(ValueError):
            ParallelGroup(max_concurrent=0)


class TestParallelMap:
    @pytest.mark.asyncio
    async def test_maps_items_in_order(self):
        async def _double(x):
            await asyncio.sleep(0.01 * (3 - x))
            return x * 2

        assert await parallel_map([1, 2, 3], _double) == [2, 4, 6]

    @pytest.mark.asyncio
    async def test_uses_given_group(self):
        group = ParallelGroup(max_concurrent=1)

        async def _ident(x):
            return x

        assert await parallel_map(["a", "b"], _ident, group=group) == ["a", "b"]
