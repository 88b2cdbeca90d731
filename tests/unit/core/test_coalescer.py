# tests/unit/core/test_coalescer.py — v1
"""Tests for core/coalescer.py."""

from __future__ import annotations

import asyncio

import pytest

from nutriresolve.core.coalescer import InflightCoalescer


class TestInflightCoalescer:
    @pytest.mark.asyncio
    async def test_shares_one_call(self):
        coalescer = InflightCoalescer()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return "done"

        results = await asyncio.gather(*(coalescer.run("k", work) for _ in range(4)))
        assert results == ["done"] * 4
        assert calls == 1
        assert coalescer.coalesced == 3
        assert coalescer.in_flight == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_run_separately(self):
        coalescer = InflightCoalescer()

        async def work(value):
            await asyncio.sleep(0.01)
            return value

        a, b = await asyncio.gather(
            coalescer.run("a", lambda: work(1)), coalescer.run("b", lambda: work(2))
        )
        assert (a, b) == (1, 2)
        assert coalescer.coalesced == 0

    @pytest.mark.asyncio
    async def test_error_reaches_every_waiter(self):
        coalescer = InflightCoalescer()

        async def fail():
            await asyncio.sleep(0.01)
            raise LookupError("nothing")

        results = await asyncio.gather(
            coalescer.run("k", fail), coalescer.run("k", fail), return_exceptions=True
        )
        assert all(isinstance(r, LookupError) for r in results)
        assert coalescer.in_flight == 0

    @pytest.mark.asyncio
    async def test_new_call_after_completion(self):
        coalescer = InflightCoalescer()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            return calls

        assert await coalescer.run("k", work) == 1
        assert await coalescer.run("k", work) == 2

    @pytest.mark.asyncio
    async def test_one_waiter_cancelled_others_continue(self):
        coalescer = InflightCoalescer()
        release = asyncio.Event()

        async def work():
            await release.wait()
            return "ok"

        first = asyncio.create_task(coalescer.run("k", work))
        second = asyncio.create_task(coalescer.run("k", work))
        await asyncio.sleep(0.01)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        release.set()
        assert await second == "ok"

    @pytest.mark.asyncio
    async def test_last_waiter_cancels_upstream(self):
        coalescer = InflightCoalescer()
        cancelled = asyncio.Event()

        async def work():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        task = asyncio.create_task(coalescer.run("k", work))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)
        assert cancelled.is_set()
        assert coalescer.in_flight == 0
