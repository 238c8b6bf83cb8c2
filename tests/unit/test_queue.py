"""
Unit tests for BatchQueue.

Run with: pytest tests/unit/test_queue.py -v
"""

import asyncio

import pytest

from vitals.core.queue import BatchQueue
from vitals.errors import QueueClearedError


class TestBatchQueue:
    """Test suite for BatchQueue class"""

    @pytest.mark.asyncio
    async def test_add_resolves_with_result(self):
        async def square(item):
            return item * item

        queue = BatchQueue(square)

        assert await queue.add(4) == 16

    @pytest.mark.asyncio
    async def test_add_all_keeps_input_order(self):
        async def delayed(item):
            await asyncio.sleep(0.01 * (3 - item))
            return item

        queue = BatchQueue(delayed, concurrency=3)

        assert await queue.add_all([0, 1, 2]) == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency(self):
        """Test five slow items with concurrency=2 never run more than two at once"""
        state = {"now": 0, "max": 0}

        async def slow(item):
            state["now"] += 1
            state["max"] = max(state["max"], state["now"])
            await asyncio.sleep(0.02)
            state["now"] -= 1
            return item

        queue = BatchQueue(slow, concurrency=2)
        results = await queue.add_all(range(5))

        assert results == [0, 1, 2, 3, 4]
        assert state["max"] == 2

    @pytest.mark.asyncio
    async def test_size_and_pending_counters(self):
        release = asyncio.Event()

        async def blocked(item):
            await release.wait()
            return item

        queue = BatchQueue(blocked, concurrency=2)
        futures = [queue.add(i) for i in range(5)]
        await asyncio.sleep(0)

        assert queue.pending == 2
        assert queue.size == 3

        release.set()
        await asyncio.gather(*futures)
        await queue.join()

        assert queue.pending == 0
        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_failed_item_is_retried_first(self):
        """Test a failing item is re-queued ahead of waiting items"""
        order = []
        failed_once = set()

        async def flaky(item):
            order.append(item)
            if item == "a" and item not in failed_once:
                failed_once.add(item)
                raise RuntimeError("transient")
            return item

        queue = BatchQueue(flaky, concurrency=1, retries=1)
        results = await queue.add_all(["a", "b"])

        assert results == ["a", "b"]
        assert order == ["a", "a", "b"]

    @pytest.mark.asyncio
    async def test_error_after_retries_exhausted(self):
        errors = []

        async def broken(item):
            raise ValueError(f"bad {item}")

        queue = BatchQueue(broken, retries=2, on_error=lambda item, error: errors.append(item))

        with pytest.raises(ValueError):
            await queue.add("x")
        assert errors == ["x"]

    @pytest.mark.asyncio
    async def test_on_complete_callback(self):
        completed = []

        async def echo(item):
            return item

        queue = BatchQueue(echo, on_complete=lambda item, result: completed.append((item, result)))
        await queue.add("done")

        assert completed == [("done", "done")]

    @pytest.mark.asyncio
    async def test_clear_rejects_waiting_items_only(self):
        """Test clear() rejects not-yet-started items and leaves running ones alone"""
        release = asyncio.Event()

        async def blocked(item):
            await release.wait()
            return item

        queue = BatchQueue(blocked, concurrency=1)
        running = queue.add("running")
        waiting = [queue.add("w1"), queue.add("w2")]
        await asyncio.sleep(0)

        assert queue.clear() == 2

        for future in waiting:
            with pytest.raises(QueueClearedError, match="Queue cleared"):
                await future

        release.set()
        assert await running == "running"
        await queue.join()

    @pytest.mark.asyncio
    async def test_join_on_idle_queue_returns(self):
        async def echo(item):
            return item

        await asyncio.wait_for(BatchQueue(echo).join(), timeout=1)

    def test_rejects_invalid_concurrency(self):
        async def echo(item):
            return item

        with pytest.raises(ValueError):
            BatchQueue(echo, concurrency=0)
