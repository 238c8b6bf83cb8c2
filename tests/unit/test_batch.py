"""
Unit tests for batch processing primitives.

Run with: pytest tests/unit/test_batch.py -v
"""

import asyncio

import pytest

from vitals.core.batch import (
    BatchOptions,
    CancellationToken,
    ErrorAction,
    chunk_list,
    filter_with_concurrency,
    map_with_concurrency,
    process_batch,
    process_parallel_batches,
    process_stream,
)


async def double(item, index):
    return item * 2


class TestChunkList:
    """Test suite for chunk_list"""

    def test_splits_into_chunks(self):
        """Test last chunk holds the remainder"""
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty_list(self):
        assert chunk_list([], 3) == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            chunk_list([1], 0)


class TestProcessBatch:
    """Test suite for process_batch"""

    @pytest.mark.asyncio
    async def test_doubles_every_item(self):
        """Test five items in batches of two are all processed"""
        result = await process_batch([1, 2, 3, 4, 5], double, BatchOptions(batch_size=2))

        assert result.results == [2, 4, 6, 8, 10]
        assert result.stats.total == 5
        assert result.stats.successful == 5
        assert result.stats.failed == 0
        assert result.failures == []
        assert result.cancelled is False

    @pytest.mark.asyncio
    async def test_skip_records_failure_and_continues(self):
        """Test a failing item answered with SKIP is counted as skipped"""
        async def worker(item, index):
            if item == 2:
                raise ValueError("boom")
            return item * 2

        options = BatchOptions(on_error=lambda error, item, index: ErrorAction.SKIP)
        result = await process_batch([1, 2, 3], worker, options)

        assert result.results == [2, 6]
        assert len(result.failures) == 1
        assert result.failures[0].index == 1
        assert result.failures[0].item == 2
        assert result.stats.skipped == 1
        assert result.stats.successful == 2

    @pytest.mark.asyncio
    async def test_default_error_action_is_skip(self):
        async def worker(item, index):
            raise RuntimeError("always")

        result = await process_batch([1, 2], worker)

        assert result.results == []
        assert result.stats.skipped == 2

    @pytest.mark.asyncio
    async def test_stop_reraises_original_error(self):
        """Test STOP aborts the run and surfaces the item error"""
        processed = []

        async def worker(item, index):
            if item == 2:
                raise KeyError("stop here")
            processed.append(item)
            return item

        options = BatchOptions(batch_size=1, on_error=lambda error, item, index: ErrorAction.STOP)
        with pytest.raises(KeyError):
            await process_batch([1, 2, 3, 4], worker, options)

        assert processed == [1]

    @pytest.mark.asyncio
    async def test_retries_with_backoff_then_succeeds(self):
        """Test an item failing once succeeds within the retry budget"""
        attempts = {"count": 0}

        async def flaky(item, index):
            attempts["count"] += 1
            if attempts["count"] < 2:
                raise ConnectionError("transient")
            return item

        options = BatchOptions(max_retries=2, retry_delay=0.001)
        result = await process_batch([7], flaky, options)

        assert result.results == [7]
        assert attempts["count"] == 2
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_retry_action_gives_one_extra_attempt(self):
        """Test RETRY runs once more and then counts the item as failed"""
        attempts = {"count": 0}
        decisions = []

        async def broken(item, index):
            attempts["count"] += 1
            raise ValueError("still broken")

        def on_error(error, item, index):
            decisions.append(index)
            return ErrorAction.RETRY

        options = BatchOptions(max_retries=1, retry_delay=0.001, on_error=on_error)
        result = await process_batch(["x"], broken, options)

        assert attempts["count"] == 3
        assert decisions == [0]
        assert result.stats.failed == 1
        assert result.stats.skipped == 0
        assert len(result.failures) == 1

    @pytest.mark.asyncio
    async def test_progress_reported_after_every_item(self):
        """Test on_progress fires per item with a final 100%"""
        snapshots = []
        options = BatchOptions(batch_size=2, on_progress=snapshots.append)

        await process_batch([1, 2, 3], double, options)

        assert [p.processed for p in snapshots] == [1, 2, 3]
        assert snapshots[-1].percentage == 100.0
        assert snapshots[-1].estimated_time_remaining is None
        assert snapshots[-1].total_batches == 2
        assert snapshots[0].estimated_time_remaining is not None

    @pytest.mark.asyncio
    async def test_batch_complete_callback(self):
        completed = []
        options = BatchOptions(
            batch_size=2,
            on_batch_complete=lambda batch, results: completed.append((batch, results)),
        )

        await process_batch([1, 2, 3], double, options)

        assert completed == [([1, 2], [2, 4]), ([3], [6])]

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_break_run(self):
        def bad_progress(progress):
            raise RuntimeError("callback bug")

        result = await process_batch([1, 2], double, BatchOptions(on_progress=bad_progress))

        assert result.results == [2, 4]

    @pytest.mark.asyncio
    async def test_cancellation_stops_new_items(self):
        """Test cancelling mid-run lets started items finish and flags the result"""
        token = CancellationToken()

        async def worker(item, index):
            if item == 2:
                token.cancel("user abort")
            return item

        options = BatchOptions(batch_size=1, cancel_token=token)
        result = await process_batch([1, 2, 3, 4], worker, options)

        assert result.results == [1, 2]
        assert result.cancelled is True
        assert token.reason == "user abort"

    @pytest.mark.asyncio
    async def test_concurrency_within_batch(self):
        """Test concurrency=3 runs three items of one batch at once"""
        in_flight = {"now": 0, "max": 0}

        async def worker(item, index):
            in_flight["now"] += 1
            in_flight["max"] = max(in_flight["max"], in_flight["now"])
            await asyncio.sleep(0.01)
            in_flight["now"] -= 1
            return item

        result = await process_batch(range(6), worker, BatchOptions(batch_size=6, concurrency=3))

        assert in_flight["max"] == 3
        assert sorted(result.results) == list(range(6))

    @pytest.mark.asyncio
    async def test_rejects_invalid_options(self):
        with pytest.raises(ValueError):
            await process_batch([1], double, BatchOptions(batch_size=0))


class TestProcessParallelBatches:
    """Test suite for process_parallel_batches"""

    @pytest.mark.asyncio
    async def test_results_are_index_aligned(self):
        """Test results keep input order even when later batches finish first"""
        async def worker(item, index):
            await asyncio.sleep(0.02 if item < 3 else 0)
            return item * 10

        result = await process_parallel_batches([0, 1, 2, 3, 4, 5], worker, BatchOptions(batch_size=3))

        assert result.results == [0, 10, 20, 30, 40, 50]

    @pytest.mark.asyncio
    async def test_failed_indices_are_omitted(self):
        async def worker(item, index):
            if index == 1:
                raise ValueError("bad")
            return item

        result = await process_parallel_batches(["a", "b", "c"], worker, BatchOptions(batch_size=1))

        assert result.results == ["a", "c"]
        assert result.failures[0].index == 1

    @pytest.mark.asyncio
    async def test_empty_input(self):
        result = await process_parallel_batches([], double)

        assert result.results == []
        assert result.stats.total == 0


class TestHelpers:
    """Test suite for map/filter/stream helpers"""

    @pytest.mark.asyncio
    async def test_map_with_concurrency_preserves_order(self):
        async def slow_first(item, index):
            await asyncio.sleep(0.01 * (3 - index))
            return item.upper()

        assert await map_with_concurrency(["a", "b", "c"], slow_first, concurrency=3) == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_map_with_concurrency_propagates_errors(self):
        async def fail(item, index):
            raise LookupError(item)

        with pytest.raises(LookupError):
            await map_with_concurrency([1, 2], fail)

    @pytest.mark.asyncio
    async def test_filter_with_concurrency(self):
        async def is_even(item, index):
            return item % 2 == 0

        assert await filter_with_concurrency([1, 2, 3, 4], is_even, concurrency=2) == [2, 4]

    @pytest.mark.asyncio
    async def test_process_stream_over_async_iterable(self):
        async def source():
            for item in (1, 2, 3):
                yield item

        results = [value async for value in process_stream(source(), double, batch_size=2)]

        assert results == [2, 4, 6]

    @pytest.mark.asyncio
    async def test_process_stream_honours_cancellation(self):
        token = CancellationToken()

        async def worker(item, index):
            if item == 2:
                token.cancel()
            return item

        results = [value async for value in process_stream([1, 2, 3, 4], worker, cancel_token=token)]

        assert results == [1, 2]
