"""
Batch processing - Bounded-concurrency execution over many work items.

Items are split into batches and drained by a pool of workers pulling from
a shared asyncio.Queue (producer-consumer). Each item may be retried with
linear backoff; after retries are exhausted an error handler decides
whether to skip the item, stop the whole run, or try once more.

Design Pattern: Producer-Consumer (worker pool) + cooperative cancellation
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

import structlog


logger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Worker = Callable[[Any, int], Awaitable[Any]]


class ErrorAction(Enum):
    """What to do with an item whose retries are exhausted"""
    SKIP = "skip"
    STOP = "stop"
    RETRY = "retry"


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a batch run.

    Once cancelled no new item starts; items already running finish.
    """

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled"):
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class BatchProgress:
    """Progress snapshot reported after every completed item"""
    total: int
    processed: int
    successful: int
    failed: int
    current_batch: int
    total_batches: int
    percentage: float
    estimated_time_remaining: Optional[float]  # seconds, None when nothing remains
    current_item: Any = None
    last_result: Any = None


@dataclass
class BatchOptions:
    """Tuning knobs and callbacks for a batch run"""
    batch_size: int = 10
    delay_between_batches: float = 0.0  # seconds; sequential batches only
    concurrency: Optional[int] = None  # default: 1 for process_batch, 3 for parallel
    max_retries: int = 0
    retry_delay: float = 1.0  # seconds, multiplied by the attempt number
    cancel_token: Optional[CancellationToken] = None
    on_progress: Optional[Callable[[BatchProgress], None]] = None
    on_batch_complete: Optional[Callable[[List[Any], List[Any]], None]] = None
    on_error: Optional[Callable[[BaseException, Any, int], ErrorAction]] = None


@dataclass
class BatchFailure:
    """An item that could not be processed"""
    item: Any
    error: BaseException
    index: int


@dataclass
class BatchStats:
    total: int
    successful: int
    failed: int
    skipped: int
    duration: float
    average_time_per_item: float


@dataclass
class BatchResult:
    """Outcome of a batch run"""
    results: List[Any]
    failures: List[BatchFailure] = field(default_factory=list)
    stats: Optional[BatchStats] = None
    cancelled: bool = False


def chunk_list(items: List[T], size: int) -> List[List[T]]:
    """Split a list into consecutive chunks of at most `size` items"""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


async def run_workers(count: int, worker: Callable[[int], Awaitable[None]]):
    """
    Run `count` worker coroutines to completion.

    The first exception cancels the remaining workers and is re-raised
    unchanged.
    """
    tasks = [asyncio.create_task(worker(worker_id)) for worker_id in range(count)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class _BatchRun:
    """Counters and per-item retry logic shared by both batch strategies"""

    def __init__(self, items: List[Any], worker: Worker, options: BatchOptions, total_batches: int):
        self.items = items
        self.worker = worker
        self.options = options
        self.total_batches = total_batches
        self.token = options.cancel_token or CancellationToken()

        self.started_at = time.monotonic()
        self.processed = 0
        self.successful = 0
        self.failed = 0
        self.skipped = 0
        self.failures: List[BatchFailure] = []
        self.stop_error: Optional[BaseException] = None

    @property
    def halted(self) -> bool:
        return self.stop_error is not None or self.token.cancelled

    async def run_item(self, item: Any, index: int, batch_number: int) -> Tuple[bool, Any]:
        """
        Process one item with retries.

        Returns:
            (succeeded, result) - result is None when the item failed
        """
        attempt = 0
        extra_attempt_used = False

        while True:
            try:
                result = await self.worker(item, index)
            except Exception as e:
                if attempt < self.options.max_retries:
                    attempt += 1
                    logger.warning(
                        "batch_item_retry",
                        index=index,
                        attempt=attempt,
                        max_retries=self.options.max_retries,
                        error=str(e),
                    )
                    await asyncio.sleep(self.options.retry_delay * attempt)
                    if self.token.cancelled:
                        self._record_failure(item, e, index, skipped=False)
                        self._report(item, None, batch_number)
                        return False, None
                    continue

                action = ErrorAction.SKIP
                if self.options.on_error is not None and not extra_attempt_used:
                    action = self.options.on_error(e, item, index)

                if action is ErrorAction.STOP:
                    self._record_failure(item, e, index, skipped=False)
                    if self.stop_error is None:
                        self.stop_error = e
                    logger.error("batch_stopped", index=index, error=str(e))
                elif action is ErrorAction.RETRY:
                    extra_attempt_used = True
                    attempt += 1
                    await asyncio.sleep(self.options.retry_delay * attempt)
                    if not self.token.cancelled:
                        continue
                    self._record_failure(item, e, index, skipped=False)
                elif extra_attempt_used:
                    self._record_failure(item, e, index, skipped=False)
                else:
                    self._record_failure(item, e, index, skipped=True)

                self._report(item, None, batch_number)
                return False, None

            self.successful += 1
            self._report(item, result, batch_number)
            return True, result

    def _record_failure(self, item: Any, error: BaseException, index: int, skipped: bool):
        self.failures.append(BatchFailure(item=item, error=error, index=index))
        if skipped:
            self.skipped += 1
        else:
            self.failed += 1

    def _report(self, item: Any, result: Any, batch_number: int):
        self.processed += 1
        if self.options.on_progress is None:
            return

        total = len(self.items)
        elapsed = time.monotonic() - self.started_at
        remaining = total - self.processed
        average = elapsed / self.processed

        progress = BatchProgress(
            total=total,
            processed=self.processed,
            successful=self.successful,
            failed=self.failed + self.skipped,
            current_batch=batch_number,
            total_batches=self.total_batches,
            percentage=(self.processed / total) * 100 if total else 100.0,
            estimated_time_remaining=average * remaining if remaining > 0 else None,
            current_item=item,
            last_result=result,
        )
        _safe_callback("on_progress", self.options.on_progress, progress)

    def batch_done(self, batch: List[Any], batch_results: List[Any]):
        if self.options.on_batch_complete is not None:
            _safe_callback("on_batch_complete", self.options.on_batch_complete, batch, batch_results)

    def finish(self, results: List[Any]) -> BatchResult:
        if self.stop_error is not None:
            raise self.stop_error

        duration = time.monotonic() - self.started_at
        cancelled = self.token.cancelled
        if cancelled:
            logger.info("batch_cancelled", processed=self.processed, total=len(self.items))

        return BatchResult(
            results=results,
            failures=self.failures,
            stats=BatchStats(
                total=len(self.items),
                successful=self.successful,
                failed=self.failed,
                skipped=self.skipped,
                duration=duration,
                average_time_per_item=duration / self.processed if self.processed else 0.0,
            ),
            cancelled=cancelled,
        )


def _safe_callback(name: str, callback: Callable[..., Any], *args: Any):
    """Invoke a reporting callback; its errors are logged, never raised"""
    try:
        callback(*args)
    except Exception as e:
        logger.error("batch_callback_error", callback=name, error=str(e))


def _validate(options: BatchOptions, concurrency: int):
    if options.batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {options.batch_size}")
    if concurrency < 1:
        raise ValueError(f"concurrency must be positive, got {concurrency}")
    if options.max_retries < 0:
        raise ValueError(f"max_retries must not be negative, got {options.max_retries}")


async def process_batch(
    items: Iterable[T],
    worker: Callable[[T, int], Awaitable[R]],
    options: Optional[BatchOptions] = None,
) -> BatchResult:
    """
    Process items batch by batch.

    Inside one batch, `concurrency` workers (default 1) pull items from a
    shared queue. Results are appended in completion order.

    Args:
        items: Work items
        worker: Coroutine function called as worker(item, index)
        options: Batch options (defaults if None)

    Returns:
        BatchResult with results, failures and stats

    Raises:
        The original item error when the error handler answers STOP
    """
    options = options or BatchOptions()
    concurrency = options.concurrency or 1
    _validate(options, concurrency)

    items = list(items)
    batches = chunk_list(items, options.batch_size)
    run = _BatchRun(items, worker, options, total_batches=len(batches))
    results: List[Any] = []

    for batch_number, batch in enumerate(batches, start=1):
        if run.halted:
            break

        start = (batch_number - 1) * options.batch_size
        queue: asyncio.Queue = asyncio.Queue()
        for offset, item in enumerate(batch):
            queue.put_nowait((start + offset, item))
        batch_results: List[Any] = []

        async def drain(worker_id: int):
            while not run.halted:
                try:
                    index, item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                ok, value = await run.run_item(item, index, batch_number)
                if ok:
                    batch_results.append(value)
                    results.append(value)
                queue.task_done()

        await run_workers(min(concurrency, len(batch)), drain)
        run.batch_done(batch, batch_results)

        if options.delay_between_batches > 0 and batch_number < len(batches) and not run.halted:
            await asyncio.sleep(options.delay_between_batches)

    return run.finish(results)


async def process_parallel_batches(
    items: Iterable[T],
    worker: Callable[[T, int], Awaitable[R]],
    options: Optional[BatchOptions] = None,
) -> BatchResult:
    """
    Process batches concurrently.

    `concurrency` workers (default 3) each take whole batches from a shared
    queue; items inside one batch run in order. Results are aligned to the
    input order, with failed indices omitted.
    """
    options = options or BatchOptions()
    concurrency = options.concurrency or 3
    _validate(options, concurrency)

    items = list(items)
    batches = chunk_list(items, options.batch_size)
    run = _BatchRun(items, worker, options, total_batches=len(batches))
    slots: Dict[int, Any] = {}

    queue: asyncio.Queue = asyncio.Queue()
    for batch_number, batch in enumerate(batches, start=1):
        queue.put_nowait((batch_number, (batch_number - 1) * options.batch_size, batch))

    async def drain(worker_id: int):
        while not run.halted:
            try:
                batch_number, start, batch = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            batch_results: List[Any] = []
            for offset, item in enumerate(batch):
                if run.halted:
                    break
                ok, value = await run.run_item(item, start + offset, batch_number)
                if ok:
                    slots[start + offset] = value
                    batch_results.append(value)
            run.batch_done(batch, batch_results)
            queue.task_done()

    if batches:
        await run_workers(min(concurrency, len(batches)), drain)

    return run.finish([slots[index] for index in sorted(slots)])


async def map_with_concurrency(
    items: Iterable[T],
    mapper: Callable[[T, int], Awaitable[R]],
    concurrency: int = 5,
) -> List[R]:
    """
    Map items through a coroutine with at most `concurrency` in flight.

    Results are index-aligned with the input. The first error cancels the
    remaining work and propagates.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be positive, got {concurrency}")

    items = list(items)
    results: List[Any] = [None] * len(items)
    queue: asyncio.Queue = asyncio.Queue()
    for index, item in enumerate(items):
        queue.put_nowait((index, item))

    async def drain(worker_id: int):
        while True:
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            results[index] = await mapper(item, index)

    if items:
        await run_workers(min(concurrency, len(items)), drain)
    return results


async def filter_with_concurrency(
    items: Iterable[T],
    predicate: Callable[[T, int], Awaitable[bool]],
    concurrency: int = 5,
) -> List[T]:
    """Keep the items whose predicate holds, preserving input order"""
    items = list(items)
    keep = await map_with_concurrency(items, predicate, concurrency)
    return [item for item, wanted in zip(items, keep) if wanted]


async def _iterate(items: Union[Iterable[T], AsyncIterable[T]]) -> AsyncIterator[T]:
    if hasattr(items, "__aiter__"):
        async for item in items:
            yield item
    else:
        for item in items:
            yield item


async def process_stream(
    items: Union[Iterable[T], AsyncIterable[T]],
    worker: Callable[[T, int], Awaitable[R]],
    batch_size: int = 1,
    cancel_token: Optional[CancellationToken] = None,
) -> AsyncIterator[R]:
    """
    Lazily process a (possibly async) stream, yielding results in order.

    Items are buffered `batch_size` at a time; nothing is read ahead of
    what the consumer pulls.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    token = cancel_token or CancellationToken()
    buffer: List[T] = []
    index = 0

    async for item in _iterate(items):
        if token.cancelled:
            return
        buffer.append(item)
        if len(buffer) >= batch_size:
            for buffered in buffer:
                yield await worker(buffered, index)
                index += 1
            buffer = []

    for buffered in buffer:
        if token.cancelled:
            return
        yield await worker(buffered, index)
        index += 1
