"""
Batch Queue - Long-lived task queue with a concurrency cap.

Unlike process_batch, items can be added at any time; each add() returns a
future resolved with the processor's result.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Iterable, List, Optional, Set

import structlog

from ..errors import QueueClearedError


logger = structlog.get_logger(__name__)


@dataclass
class _QueuedItem:
    item: Any
    future: asyncio.Future
    retries: int = 0


class BatchQueue:
    """
    Queue that runs at most `concurrency` items at once.

    A failing item goes back to the front of the waiting list until it has
    been retried `retries` times; after that its future carries the error.

    Example:
        >>> queue = BatchQueue(fetch, concurrency=2)
        >>> result = await queue.add("a")
        >>> results = await queue.add_all(["b", "c"])
    """

    def __init__(
        self,
        processor: Callable[[Any], Awaitable[Any]],
        concurrency: int = 5,
        retries: int = 0,
        on_complete: Optional[Callable[[Any, Any], None]] = None,
        on_error: Optional[Callable[[Any, BaseException], None]] = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")

        self.processor = processor
        self.concurrency = concurrency
        self.retries = retries
        self.on_complete = on_complete
        self.on_error = on_error

        self._waiting: Deque[_QueuedItem] = deque()
        self._in_flight = 0
        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def size(self) -> int:
        """Items not yet started"""
        return len(self._waiting)

    @property
    def pending(self) -> int:
        """Items currently being processed"""
        return self._in_flight

    def add(self, item: Any) -> asyncio.Future:
        """Queue an item; the returned future resolves with its result"""
        future = asyncio.get_running_loop().create_future()
        self._waiting.append(_QueuedItem(item=item, future=future))
        self._idle.clear()
        self._pump()
        return future

    async def add_all(self, items: Iterable[Any]) -> List[Any]:
        """Queue several items and wait for all results (input order)"""
        futures = [self.add(item) for item in items]
        return list(await asyncio.gather(*futures))

    def clear(self) -> int:
        """
        Reject every item that has not started yet.

        In-flight items are left to finish.

        Returns:
            Number of rejected items
        """
        rejected = 0
        while self._waiting:
            entry = self._waiting.popleft()
            if not entry.future.done():
                entry.future.set_exception(QueueClearedError())
            rejected += 1

        if rejected:
            logger.info("queue_cleared", rejected=rejected, in_flight=self._in_flight)
        self._check_idle()
        return rejected

    async def join(self):
        """Wait until nothing is waiting or running"""
        await self._idle.wait()

    def _pump(self):
        while self._in_flight < self.concurrency and self._waiting:
            entry = self._waiting.popleft()
            self._in_flight += 1
            task = asyncio.create_task(self._run(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, entry: _QueuedItem):
        try:
            result = await self.processor(entry.item)
        except Exception as e:
            if entry.retries < self.retries:
                entry.retries += 1
                logger.debug("queue_item_requeued", retries=entry.retries, error=str(e))
                self._waiting.appendleft(entry)
            else:
                if not entry.future.done():
                    entry.future.set_exception(e)
                self._callback("on_error", self.on_error, entry.item, e)
        else:
            if not entry.future.done():
                entry.future.set_result(result)
            self._callback("on_complete", self.on_complete, entry.item, result)
        finally:
            self._in_flight -= 1
            self._pump()
            self._check_idle()

    def _callback(self, name: str, callback: Optional[Callable[..., None]], *args: Any):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error("queue_callback_error", callback=name, error=str(e))

    def _check_idle(self):
        if not self._waiting and self._in_flight == 0:
            self._idle.set()
