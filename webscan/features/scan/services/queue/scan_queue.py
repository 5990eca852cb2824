"""
Scan Queue

Bounded-concurrency FIFO admission control. At most ``concurrency`` tasks run
at once; the rest wait in submission order. This is the only place a scan
execution is started.
"""
import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume_exception(future: asyncio.Future) -> None:
    # the caller may have been cancelled and will never read the outcome
    if not future.cancelled():
        future.exception()


class ScanQueue:
    def __init__(self, concurrency: int = 2):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self._jobs: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._active = 0

    @property
    def active(self) -> int:
        """Tasks currently running."""
        return self._active

    @property
    def pending(self) -> int:
        """Tasks admitted but not started."""
        return self._jobs.qsize() if self._jobs is not None else 0

    def _ensure_workers(self) -> asyncio.Queue:
        if self._jobs is None:
            self._jobs = asyncio.Queue()
        if not self._workers:
            self._workers = [
                asyncio.create_task(self._worker(index), name=f"scan-queue-worker-{index}")
                for index in range(self.concurrency)
            ]
        return self._jobs

    async def enqueue(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Submit ``task`` (a coroutine factory) and wait for its result.

        Cancelling the caller does not cancel the task once admitted.
        """
        jobs = self._ensure_workers()
        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        await jobs.put((task, future))
        logger.debug(f"Task queued (pending={self.pending}, active={self.active})")
        return await asyncio.shield(future)

    async def _worker(self, index: int) -> None:
        jobs = self._jobs
        while True:
            task, future = await jobs.get()
            self._active += 1
            try:
                result = await task()
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._active -= 1
                jobs.task_done()

    async def close(self) -> None:
        """Stop the workers; tasks still queued are cancelled."""
        workers = self._workers
        self._workers = []
        for worker in workers:
            worker.cancel()
        for worker in workers:
            with contextlib.suppress(asyncio.CancelledError):
                await worker

        if self._jobs is not None:
            while not self._jobs.empty():
                _, future = self._jobs.get_nowait()
                if not future.done():
                    future.cancel()
            self._jobs = None
