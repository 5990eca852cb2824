"""
Scan Service

Entry point for scanning a URL: serve a fresh cached result when one exists,
otherwise run the scan through the queue, normalize the report, and cache it.
"""
import asyncio
import logging
from typing import Callable, Dict, Optional

from webscan.features.scan.exceptions import ScanError, StorageError
from webscan.features.scan.schemas.audit_report import RawAuditReport
from webscan.features.scan.schemas.scan import ScanResult
from webscan.features.scan.services.cache.result_cache import ResultCache
from webscan.features.scan.services.executor.scan_executor import ScanExecutor
from webscan.features.scan.services.normalizer.config import NormalizerConfig
from webscan.features.scan.services.normalizer.result_builder import build_scan_result
from webscan.features.scan.services.queue.scan_queue import ScanQueue
from webscan.platform.utils.clock import now_ms

logger = logging.getLogger(__name__)


class ScanService:
    def __init__(
        self,
        cache: ResultCache,
        queue: ScanQueue,
        executor: ScanExecutor,
        config: Optional[NormalizerConfig] = None,
        deduplicate_in_flight: bool = True,
        clock: Callable[[], int] = now_ms,
    ):
        self.cache = cache
        self.queue = queue
        self.executor = executor
        self.config = config or NormalizerConfig()
        self.deduplicate_in_flight = deduplicate_in_flight
        self._clock = clock
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def scan_url(self, url: str) -> ScanResult:
        """
        Return the scan result for ``url``.

        A cached result younger than the expiry is returned as-is. Otherwise a
        scan is queued, or joined when one for the same URL is already running.

        Raises:
            ScanError: the scan could not produce a result
        """
        try:
            cached = await self.cache.get(url)
        except StorageError as e:
            logger.warning(f"Cache lookup failed for {url}, scanning anyway: {e}")
            cached = None

        if cached is not None:
            return cached

        if not self.deduplicate_in_flight:
            return await self._scan_and_store(url)

        task = self._in_flight.get(url)
        if task is None:
            task = asyncio.create_task(self._scan_and_store(url), name=f"scan:{url}")
            self._in_flight[url] = task
            task.add_done_callback(lambda done: self._forget(url, done))
        else:
            logger.info(f"Joining in-flight scan of {url}")

        # A caller going away must not cancel the scan other callers are waiting on
        return await asyncio.shield(task)

    def _forget(self, url: str, task: asyncio.Task) -> None:
        if self._in_flight.get(url) is task:
            del self._in_flight[url]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"In-flight scan of {url} finished with {task.exception()!r}")

    def build_result(self, url: str, report: RawAuditReport) -> ScanResult:
        result = build_scan_result(url, report, self.config, timestamp=self._clock())
        logger.info(
            f"Scan of {url} completed: performance {result.results.performance.metrics.score}, "
            f"accessibility {result.results.accessibility.metrics.score}"
        )
        return result

    async def _scan_and_store(self, url: str) -> ScanResult:
        logger.info(f"Queueing scan of {url}")
        try:
            report = await self.queue.enqueue(lambda: self.executor.execute_scan(url))
        except ScanError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error scanning {url}")
            raise ScanError(f"Scan of {url} failed: {e}") from e

        result = self.build_result(url, report)

        try:
            await self.cache.put(url, result)
        except StorageError as e:
            logger.error(f"Failed to cache result for {url}: {e}")

        return result
