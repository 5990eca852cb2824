import logging

from webscan.features.scan.services.audit.lighthouse_runner import LighthouseRunner
from webscan.features.scan.services.browser.browser_manager import BrowserManager
from webscan.features.scan.services.cache.result_cache import ResultCache
from webscan.features.scan.services.executor.scan_executor import ScanExecutor
from webscan.features.scan.services.normalizer.config import NormalizerConfig
from webscan.features.scan.services.queue.scan_queue import ScanQueue
from webscan.features.scan.services.scan.scan_service import ScanService

logger = logging.getLogger(__name__)


class ScanRuntime:
    """
    Wires the scan pipeline from settings and owns its shared resources: the
    cache engine, the queue workers and the shared browser.
    """

    def __init__(self, settings):
        self.settings = settings
        self.cache = ResultCache(
            settings.DATABASE_URL,
            expiration_seconds=settings.SCAN_EXPIRATION_SECONDS,
        )
        self.queue = ScanQueue(concurrency=settings.SCAN_CONCURRENCY)
        self.browser_manager = BrowserManager(user_agent=settings.BROWSER_USER_AGENT)
        self.executor = ScanExecutor(
            self.browser_manager,
            LighthouseRunner(lighthouse_bin=settings.LIGHTHOUSE_BIN),
        )
        self.scan_service = ScanService(
            self.cache,
            self.queue,
            self.executor,
            config=NormalizerConfig.from_settings(settings),
            deduplicate_in_flight=settings.DEDUPLICATE_IN_FLIGHT,
        )

    async def start(self, keepalive: bool = True) -> None:
        await self.cache.initialize(
            max_attempts=self.settings.DB_INIT_MAX_ATTEMPTS,
            delay_seconds=self.settings.DB_INIT_RETRY_DELAY_SECONDS,
        )
        if keepalive:
            self.cache.start_keepalive(self.settings.CACHE_KEEPALIVE_SECONDS)

    async def close(self) -> None:
        await self.queue.close()
        await self.browser_manager.shutdown()
        await self.cache.close()
        logger.info("Scan runtime closed")
