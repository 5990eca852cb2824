"""
Browser Manager

Owns the shared headless Chrome used by every scan. The browser is launched
lazily, checked before each lease, relaunched when found disconnected, and
quit once it has been discarded and its last lease is released.
"""
import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

from webscan.features.scan.exceptions import BrowserLaunchError, ResourceCleanupError
from webscan.features.scan.services.browser.page_session import DRIVER_ERRORS, PageSession
from webscan.platform.config import settings

logger = logging.getLogger(__name__)


class BrowserHandle:
    """
    A launched Chrome driver plus the lock that serializes commands to it.

    One WebDriver session has a single focused window, so every command
    switches to its tab and runs while holding ``_lock``.
    """

    def __init__(self, driver: webdriver.Chrome):
        self.driver = driver
        self.home_handle: Optional[str] = None
        self.leases = 0
        self.retired = False
        self._lock = threading.Lock()

    def _call_sync(self, fn: Callable[[Any], Any], window: Optional[str]) -> Any:
        with self._lock:
            if window is not None:
                self.driver.switch_to.window(window)
            return fn(self.driver)

    async def call(self, fn: Callable[[Any], Any], window: Optional[str] = None) -> Any:
        return await asyncio.to_thread(self._call_sync, fn, window)

    async def is_connected(self) -> bool:
        try:
            await self.call(lambda driver: driver.window_handles)
            return True
        except Exception as e:
            logger.warning(f"Browser health check failed: {e!r}")
            return False

    def control_endpoint(self) -> str:
        """``host:port`` of Chrome's DevTools endpoint."""
        try:
            return self.driver.capabilities["goog:chromeOptions"]["debuggerAddress"]
        except (KeyError, TypeError) as e:
            raise BrowserLaunchError("Browser did not expose a DevTools endpoint") from e

    async def quit(self) -> None:
        try:
            await asyncio.to_thread(self.driver.quit)
        except Exception as e:
            logger.error(ResourceCleanupError(f"Failed to quit browser: {e}"))


class BrowserManager:
    def __init__(
        self,
        user_agent: Optional[str] = None,
        driver_factory: Optional[Callable[[], webdriver.Chrome]] = None,
    ):
        self.user_agent = user_agent or settings.BROWSER_USER_AGENT
        self._driver_factory = driver_factory or self.build_driver
        self._browser: Optional[BrowserHandle] = None
        self._lock = asyncio.Lock()

    def build_driver(self) -> webdriver.Chrome:
        chrome_options = Options()
        chrome_options.add_argument('--headless=new')
        chrome_options.add_argument('--no-sandbox')
        chrome_options.add_argument('--disable-setuid-sandbox')
        chrome_options.add_argument('--disable-dev-shm-usage')
        # Lighthouse attaches to this port; 0 lets Chrome pick a free one
        chrome_options.add_argument('--remote-debugging-port=0')
        chrome_options.add_argument(f'--user-agent={self.user_agent}')
        if settings.CHROME_BINARY:
            chrome_options.binary_location = settings.CHROME_BINARY

        if settings.CHROMEDRIVER_PATH:
            driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
            driver = webdriver.Chrome(service=driver_service, options=chrome_options)
        elif settings.USE_WEBDRIVER_MANAGER:
            driver_service = Service(ChromeDriverManager().install())
            driver = webdriver.Chrome(service=driver_service, options=chrome_options)
        else:
            driver = webdriver.Chrome(options=chrome_options)

        return driver

    async def _launch(self) -> BrowserHandle:
        logger.info("Launching headless browser")
        try:
            driver = await asyncio.to_thread(self._driver_factory)
        except DRIVER_ERRORS as e:
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        browser = BrowserHandle(driver)
        try:
            browser.home_handle = await browser.call(lambda d: d.current_window_handle)
        except DRIVER_ERRORS as e:
            await browser.quit()
            raise BrowserLaunchError(f"Browser launched but is unresponsive: {e}") from e
        return browser

    async def _retire(self, browser: BrowserHandle) -> None:
        browser.retired = True
        if self._browser is browser:
            self._browser = None
        if browser.leases == 0:
            await browser.quit()

    async def acquire(self) -> BrowserHandle:
        """Lease the shared browser, launching or relaunching it when needed."""
        async with self._lock:
            browser = self._browser
            if browser is not None and not await browser.is_connected():
                logger.warning("Shared browser is disconnected; relaunching")
                await self._retire(browser)
                browser = None
            if browser is None:
                browser = await self._launch()
                self._browser = browser
            browser.leases += 1
            return browser

    async def release(self, browser: BrowserHandle) -> None:
        async with self._lock:
            browser.leases -= 1
            if browser.retired and browser.leases == 0:
                await browser.quit()

    async def discard(self) -> None:
        """Drop the shared browser so the next lease launches a fresh one."""
        async with self._lock:
            if self._browser is not None:
                logger.info("Discarding shared browser")
                await self._retire(self._browser)

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[PageSession]:
        """Lease the browser and open a tab; the tab is closed on every exit path."""
        browser = await self.acquire()
        page = None
        try:
            page = await PageSession.open(browser)
            yield page
        finally:
            if page is not None:
                await page.close()
            await self.release(browser)

    async def shutdown(self) -> None:
        await self.discard()
