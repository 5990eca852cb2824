"""
One browser tab scoped to a single scan attempt.
"""
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from pydantic import BaseModel, ConfigDict
from selenium.common.exceptions import TimeoutException, WebDriverException
from urllib3.exceptions import HTTPError

from webscan.features.scan.exceptions import (
    BrowserLaunchError,
    NavigationError,
    ResourceCleanupError,
)

if TYPE_CHECKING:
    from webscan.features.scan.services.browser.browser_manager import BrowserHandle

logger = logging.getLogger(__name__)

# A dead chromedriver surfaces as urllib3 errors (MaxRetryError), not WebDriverException
DRIVER_ERRORS = (WebDriverException, HTTPError, OSError)

# Navigation Timing Level 2 exposes the document's HTTP status (Chrome >= 109)
NAVIGATION_STATUS_SCRIPT = (
    "const entry = performance.getEntriesByType('navigation')[0];"
    "return entry && entry.responseStatus ? entry.responseStatus : null;"
)


def _reason(error: BaseException) -> str:
    return getattr(error, "msg", None) or str(error)


class NavigationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: Optional[int]
    final_url: str


class PageSession:
    def __init__(self, browser: "BrowserHandle", window_handle: str):
        self.browser = browser
        self.window_handle = window_handle
        self.closed = False

    @classmethod
    async def open(cls, browser: "BrowserHandle") -> "PageSession":
        def new_tab(driver):
            driver.switch_to.new_window("tab")
            return driver.current_window_handle

        try:
            handle = await browser.call(new_tab)
        except DRIVER_ERRORS as e:
            raise BrowserLaunchError(f"Failed to open a new page: {_reason(e)}") from e
        return cls(browser, handle)

    async def run(self, fn: Callable[[Any], Any]) -> Any:
        """Run ``fn(driver)`` in a worker thread with this tab focused."""
        return await self.browser.call(fn, window=self.window_handle)

    async def set_user_agent(self, user_agent: str) -> None:
        try:
            await self.run(
                lambda driver: driver.execute_cdp_cmd(
                    "Network.setUserAgentOverride", {"userAgent": user_agent}
                )
            )
        except DRIVER_ERRORS as e:
            raise BrowserLaunchError(f"Failed to set user agent: {_reason(e)}") from e

    async def goto(self, url: str, timeout_seconds: float) -> NavigationResponse:
        def navigate(driver):
            driver.set_page_load_timeout(timeout_seconds)
            driver.get(url)
            status = driver.execute_script(NAVIGATION_STATUS_SCRIPT)
            return NavigationResponse(
                status_code=status if isinstance(status, int) else None,
                final_url=driver.current_url,
            )

        try:
            return await self.run(navigate)
        except TimeoutException as e:
            raise NavigationError(url, f"Timed out after {timeout_seconds}s loading {url}") from e
        except DRIVER_ERRORS as e:
            raise NavigationError(url, f"Failed to load {url}: {_reason(e)}") from e

    async def current_url(self) -> str:
        try:
            return await self.run(lambda driver: driver.current_url)
        except DRIVER_ERRORS as e:
            raise BrowserLaunchError(f"Failed to read page URL: {_reason(e)}") from e

    async def close(self) -> None:
        """Close the tab. Errors are logged, never raised."""
        if self.closed:
            return
        self.closed = True

        def close_tab(driver):
            driver.close()
            if self.browser.home_handle:
                driver.switch_to.window(self.browser.home_handle)

        try:
            await self.run(close_tab)
        except Exception as e:
            logger.error(ResourceCleanupError(f"Failed to close page {self.window_handle}: {e}"))
