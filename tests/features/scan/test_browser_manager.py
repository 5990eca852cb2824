from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException
from urllib3.exceptions import MaxRetryError

from webscan.features.scan.exceptions import BrowserLaunchError, NavigationError
from webscan.features.scan.services.browser.browser_manager import BrowserHandle, BrowserManager
from webscan.features.scan.services.browser.page_session import NAVIGATION_STATUS_SCRIPT


def make_driver(debugger_address="localhost:9222"):
    driver = MagicMock()
    driver.current_window_handle = "home"
    driver.window_handles = ["home"]
    driver.capabilities = {"goog:chromeOptions": {"debuggerAddress": debugger_address}}
    tabs = iter(f"tab-{index}" for index in range(1, 100))

    def new_window(kind):
        driver.current_window_handle = next(tabs)

    driver.switch_to.new_window.side_effect = new_window
    driver.execute_script.return_value = 200
    driver.current_url = "https://example.com/"
    return driver


def make_manager(*drivers):
    factory = MagicMock(side_effect=list(drivers))
    return BrowserManager(user_agent="TestAgent/1.0", driver_factory=factory), factory


@pytest.mark.asyncio
async def test_browser_is_launched_lazily_and_shared():
    driver = make_driver()
    manager, factory = make_manager(driver)
    factory.assert_not_called()

    async with manager.open_page() as first:
        assert first.window_handle == "tab-1"
    async with manager.open_page() as second:
        assert second.window_handle == "tab-2"

    assert factory.call_count == 1


@pytest.mark.asyncio
async def test_page_is_closed_and_lease_released_on_exit():
    driver = make_driver()
    manager, _ = make_manager(driver)

    with pytest.raises(RuntimeError):
        async with manager.open_page() as page:
            browser = page.browser
            assert browser.leases == 1
            raise RuntimeError("attempt failed")

    driver.close.assert_called_once()
    driver.switch_to.window.assert_called_with("home")
    assert page.closed is True
    assert browser.leases == 0


@pytest.mark.asyncio
async def test_page_close_errors_are_not_raised():
    driver = make_driver()
    driver.close.side_effect = WebDriverException("target window already closed")
    manager, _ = make_manager(driver)

    async with manager.open_page():
        pass

    driver.close.assert_called_once()


@pytest.mark.asyncio
async def test_disconnected_browser_is_relaunched():
    stale = make_driver()
    fresh = make_driver()
    manager, factory = make_manager(stale, fresh)

    async with manager.open_page():
        pass
    type(stale).window_handles = PropertyMock(side_effect=WebDriverException("session deleted"))

    async with manager.open_page() as page:
        assert page.browser.driver is fresh

    assert factory.call_count == 2
    stale.quit.assert_called_once()


@pytest.mark.asyncio
async def test_dead_driver_process_is_relaunched():
    stale = make_driver()
    fresh = make_driver()
    manager, factory = make_manager(stale, fresh)

    async with manager.open_page():
        pass
    # chromedriver gone: the HTTP client gives up before Selenium sees a response
    type(stale).window_handles = PropertyMock(
        side_effect=MaxRetryError(None, "/session/abc/window/handles", "Connection refused")
    )
    stale.quit.side_effect = MaxRetryError(None, "/session/abc", "Connection refused")

    async with manager.open_page() as page:
        assert page.browser.driver is fresh

    assert factory.call_count == 2


@pytest.mark.asyncio
async def test_unreachable_driver_at_launch_raises_browser_launch_error():
    driver = make_driver()
    type(driver).current_window_handle = PropertyMock(
        side_effect=MaxRetryError(None, "/session/abc/window", "Connection refused")
    )
    manager, _ = make_manager(driver)

    with pytest.raises(BrowserLaunchError):
        async with manager.open_page():
            pass

    driver.quit.assert_called_once()


@pytest.mark.asyncio
async def test_discard_without_leases_quits_immediately():
    driver = make_driver()
    manager, factory = make_manager(driver, make_driver())

    async with manager.open_page():
        pass
    await manager.discard()

    driver.quit.assert_called_once()
    async with manager.open_page():
        pass
    assert factory.call_count == 2


@pytest.mark.asyncio
async def test_discard_while_leased_waits_for_release():
    driver = make_driver()
    manager, _ = make_manager(driver)

    async with manager.open_page():
        await manager.discard()
        driver.quit.assert_not_called()

    driver.quit.assert_called_once()


@pytest.mark.asyncio
async def test_launch_failure_raises_browser_launch_error():
    factory = MagicMock(side_effect=WebDriverException("chrome not reachable"))
    manager = BrowserManager(driver_factory=factory)

    with pytest.raises(BrowserLaunchError):
        async with manager.open_page():
            pass


@pytest.mark.asyncio
async def test_shutdown_quits_browser():
    driver = make_driver()
    manager, _ = make_manager(driver)
    async with manager.open_page():
        pass

    await manager.shutdown()

    driver.quit.assert_called_once()


def test_control_endpoint():
    assert BrowserHandle(make_driver("127.0.0.1:40123")).control_endpoint() == "127.0.0.1:40123"

    driver = make_driver()
    driver.capabilities = {}
    with pytest.raises(BrowserLaunchError):
        BrowserHandle(driver).control_endpoint()


def test_build_driver_options():
    manager = BrowserManager(user_agent="TestAgent/1.0")

    with patch("webscan.features.scan.services.browser.browser_manager.settings") as mock_settings, \
         patch("webscan.features.scan.services.browser.browser_manager.webdriver.Chrome") as chrome:
        mock_settings.CHROME_BINARY = None
        mock_settings.CHROMEDRIVER_PATH = None
        mock_settings.USE_WEBDRIVER_MANAGER = False
        manager.build_driver()

    options = chrome.call_args.kwargs["options"]
    assert "--headless=new" in options.arguments
    assert "--remote-debugging-port=0" in options.arguments
    assert "--user-agent=TestAgent/1.0" in options.arguments


class TestPageSession:
    @pytest.mark.asyncio
    async def test_goto_reports_status_and_final_url(self):
        driver = make_driver()
        driver.current_url = "https://example.com/home"
        manager, _ = make_manager(driver)

        async with manager.open_page() as page:
            await page.set_user_agent("TestAgent/1.0")
            response = await page.goto("https://example.com", 15)

        assert response.status_code == 200
        assert response.final_url == "https://example.com/home"
        driver.set_page_load_timeout.assert_called_with(15)
        driver.get.assert_called_with("https://example.com")
        driver.execute_script.assert_called_with(NAVIGATION_STATUS_SCRIPT)
        driver.execute_cdp_cmd.assert_called_with(
            "Network.setUserAgentOverride", {"userAgent": "TestAgent/1.0"}
        )

    @pytest.mark.asyncio
    async def test_unknown_status_is_none(self):
        driver = make_driver()
        driver.execute_script.return_value = None
        manager, _ = make_manager(driver)

        async with manager.open_page() as page:
            response = await page.goto("https://example.com", 15)

        assert response.status_code is None

    @pytest.mark.asyncio
    async def test_goto_timeout_raises_navigation_error(self):
        driver = make_driver()
        driver.get.side_effect = TimeoutException("timeout: Timed out receiving message from renderer")
        manager, _ = make_manager(driver)

        async with manager.open_page() as page:
            with pytest.raises(NavigationError, match="Timed out"):
                await page.goto("https://example.com", 15)

    @pytest.mark.asyncio
    async def test_run_focuses_the_tab(self):
        driver = make_driver()
        manager, _ = make_manager(driver)

        async with manager.open_page() as page:
            result = await page.run(lambda d: d.current_window_handle)

        driver.switch_to.window.assert_any_call("tab-1")
        assert result == "tab-1"

    @pytest.mark.asyncio
    async def test_dead_driver_maps_to_scan_attempt_errors(self):
        driver = make_driver()
        manager, _ = make_manager(driver)
        dead = MaxRetryError(None, "/session/abc/url", "Connection refused")

        async with manager.open_page() as page:
            driver.execute_cdp_cmd.side_effect = dead
            driver.get.side_effect = dead
            type(driver).current_url = PropertyMock(side_effect=dead)

            with pytest.raises(BrowserLaunchError):
                await page.set_user_agent("TestAgent/1.0")
            with pytest.raises(NavigationError, match="Failed to load"):
                await page.goto("https://example.com", 15)
            with pytest.raises(BrowserLaunchError):
                await page.current_url()

    @pytest.mark.asyncio
    async def test_open_tab_on_dead_driver_raises_browser_launch_error(self):
        driver = make_driver()
        manager, _ = make_manager(driver)
        async with manager.open_page():
            pass
        driver.switch_to.new_window.side_effect = MaxRetryError(None, "/session/abc/window/new", "Connection refused")
        # health check passes, the tab cannot be opened
        with pytest.raises(BrowserLaunchError):
            async with manager.open_page():
                pass
