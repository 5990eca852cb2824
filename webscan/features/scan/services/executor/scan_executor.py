"""
Scan Executor

Produces a raw audit report for one URL: lease the shared browser, open a tab,
navigate, settle, run the custom DOM checks, then hand the rendered page to
Lighthouse. Each attempt is retried on recoverable failures, and the shared
browser is discarded once a scan has failed twice so later attempts get a
fresh one.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from webscan.features.scan.exceptions import (
    NavigationError,
    ScanAttemptError,
    ScanExhaustedError,
)
from webscan.features.scan.schemas.audit_report import CustomFinding, RawAuditReport
from webscan.features.scan.services.audit.dom_checks import DomAccessibilityChecks
from webscan.features.scan.services.audit.lighthouse_runner import AuditOptions, LighthouseRunner
from webscan.features.scan.services.browser.browser_manager import BrowserManager
from webscan.features.scan.services.browser.page_session import DRIVER_ERRORS, PageSession
from webscan.platform.config import settings
from webscan.platform.utils.retry import RetryExhaustedError, retry_async

logger = logging.getLogger(__name__)

NOT_MODIFIED = 304
DISCARD_BROWSER_AFTER_ATTEMPT = 2


class ScanPhase(str, Enum):
    LAUNCHING = "launching"
    PAGE_OPEN = "page_open"
    NAVIGATING = "navigating"
    AUDITING = "auditing"
    DONE = "done"
    CLEANUP = "cleanup"


def is_successful_status(status_code: Optional[int]) -> bool:
    """2xx and 304 load a usable document; an unknown status is given the benefit of the doubt."""
    if status_code is None:
        return True
    return 200 <= status_code < 300 or status_code == NOT_MODIFIED


def default_audit_options() -> AuditOptions:
    only_audits = None
    if settings.RESTRICT_AUDITS_TO_ALLOW_LIST:
        only_audits = list(settings.PERFORMANCE_AUDIT_IDS) + list(settings.ACCESSIBILITY_AUDIT_IDS)
    return AuditOptions(only_audits=only_audits, timeout_seconds=settings.AUDIT_TIMEOUT_SECONDS)


class ScanExecutor:
    def __init__(
        self,
        browser_manager: BrowserManager,
        lighthouse_runner: LighthouseRunner,
        audit_options: Optional[AuditOptions] = None,
        max_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        navigation_timeout_seconds: Optional[float] = None,
        settle_delay_seconds: Optional[float] = None,
        user_agent: Optional[str] = None,
        custom_checks_enabled: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.browser_manager = browser_manager
        self.lighthouse_runner = lighthouse_runner
        self.audit_options = audit_options or default_audit_options()
        self.max_attempts = max_attempts or settings.SCAN_MAX_ATTEMPTS
        self.retry_delay_seconds = (
            settings.SCAN_RETRY_DELAY_SECONDS if retry_delay_seconds is None else retry_delay_seconds
        )
        self.navigation_timeout_seconds = navigation_timeout_seconds or settings.NAVIGATION_TIMEOUT_SECONDS
        self.settle_delay_seconds = (
            settings.SETTLE_DELAY_SECONDS if settle_delay_seconds is None else settle_delay_seconds
        )
        self.user_agent = user_agent or settings.BROWSER_USER_AGENT
        self.custom_checks_enabled = (
            settings.CUSTOM_CHECKS_ENABLED if custom_checks_enabled is None else custom_checks_enabled
        )
        self._sleep = sleep

    async def execute_scan(self, url: str) -> RawAuditReport:
        """
        Scan ``url`` with up to ``max_attempts`` attempts.

        Raises:
            ScanExhaustedError: every attempt failed with a recoverable error
        """

        async def attempt_scan(attempt: int) -> RawAuditReport:
            return await self._attempt(url, attempt)

        async def on_failure(attempt: int, error: BaseException) -> None:
            if attempt >= DISCARD_BROWSER_AFTER_ATTEMPT:
                await self.browser_manager.discard()

        try:
            return await retry_async(
                attempt_scan,
                max_attempts=self.max_attempts,
                delay_seconds=self.retry_delay_seconds,
                retry_on=(ScanAttemptError,),
                on_failure=on_failure,
                sleep=self._sleep,
            )
        except RetryExhaustedError as e:
            logger.error(f"Scan of {url} exhausted {e.attempts} attempts: {e.last_error}")
            raise ScanExhaustedError(url, e.attempts, e.last_error) from e.last_error

    async def _attempt(self, url: str, attempt: int) -> RawAuditReport:
        phase = ScanPhase.LAUNCHING
        logger.info(f"Scan attempt {attempt}/{self.max_attempts} for {url}")
        try:
            async with self.browser_manager.open_page() as page:
                phase = ScanPhase.PAGE_OPEN
                await page.set_user_agent(self.user_agent)

                phase = ScanPhase.NAVIGATING
                response = await page.goto(url, self.navigation_timeout_seconds)
                if not is_successful_status(response.status_code):
                    raise NavigationError(
                        url,
                        f"Failed to load page: {url} (HTTP {response.status_code})",
                        status_code=response.status_code,
                    )
                if response.final_url != url:
                    logger.info(f"{url} redirected to {response.final_url}")

                await self._sleep(self.settle_delay_seconds)
                findings = await self._run_custom_checks(page) if self.custom_checks_enabled else []

                phase = ScanPhase.AUDITING
                final_url = await page.current_url()
                report = await self.lighthouse_runner.run_audit(
                    final_url,
                    page.browser.control_endpoint(),
                    self.audit_options,
                )
                phase = ScanPhase.CLEANUP
        except ScanAttemptError as e:
            logger.error(f"Scan attempt {attempt} for {url} failed while {phase.value}: {e}")
            raise

        logger.info(f"Scan attempt {attempt} for {url} {ScanPhase.DONE.value}")
        return report.model_copy(update={"custom_findings": findings})

    async def _run_custom_checks(self, page: PageSession) -> List[CustomFinding]:
        try:
            return await page.run(DomAccessibilityChecks.run_all)
        except DRIVER_ERRORS as e:
            logger.warning(f"Custom accessibility checks skipped: {e}")
            return []
