"""
Scan Exceptions

Error taxonomy for the scan pipeline. ``ScanAttemptError`` subclasses are
recoverable and count against the executor's retry budget; ``ScanError``
subclasses are what callers of ``ScanService.scan_url`` see.
"""
from typing import Optional


class ValidationError(Exception):
    """Malformed or missing URL. Never retried."""


class ScanError(Exception):
    """A scan could not produce a result."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ScanExhaustedError(ScanError):
    """Every attempt of a scan failed."""

    def __init__(self, url: str, attempts: int, last_error: BaseException):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Scan of {url} failed after {attempts} attempts: {last_error}")


class ScanAttemptError(Exception):
    """Recoverable failure of a single scan attempt."""


class BrowserLaunchError(ScanAttemptError):
    """The browser or a page in it could not be started or driven."""


class NavigationError(ScanAttemptError):
    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class AuditEngineError(ScanAttemptError):
    pass


class ResourceCleanupError(Exception):
    """Closing a page or browser failed. Logged, never propagated."""


class StorageError(Exception):
    """Cache read or write failed."""
