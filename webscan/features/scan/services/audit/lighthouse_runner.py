"""
Lighthouse Runner

Runs the Lighthouse CLI against an already-open Chrome, attaching through the
browser's DevTools endpoint, and parses the JSON report it writes to stdout.
"""
import asyncio
import contextlib
import json
import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from webscan.features.scan.exceptions import AuditEngineError
from webscan.features.scan.schemas.audit_report import RawAuditReport
from webscan.features.scan.services.normalizer.config import CATEGORIES
from webscan.platform.config import settings

logger = logging.getLogger(__name__)

STDERR_TAIL_LENGTH = 500


class AuditOptions(BaseModel):
    categories: List[str] = Field(default_factory=lambda: list(CATEGORIES))
    only_audits: Optional[List[str]] = None
    preset: Optional[str] = "desktop"
    throttling_method: str = "simulate"
    max_wait_for_load_ms: int = 60000
    timeout_seconds: float = 120


def split_endpoint(endpoint: str):
    """``"localhost:9222"`` -> ``("localhost", 9222)``."""
    host, _, port = endpoint.rpartition(":")
    try:
        return host or "localhost", int(port)
    except ValueError as e:
        raise AuditEngineError(f"Invalid browser control endpoint: {endpoint!r}") from e


class LighthouseRunner:
    def __init__(
        self,
        lighthouse_bin: Optional[str] = None,
        subprocess_factory: Callable = asyncio.create_subprocess_exec,
    ):
        self.lighthouse_bin = lighthouse_bin or settings.LIGHTHOUSE_BIN
        self._subprocess_factory = subprocess_factory

    def build_command(self, page_url: str, endpoint: str, options: AuditOptions) -> List[str]:
        host, port = split_endpoint(endpoint)
        command = [
            self.lighthouse_bin,
            page_url,
            f"--hostname={host}",
            f"--port={port}",
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            f"--only-categories={','.join(options.categories)}",
            f"--throttling-method={options.throttling_method}",
            f"--max-wait-for-load={options.max_wait_for_load_ms}",
        ]
        if options.only_audits:
            command.append(f"--only-audits={','.join(options.only_audits)}")
        if options.preset:
            command.append(f"--preset={options.preset}")
        return command

    async def run_audit(self, page_url: str, endpoint: str, options: Optional[AuditOptions] = None) -> RawAuditReport:
        """
        Audit ``page_url`` in the browser listening on ``endpoint``.

        Raises:
            AuditEngineError: the CLI could not start, exited non-zero, timed
                out, printed something other than a report, or reported a
                runtime error.
        """
        options = options or AuditOptions()
        command = self.build_command(page_url, endpoint, options)
        logger.info(f"Running Lighthouse on {page_url} via {endpoint}")

        try:
            process = await self._subprocess_factory(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AuditEngineError(f"Failed to start Lighthouse ({self.lighthouse_bin}): {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=options.timeout_seconds)
        except asyncio.TimeoutError as e:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            with contextlib.suppress(Exception):
                await process.wait()
            raise AuditEngineError(f"Lighthouse timed out after {options.timeout_seconds}s on {page_url}") from e

        if process.returncode != 0:
            tail = (stderr or b"").decode(errors="replace").strip()[-STDERR_TAIL_LENGTH:]
            raise AuditEngineError(f"Lighthouse exited with code {process.returncode}: {tail}")

        return self.parse_report(stdout)

    @staticmethod
    def parse_report(stdout: bytes) -> RawAuditReport:
        try:
            payload = json.loads(stdout)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise AuditEngineError(f"Lighthouse produced invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise AuditEngineError("Lighthouse report is not a JSON object")

        try:
            report = RawAuditReport.model_validate(payload)
        except PydanticValidationError as e:
            raise AuditEngineError(f"Lighthouse report has an unexpected shape: {e}") from e

        if report.runtime_error:
            code = report.runtime_error.get("code", "UNKNOWN")
            message = report.runtime_error.get("message", "")
            raise AuditEngineError(f"Lighthouse runtime error {code}: {message}")

        logger.info(f"Lighthouse {report.lighthouse_version} audited {report.final_url} ({len(report.audits)} audits)")
        return report
