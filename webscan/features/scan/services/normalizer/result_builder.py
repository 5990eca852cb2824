from typing import Optional

from webscan.features.scan.schemas.audit_report import RawAuditReport
from webscan.features.scan.schemas.scan import (
    AccessibilityResult,
    IssueType,
    PerformanceResult,
    ScanResult,
    ScanResults,
    ScanStatus,
)
from webscan.features.scan.services.normalizer.config import (
    ACCESSIBILITY,
    PERFORMANCE,
    NormalizerConfig,
)
from webscan.features.scan.services.normalizer.metrics import (
    extract_accessibility_metrics,
    extract_performance_metrics,
)
from webscan.features.scan.services.normalizer.report_normalizer import normalize
from webscan.platform.utils.clock import now_ms


def _split(issues):
    errors = [issue for issue in issues if issue.type == IssueType.error]
    alerts = [issue for issue in issues if issue.type == IssueType.alert]
    return errors, alerts


def build_scan_result(
    original_url: str,
    report: RawAuditReport,
    config: NormalizerConfig,
    timestamp: Optional[int] = None,
) -> ScanResult:
    """Assemble the completed ScanResult for one raw report."""
    perf_errors, perf_alerts = _split(normalize(report, PERFORMANCE, config))
    a11y_errors, a11y_alerts = _split(normalize(report, ACCESSIBILITY, config))

    return ScanResult(
        status=ScanStatus.completed,
        url=report.final_url or original_url,
        original_url=original_url,
        results=ScanResults(
            performance=PerformanceResult(
                errors=perf_errors,
                alerts=perf_alerts,
                metrics=extract_performance_metrics(report),
            ),
            accessibility=AccessibilityResult(
                errors=a11y_errors,
                alerts=a11y_alerts,
                metrics=extract_accessibility_metrics(report, config),
            ),
        ),
        timestamp=timestamp if timestamp is not None else now_ms(),
    )
