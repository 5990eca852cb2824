"""
Metric extraction.

Projects the raw report onto the fixed PerformanceMetrics and
AccessibilityMetrics shapes. Missing values degrade to zero and a synthesized
display string; these functions never raise on absent data.
"""
import math
from typing import Dict, Optional

from webscan.features.scan.schemas.audit_report import AuditResult, RawAuditReport, ScoreDisplayMode
from webscan.features.scan.schemas.scan import AccessibilityMetrics, MetricValue, PerformanceMetrics
from webscan.features.scan.services.normalizer.config import (
    ACCESSIBILITY,
    PERFORMANCE,
    NormalizerConfig,
)
from webscan.features.scan.services.normalizer.report_normalizer import classify_audit


def _finite(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def category_score(report: RawAuditReport, category: str) -> int:
    """0-100 integer, rounded half-up and clamped; 0 when the category is absent."""
    entry = report.categories.get(category)
    raw = _finite(entry.score) if entry is not None else None
    if raw is None:
        return 0
    return max(0, min(100, int(math.floor(raw * 100 + 0.5))))


def format_seconds(raw: Optional[float]) -> str:
    if raw is None:
        return "0 s"
    return f"{raw / 1000:.1f} s"


def format_milliseconds(raw: Optional[float]) -> str:
    if raw is None:
        return "0 ms"
    return f"{int(math.floor(raw + 0.5))} ms"


def format_unitless(raw: Optional[float]) -> str:
    return f"{(raw or 0):.3f}"


def _metric(audits: Dict[str, AuditResult], audit_id: str, unit: str) -> MetricValue:
    audit = audits.get(audit_id)
    raw = _finite(audit.numeric_value) if audit is not None else None
    display = audit.display_value if audit is not None else None

    if unit == "s":
        value = raw / 1000 if raw is not None else 0
        fallback = format_seconds(raw)
    elif unit == "ms":
        value = raw or 0
        fallback = format_milliseconds(raw)
    else:
        value = raw or 0
        fallback = format_unitless(raw)

    return MetricValue(value=value, display_value=display or fallback)


def extract_performance_metrics(report: RawAuditReport) -> PerformanceMetrics:
    audits = report.audits
    return PerformanceMetrics(
        score=category_score(report, PERFORMANCE),
        first_contentful_paint=_metric(audits, "first-contentful-paint", "s"),
        speed_index=_metric(audits, "speed-index", "s"),
        largest_contentful_paint=_metric(audits, "largest-contentful-paint", "s"),
        time_to_interactive=_metric(audits, "interactive", "s"),
        total_blocking_time=_metric(audits, "total-blocking-time", "ms"),
        cumulative_layout_shift=_metric(audits, "cumulative-layout-shift", ""),
    )


def _count(value: int, singular: str, plural: str) -> MetricValue:
    return MetricValue(value=value, display_value=f"{value} {singular if value == 1 else plural}")


def extract_accessibility_metrics(
    report: RawAuditReport,
    config: Optional[NormalizerConfig] = None,
) -> AccessibilityMetrics:
    config = config or NormalizerConfig()

    passed = failed = manual = not_applicable = flagged = 0
    for audit_id in config.accessibility_audit_ids:
        audit = report.audits.get(audit_id)
        if audit is None:
            continue
        mode = audit.score_display_mode
        if mode == ScoreDisplayMode.MANUAL:
            manual += 1
        elif mode == ScoreDisplayMode.NOT_APPLICABLE:
            not_applicable += 1
        elif _finite(audit.score) is None:
            continue
        elif classify_audit(audit, config) is None:
            passed += 1
        else:
            failed += 1
            flagged += len(audit.items)

    if config.include_custom_checks:
        flagged += sum(len(finding.elements) for finding in report.custom_findings)

    return AccessibilityMetrics(
        score=category_score(report, ACCESSIBILITY),
        passed_audits=_count(passed, "audit", "audits"),
        failed_audits=_count(failed, "audit", "audits"),
        manual_checks=_count(manual, "check", "checks"),
        not_applicable=_count(not_applicable, "audit", "audits"),
        flagged_elements=_count(flagged, "element", "elements"),
    )
