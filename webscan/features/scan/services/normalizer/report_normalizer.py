"""
Audit report normalization.

Turns the Lighthouse audits of one category into a short, classified list of
user-facing issues. Everything here is pure: the same report and config always
produce the same issues in the same order.
"""
import re
from typing import Any, Dict, List, Optional

from webscan.features.scan.schemas.audit_report import (
    AuditResult,
    CustomFinding,
    RawAuditReport,
    ScoreDisplayMode,
)
from webscan.features.scan.schemas.scan import Issue, IssueType
from webscan.features.scan.services.normalizer.config import ACCESSIBILITY, NormalizerConfig

ELEMENT_MAX_LENGTH = 200
NO_ELEMENT = "N/A"
GENERIC_SUGGESTION = "Review the issue and update the relevant HTML/CSS."

DESCRIPTIONS = {
    'first-contentful-paint': 'First Contentful Paint marks the time at which the first text or image is painted. [Learn more about the First Contentful Paint metric](https://developer.chrome.com/docs/lighthouse/performance/first-contentful-paint/).',
    'speed-index': 'Speed Index shows how quickly the contents of a page are visibly populated. [Learn more about the Speed Index metric](https://developer.chrome.com/docs/lighthouse/performance/speed-index/).',
    'largest-contentful-paint': 'Largest Contentful Paint marks the time at which the largest text or image is painted. [Learn more about the Largest Contentful Paint metric](https://developer.chrome.com/docs/lighthouse/performance/lighthouse-largest-contentful-paint/).',
    'interactive': 'Time to Interactive is the amount of time it takes for the page to become fully interactive. [Learn more about the Time to Interactive metric](https://developer.chrome.com/docs/lighthouse/performance/interactive/).',
    'total-blocking-time': 'Total Blocking Time measures the total time during which tasks block the main thread. [Learn more](https://web.dev/tbt/).',
    'cumulative-layout-shift': 'Cumulative Layout Shift measures the movement of visible elements within the viewport. [Learn more about the Cumulative Layout Shift metric](https://web.dev/articles/cls).',
    'server-response-time': 'Time to First Byte measures the time from navigation to the first byte received. [Learn more](https://web.dev/time-to-first-byte/).',
    'render-blocking-resources': 'Render-blocking resources delay the first paint of your page. [Learn more](https://web.dev/render-blocking-resources/).',
    'uses-long-cache-ttl': 'A long cache lifetime can speed up repeat visits to your page. [Learn more](https://web.dev/uses-long-cache-ttl/).',
}

SUGGESTIONS = {
    'image-alt': 'Add a descriptive "alt" attribute to the <img> tag (e.g., alt="description").',
    'color-contrast': 'Adjust CSS to increase contrast (e.g., change text color to #000).',
    'link-name': 'Add meaningful text inside the <a> tag (e.g., <a href="#">Learn More</a>).',
    'button-name': 'Add text or an "aria-label" to the <button> (e.g., <button aria-label="Submit">).',
    'render-blocking-resources': 'Defer non-critical CSS/JS (e.g., add "defer" to <script>).',
    'document-title': 'Add a <title> tag to the <head> (e.g., <title>My Website</title>).',
}


def audit_title(audit_id: str) -> str:
    """``image-alt`` -> ``Image Alt``."""
    words = [word for word in re.split(r"[-_\s]+", audit_id) if word]
    return " ".join(word[:1].upper() + word[1:] for word in words)


def truncate_element(value: str, max_length: int = ELEMENT_MAX_LENGTH) -> str:
    """Truncate a string to max_length, adding ellipsis if truncated."""
    if len(value) <= max_length:
        return value
    return value[:max_length] + "..."


def classify_audit(audit: AuditResult, config: NormalizerConfig) -> Optional[IssueType]:
    mode = audit.score_display_mode
    if mode in (ScoreDisplayMode.MANUAL, ScoreDisplayMode.NOT_APPLICABLE):
        return IssueType.alert

    score = audit.score
    if score is None:
        return None
    if score < config.error_score_threshold:
        return IssueType.error
    if score < config.alert_score_threshold:
        return IssueType.alert
    return None


def _element_reference(item: Dict[str, Any]) -> Optional[str]:
    node = item.get("node")
    if isinstance(node, dict):
        reference = node.get("snippet") or node.get("selector")
        if reference:
            return str(reference)
    selector = item.get("selector")
    return str(selector) if selector else None


def first_element(items: List[Dict[str, Any]]) -> str:
    for item in items:
        reference = _element_reference(item)
        if reference:
            return truncate_element(reference)
    return NO_ELEMENT


def instance_suggestion(count: int) -> str:
    return f"Fix {count} instance" if count == 1 else f"Fix {count} instances"


def build_suggestion(audit_id: str, items: List[Dict[str, Any]]) -> str:
    if items:
        return instance_suggestion(len(items))
    return SUGGESTIONS.get(audit_id, GENERIC_SUGGESTION)


def build_description(audit_id: str, audit: AuditResult, category: str) -> str:
    return (
        DESCRIPTIONS.get(audit_id)
        or audit.description
        or f"{category.capitalize()} issue detected."
    )


def build_audit_issue(audit_id: str, audit: AuditResult, issue_type: IssueType, category: str) -> Issue:
    items = audit.items
    return Issue(
        type=issue_type,
        title=audit_title(audit_id),
        description=build_description(audit_id, audit, category),
        suggestion=build_suggestion(audit_id, items),
        score=audit.score,
        display_value=audit.display_value,
        element=first_element(items),
    )


def build_custom_issues(findings: List[CustomFinding]) -> List[Issue]:
    issues = []
    for finding in findings:
        elements = [element for element in finding.elements if element]
        if not elements:
            continue
        issues.append(
            Issue(
                type=IssueType.error,
                title=finding.title,
                description=finding.description,
                suggestion=instance_suggestion(len(elements)),
                score=0,
                display_value=None,
                element=truncate_element(elements[0]),
            )
        )
    return issues


def cap_issues(issues: List[Issue], config: NormalizerConfig) -> List[Issue]:
    """Errors first (stable), then keep at most the configured number of each type."""
    errors = [issue for issue in issues if issue.type == IssueType.error]
    alerts = [issue for issue in issues if issue.type == IssueType.alert]
    return errors[:config.max_errors_per_category] + alerts[:config.max_alerts_per_category]


def normalize(report: RawAuditReport, category: str, config: NormalizerConfig) -> List[Issue]:
    """
    Classify the allow-listed audits of ``category`` into issues.

    Audits are visited in allow-list order. For accessibility, findings of the
    custom DOM checks are appended before the list is sorted and capped.
    """
    issues: List[Issue] = []
    for audit_id in config.audit_ids_for(category):
        audit = report.audits.get(audit_id)
        if audit is None:
            continue
        issue_type = classify_audit(audit, config)
        if issue_type is None:
            continue
        issues.append(build_audit_issue(audit_id, audit, issue_type, category))

    if category == ACCESSIBILITY and config.include_custom_checks:
        issues.extend(build_custom_issues(report.custom_findings))

    return cap_issues(issues, config)
