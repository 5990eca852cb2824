"""
Scan Schemas

Request model for the scan endpoint and the ScanResult document returned to
callers and persisted in the result cache.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

SCAN_RESULT_SCHEMA_VERSION = 1


class ScanRequest(BaseModel):
    """Request to scan a single URL."""
    url: str

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
            }
        }


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IssueType(str, Enum):
    error = "error"
    alert = "alert"


class ScanStatus(str, Enum):
    completed = "completed"
    failed = "failed"


class Issue(_CamelModel):
    type: IssueType
    title: str
    description: str
    suggestion: str
    score: Optional[float] = None
    display_value: Optional[str] = None
    element: Optional[str] = None


class MetricValue(_CamelModel):
    value: float = 0
    display_value: str


class PerformanceMetrics(_CamelModel):
    score: int = Field(0, ge=0, le=100)
    first_contentful_paint: MetricValue
    speed_index: MetricValue
    largest_contentful_paint: MetricValue
    time_to_interactive: MetricValue
    total_blocking_time: MetricValue
    cumulative_layout_shift: MetricValue


class AccessibilityMetrics(_CamelModel):
    score: int = Field(0, ge=0, le=100)
    passed_audits: MetricValue
    failed_audits: MetricValue
    manual_checks: MetricValue
    not_applicable: MetricValue
    flagged_elements: MetricValue


class CategoryResult(_CamelModel):
    errors: List[Issue] = Field(default_factory=list)
    alerts: List[Issue] = Field(default_factory=list)

    @computed_field(alias="totalErrors")
    @property
    def total_errors(self) -> int:
        return len(self.errors)

    @computed_field(alias="totalAlerts")
    @property
    def total_alerts(self) -> int:
        return len(self.alerts)


class PerformanceResult(CategoryResult):
    metrics: PerformanceMetrics


class AccessibilityResult(CategoryResult):
    metrics: AccessibilityMetrics


class ScanResults(_CamelModel):
    performance: PerformanceResult
    accessibility: AccessibilityResult


class ScanResult(_CamelModel):
    schema_version: int = SCAN_RESULT_SCHEMA_VERSION
    status: ScanStatus = ScanStatus.completed
    url: str
    original_url: str
    results: ScanResults
    timestamp: int

    def to_document(self) -> dict:
        """JSON-ready dict with camelCase keys, used at the storage and HTTP boundary."""
        return self.model_dump(mode="json", by_alias=True)
