from typing import List

from pydantic import BaseModel, Field, model_validator

from webscan.platform.config import (
    DEFAULT_ACCESSIBILITY_AUDIT_IDS,
    DEFAULT_PERFORMANCE_AUDIT_IDS,
)

PERFORMANCE = "performance"
ACCESSIBILITY = "accessibility"
CATEGORIES = (PERFORMANCE, ACCESSIBILITY)


class NormalizerConfig(BaseModel):
    """Thresholds, caps and per-category audit allow-lists used by the normalizer."""
    error_score_threshold: float = 0.5
    alert_score_threshold: float = 0.9
    max_errors_per_category: int = Field(3, ge=0)
    max_alerts_per_category: int = Field(5, ge=0)
    performance_audit_ids: List[str] = Field(default_factory=lambda: list(DEFAULT_PERFORMANCE_AUDIT_IDS))
    accessibility_audit_ids: List[str] = Field(default_factory=lambda: list(DEFAULT_ACCESSIBILITY_AUDIT_IDS))
    include_custom_checks: bool = True

    @model_validator(mode="after")
    def _check_thresholds(self):
        if self.alert_score_threshold < self.error_score_threshold:
            raise ValueError("alert_score_threshold must be >= error_score_threshold")
        return self

    @classmethod
    def from_settings(cls, settings) -> "NormalizerConfig":
        return cls(
            error_score_threshold=settings.ERROR_SCORE_THRESHOLD,
            alert_score_threshold=settings.ALERT_SCORE_THRESHOLD,
            max_errors_per_category=settings.MAX_ERRORS_PER_CATEGORY,
            max_alerts_per_category=settings.MAX_ALERTS_PER_CATEGORY,
            performance_audit_ids=list(settings.PERFORMANCE_AUDIT_IDS),
            accessibility_audit_ids=list(settings.ACCESSIBILITY_AUDIT_IDS),
            include_custom_checks=settings.CUSTOM_CHECKS_ENABLED,
        )

    def audit_ids_for(self, category: str) -> List[str]:
        if category == PERFORMANCE:
            return self.performance_audit_ids
        if category == ACCESSIBILITY:
            return self.accessibility_audit_ids
        raise ValueError(f"Unknown audit category: {category}")
