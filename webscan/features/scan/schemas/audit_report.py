"""
Audit Report Schemas

Typed view over the Lighthouse result (``lhr``) plus the findings of the
custom DOM checks. Only the fields the normalizer reads are declared; the rest
of Lighthouse's report is ignored.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ScoreDisplayMode:
    BINARY = "binary"
    NUMERIC = "numeric"
    MANUAL = "manual"
    NOT_APPLICABLE = "notApplicable"
    INFORMATIVE = "informative"
    ERROR = "error"


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AuditResult(_ReportModel):
    id: Optional[str] = None
    title: Optional[str] = None
    score: Optional[float] = None
    score_display_mode: Optional[str] = None
    display_value: Optional[str] = None
    description: str = ""
    numeric_value: Optional[float] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("details", mode="before")
    @classmethod
    def _details_default(cls, value):
        return value if isinstance(value, dict) else {}

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, value):
        return value or ""

    @property
    def items(self) -> List[Dict[str, Any]]:
        items = self.details.get("items")
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]


class CategoryScore(_ReportModel):
    id: Optional[str] = None
    title: Optional[str] = None
    score: Optional[float] = None


class CustomFinding(_ReportModel):
    """One custom DOM check that flagged at least one element."""
    check_id: str
    title: str
    description: str
    elements: List[str] = Field(default_factory=list)


class RawAuditReport(_ReportModel):
    final_url: Optional[str] = None
    requested_url: Optional[str] = None
    lighthouse_version: Optional[str] = None
    audits: Dict[str, AuditResult] = Field(default_factory=dict)
    categories: Dict[str, CategoryScore] = Field(default_factory=dict)
    custom_findings: List[CustomFinding] = Field(default_factory=list)
    runtime_error: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _resolve_final_url(cls, data):
        # Lighthouse >= 10 dropped finalUrl in favour of finalDisplayedUrl/mainDocumentUrl
        if isinstance(data, dict) and not (data.get("finalUrl") or data.get("final_url")):
            fallback = data.get("finalDisplayedUrl") or data.get("mainDocumentUrl")
            if fallback:
                data = {**data, "finalUrl": fallback}
        return data

    @field_validator("audits", "categories", mode="before")
    @classmethod
    def _mapping_default(cls, value):
        return value if isinstance(value, dict) else {}
