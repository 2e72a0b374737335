"""Pydantic schemas for the audit pipeline and its HTTP surface."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuditMode(str, Enum):
    STRUCTURED = "structured"
    SIMPLE = "simple"


def as_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC; label them so clients read them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Intake ────────────────────────────────────────────────────────────────


class BusinessIntake(BaseModel):
    """Request-scoped business context. Consumed once by the prompt builder."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, coerce_numbers_to_str=True)

    business_description: Optional[str] = Field(default=None, alias="businessDescription")
    business_type: Optional[str] = Field(default=None, alias="businessType")
    current_tools: Optional[str] = Field(default=None, alias="currentTools")
    team_size: Optional[str] = Field(default=None, alias="teamSize")
    primary_bottleneck: Optional[str] = Field(default=None, alias="primaryBottleneck")
    monthly_leads: Optional[str] = Field(default=None, alias="monthlyLeads")
    automation_level: Optional[str] = Field(default=None, alias="automationLevel")
    current_revenue: Optional[str] = Field(default=None, alias="currentRevenue")


# ── Structured model output ───────────────────────────────────────────────


class Opportunity(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    title: str
    description: str
    priority: Literal["High", "Medium", "Low"]
    time_savings: Optional[str] = Field(default=None, alias="timeSavings")
    difficulty: Optional[str] = None
    estimated_roi: Optional[str] = Field(default=None, alias="estimatedROI")


class StructuredAuditResult(BaseModel):
    """
    Schema the model must satisfy in structured mode.

    Strict: JSON types must match exactly, nothing is coerced.
    """

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    readiness_score: int = Field(alias="readinessScore", ge=0, le=100)
    summary: str
    opportunities: List[Opportunity]
    next_steps: List[str] = Field(alias="nextSteps")
    bottlenecks: List[str]

    def to_payload(self) -> dict:
        """Camel-cased dict, the shape the model produced and clients expect."""
        return self.model_dump(by_alias=True, mode="json")


# ── HTTP ──────────────────────────────────────────────────────────────────


class PublishRequest(BaseModel):
    audit_id: Optional[int] = Field(default=None, alias="auditId")
    audit_content: Optional[str] = Field(default=None, alias="auditContent")


class AuditResponse(BaseModel):
    """One row of audit history."""

    id: int
    business_description: str
    current_revenue: Optional[str]
    ai_response: str
    result: Optional[dict]
    mode: AuditMode
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return as_utc(v)
