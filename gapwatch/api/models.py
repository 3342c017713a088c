"""
Pydantic data models for the gap alert backend.

This module defines the data contracts consumed from the REST API:
- Gap alerts, alert pages and status/severity statistics
- Per-report gap analysis (confidence-scored gaps and outage correlation)
- Action, monitoring-interval, processing and audit responses

The backend speaks camelCase JSON; every model accepts camelCase aliases
as well as the snake_case field names. Models are read-only evidence: the
client never mutates them, it refetches.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from gapwatch.core.constants import (
    ESCALATABLE_STATUSES,
    FLEET_API_OUTAGE,
    HIGH_CONFIDENCE_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
    AlertSeverity,
    AlertStatus,
    AlertType,
    AuditActionType,
    ConfidenceBand,
)


class WireModel(BaseModel):
    """Base model for backend payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


def confidence_band(confidence: float) -> ConfidenceBand:
    """Map a gap confidence percentage to its display band.

    >= 80 is high, 60 up to (not including) 80 is medium, below 60 is low.
    """
    if confidence >= HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceBand.HIGH
    if confidence >= MEDIUM_CONFIDENCE_THRESHOLD:
        return ConfidenceBand.MEDIUM
    return ConfidenceBand.LOW


# =============================================================================
# Alert Models
# =============================================================================


class GapAlert(WireModel):
    """A detected data-collection gap surfaced for operator attention."""

    id: int = Field(..., description="Unique alert identifier")
    vehicle_id: int = Field(..., description="Vehicle the alert refers to")
    pdf_report_id: int | None = Field(None, description="Generated report, if any")
    alert_type: AlertType | str = Field(..., description="Detector rule that fired")
    severity: AlertSeverity = Field(AlertSeverity.WARNING, description="Informational severity")
    detected_at: datetime = Field(..., description="When the anomaly was detected")
    description: str = Field("", description="Human-readable description")
    metrics_json: str | None = Field(None, description="Raw detection metrics (opaque)")
    status: AlertStatus = Field(AlertStatus.OPEN, description="Lifecycle status")
    resolved_at: datetime | None = Field(None, description="Set on terminal transition")
    resolution_notes: str | None = Field(None, description="Operator notes at resolution")

    # Denormalized display fields
    vin: str | None = None
    brand: str | None = None
    company_name: str | None = None

    @field_validator("alert_type", mode="before")
    @classmethod
    def validate_alert_type(cls, v: Any) -> Any:
        """Keep unknown detector rules as plain strings."""
        try:
            return AlertType(v)
        except ValueError:
            return v

    @model_validator(mode="after")
    def validate_resolution(self) -> GapAlert:
        """resolved_at is present exactly when the status is terminal."""
        if self.status.is_terminal and self.resolved_at is None:
            raise ValueError(f"alert {self.id} is {self.status.value} but has no resolvedAt")
        if not self.status.is_terminal and self.resolved_at is not None:
            raise ValueError(f"alert {self.id} is {self.status.value} but has resolvedAt set")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def can_open_validation(self) -> bool:
        """Whether the row is clickable to open the validation modal."""
        return self.pdf_report_id is not None and self.status.is_openable

    @property
    def can_escalate(self) -> bool:
        return self.status in ESCALATABLE_STATUSES


class GapAlertPage(WireModel):
    """One page of the alert list as echoed by the backend."""

    data: list[GapAlert] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)
    total_pages: int = Field(0, ge=0)
    page: int = Field(1, ge=1)


class GapAlertStats(WireModel):
    """Alert counts over the unfiltered population."""

    total_alerts: int = Field(0, ge=0)
    open_alerts: int = Field(0, ge=0)
    escalated_alerts: int = Field(0, ge=0)
    completed_alerts: int = Field(0, ge=0)
    contract_breach_alerts: int = Field(0, ge=0)
    critical_alerts: int = Field(0, ge=0)
    warning_alerts: int = Field(0, ge=0)
    info_alerts: int = Field(0, ge=0)

    def count_for_status(self, status: AlertStatus) -> int:
        """Get the bucket count for a lifecycle status (0 for unbucketed ones)."""
        return {
            AlertStatus.OPEN: self.open_alerts,
            AlertStatus.ESCALATED: self.escalated_alerts,
            AlertStatus.COMPLETED: self.completed_alerts,
            AlertStatus.CONTRACT_BREACH: self.contract_breach_alerts,
        }.get(status, 0)

    def count_for_severity(self, severity: AlertSeverity) -> int:
        return {
            AlertSeverity.CRITICAL: self.critical_alerts,
            AlertSeverity.WARNING: self.warning_alerts,
            AlertSeverity.INFO: self.info_alerts,
        }[severity]


# =============================================================================
# Gap Analysis Models
# =============================================================================


class GapFactors(WireModel):
    """Evidence factors the detector weighed for one gap."""

    has_previous_record: bool = False
    has_next_record: bool = False
    consecutive_gap_hours: float = 0.0
    is_within_typical_usage_hours: bool = False
    is_technical_failure: bool = False
    failure_reason: str | None = None


class OutageInfo(WireModel):
    """Known outage correlated with a gap, with the confidence bonus it earned."""

    outage_type: str
    outage_brand: str | None = None
    bonus_applied: float = 0.0

    @property
    def is_fleet_api(self) -> bool:
        return self.outage_type == FLEET_API_OUTAGE


class Gap(WireModel):
    """One missing telemetry window with its externally computed confidence."""

    timestamp: datetime
    confidence: float = Field(..., description="Confidence percentage 0-100")
    justification: str = ""
    factors: GapFactors = Field(default_factory=GapFactors)
    outage_info: OutageInfo | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def validate_confidence(cls, v: Any) -> float:
        """Clamp confidence to the 0-100 range."""
        if v is None:
            return 0.0
        return max(0.0, min(100.0, float(v)))

    @property
    def band(self) -> ConfidenceBand:
        return confidence_band(self.confidence)


class ConfidenceSummary(WireModel):
    """Gap counts bucketed by confidence band."""

    high_confidence: int = Field(0, ge=0)
    medium_confidence: int = Field(0, ge=0)
    low_confidence: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return self.high_confidence + self.medium_confidence + self.low_confidence

    @classmethod
    def from_gaps(cls, gaps: list[Gap]) -> ConfidenceSummary:
        """Bucket a list of gaps using the display banding."""
        counts = {band: 0 for band in ConfidenceBand}
        for gap in gaps:
            counts[gap.band] += 1
        return cls(
            high_confidence=counts[ConfidenceBand.HIGH],
            medium_confidence=counts[ConfidenceBand.MEDIUM],
            low_confidence=counts[ConfidenceBand.LOW],
        )


class OutageSummary(WireModel):
    """How many gaps known outages explain, and the downtime involved."""

    total: int = Field(0, ge=0, description="Outages overlapping the period")
    gaps_affected: int = Field(0, ge=0)
    gaps_affected_percentage: float = Field(0.0, ge=0)
    total_downtime_days: int = Field(0, ge=0)
    total_downtime_hours: int = Field(0, ge=0)
    avg_confidence_with_outage: float = Field(0.0, ge=0)

    @property
    def has_outages(self) -> bool:
        return self.total > 0

    @property
    def downtime_label(self) -> str:
        """Downtime as days plus remaining hours, e.g. ``2d 5h``."""
        return f"{self.total_downtime_days}d {self.total_downtime_hours % 24}h"


class GapAnalysisResponse(WireModel):
    """Per-report analysis bundle shown in the validation modal."""

    report_id: int
    vehicle_vin: str | None = None
    company_name: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    total_gaps: int = Field(0, ge=0)
    average_confidence: float = Field(0.0, ge=0, le=100)
    summary: ConfidenceSummary = Field(default_factory=ConfidenceSummary)
    outages: OutageSummary = Field(default_factory=OutageSummary)
    gaps: list[Gap] = Field(default_factory=list)
    message: str | None = None

    @property
    def has_gaps(self) -> bool:
        return self.total_gaps > 0


# =============================================================================
# Action and Auxiliary Responses
# =============================================================================


class ActionResponse(WireModel):
    """Body returned by certify/escalate/breach.

    202 bodies carry ``status``; the legacy 200 certify body carries
    ``gapsCertified`` instead.
    """

    status: str | None = None
    gaps_certified: int | None = None
    message: str | None = None


class MonitoringInterval(WireModel):
    """Server-configured gap monitoring interval."""

    check_interval_minutes: int | None = None


class ProcessingStatus(WireModel):
    """Whether a gap validation job is currently running server-side."""

    has_processing: bool = False
    report_id: int | None = None


class AuditLogEntry(WireModel):
    """One entry of an alert's audit trail."""

    id: int
    action_at: datetime
    action_type: AuditActionType | str
    action_by: str | None = None
    action_notes: str | None = None
    verification_outcome: str | None = None
    final_decision: str | None = None

    @field_validator("action_type", mode="before")
    @classmethod
    def validate_action_type(cls, v: Any) -> Any:
        try:
            return AuditActionType(v)
        except ValueError:
            return v
