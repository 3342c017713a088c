"""
Presentation helpers for the alert table and the validation modal.

Pure functions only: banding, colors, labels and row eligibility. Nothing
here performs I/O or holds state.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from gapwatch.api.models import Gap, GapAlert, GapAnalysisResponse, OutageInfo, confidence_band
from gapwatch.core.constants import AlertSeverity, AlertStatus, AlertType, ConfidenceBand

BAND_COLORS: dict[ConfidenceBand, str] = {
    ConfidenceBand.HIGH: "green",
    ConfidenceBand.MEDIUM: "yellow",
    ConfidenceBand.LOW: "red",
}

SEVERITY_COLORS: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "red",
    AlertSeverity.WARNING: "orange",
    AlertSeverity.INFO: "blue",
}

STATUS_COLORS: dict[AlertStatus, str] = {
    AlertStatus.OPEN: "yellow",
    AlertStatus.ESCALATED: "orange",
    AlertStatus.COMPLETED: "green",
    AlertStatus.CONTRACT_BREACH: "red",
}

ALERT_TYPE_LABELS: dict[AlertType, str] = {
    AlertType.LOW_CONFIDENCE: "Low confidence",
    AlertType.CONSECUTIVE_GAPS: "Consecutive gaps",
    AlertType.PROFILED_ANOMALY: "Profiled anomaly",
    AlertType.HIGH_GAP_PERCENTAGE: "High gap percentage",
    AlertType.MONTHLY_THRESHOLD: "Monthly threshold",
}

DEFAULT_COLOR = "gray"
DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def band_color(confidence: float) -> str:
    """Badge and bar color for a confidence percentage."""
    return BAND_COLORS[confidence_band(confidence)]


def confidence_bar_width(confidence: float) -> float:
    """Proportional bar width in percent; equal to the confidence."""
    return max(0.0, min(100.0, confidence))


def severity_color(severity: AlertSeverity | str) -> str:
    try:
        return SEVERITY_COLORS[AlertSeverity(severity)]
    except ValueError:
        return DEFAULT_COLOR


def status_color(status: AlertStatus | str) -> str:
    try:
        return STATUS_COLORS.get(AlertStatus(status), DEFAULT_COLOR)
    except ValueError:
        return DEFAULT_COLOR


def alert_type_label(alert_type: AlertType | str) -> str:
    """Human label for a detector rule; unknown rules are shown verbatim."""
    try:
        return ALERT_TYPE_LABELS[AlertType(alert_type)]
    except ValueError:
        return str(alert_type)


def format_datetime(value: datetime | None) -> str:
    return value.strftime(DATETIME_FORMAT) if value else "N/A"


def is_row_clickable(alert: GapAlert) -> bool:
    """A row opens the validation modal iff it has a report and is OPEN or ESCALATED."""
    return alert.can_open_validation


def partition_rows(alerts: Iterable[GapAlert]) -> tuple[list[GapAlert], list[GapAlert]]:
    """Split alerts into (clickable, non-clickable), preserving order."""
    clickable: list[GapAlert] = []
    inert: list[GapAlert] = []
    for alert in alerts:
        (clickable if is_row_clickable(alert) else inert).append(alert)
    return clickable, inert


@dataclass(frozen=True)
class OutageBadge:
    """Inline badge shown next to an outage-correlated gap."""

    label: str
    tooltip: str
    fleet_api: bool


def outage_badge(info: OutageInfo) -> OutageBadge:
    bonus = f"+{info.bonus_applied:g}%"
    if info.is_fleet_api:
        return OutageBadge(
            label="Fleet API outage",
            tooltip=f"Fleet API Outage - {info.outage_brand or 'N/A'} - Bonus: {bonus}",
            fleet_api=True,
        )
    return OutageBadge(label="Vehicle outage", tooltip=f"Vehicle Outage - Bonus: {bonus}", fleet_api=False)


@dataclass(frozen=True)
class GapRow:
    """Display-ready row of the confidence table."""

    timestamp: str
    confidence: float
    confidence_text: str
    band: ConfidenceBand
    color: str
    bar_width: float
    justification: str
    technical_failure: bool
    outage: OutageBadge | None


def gap_row(gap: Gap) -> GapRow:
    return GapRow(
        timestamp=format_datetime(gap.timestamp),
        confidence=gap.confidence,
        confidence_text=f"{gap.confidence:.1f}%",
        band=gap.band,
        color=BAND_COLORS[gap.band],
        bar_width=confidence_bar_width(gap.confidence),
        justification=gap.justification,
        technical_failure=gap.factors.is_technical_failure,
        outage=outage_badge(gap.outage_info) if gap.outage_info else None,
    )


def gap_rows(analysis: GapAnalysisResponse) -> list[GapRow]:
    """Rows of the confidence table, in the order the backend returned them."""
    return [gap_row(gap) for gap in analysis.gaps]
