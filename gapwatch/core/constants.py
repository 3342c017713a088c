"""
Shared constants and enumerations for the gap alert workflow.

Values mirror the strings the backend stores and returns, so enum members
can be built directly from wire payloads.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class AlertStatus(str, Enum):
    """Lifecycle status of a gap alert."""

    OPEN = "OPEN"
    PROCESSING = "PROCESSING"
    ESCALATED = "ESCALATED"
    COMPLETED = "COMPLETED"
    CONTRACT_BREACH = "CONTRACT_BREACH"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        """True for the statuses that close an alert for good."""
        return self in TERMINAL_STATUSES

    @property
    def is_openable(self) -> bool:
        """True for the statuses an operator can still validate."""
        return self in OPENABLE_STATUSES


class AlertSeverity(str, Enum):
    """Severity assigned at detection time. Informational only."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


class AlertType(str, Enum):
    """Detector rule that raised the alert."""

    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    CONSECUTIVE_GAPS = "CONSECUTIVE_GAPS"
    PROFILED_ANOMALY = "PROFILED_ANOMALY"
    HIGH_GAP_PERCENTAGE = "HIGH_GAP_PERCENTAGE"
    MONTHLY_THRESHOLD = "MONTHLY_THRESHOLD"


class ActionKind(str, Enum):
    """Terminal actions an operator can dispatch from the validation modal."""

    CERTIFY = "certify"
    ESCALATE = "escalate"
    BREACH = "breach"

    @property
    def endpoint(self) -> str:
        """Path segment of the gap analysis endpoint for this action."""
        return _ACTION_ENDPOINTS[self]


class ConfidenceBand(str, Enum):
    """Display band derived from a gap confidence score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RefreshMode(str, Enum):
    """Why a list refresh is happening; drives which loading flag is shown."""

    INITIAL = "initial"
    MANUAL = "manual"
    BACKGROUND = "background"


class AuditActionType(str, Enum):
    """Action types recorded in an alert's audit trail."""

    ALERT_CREATED = "ALERT_CREATED"
    CERTIFIED = "CERTIFIED"
    ESCALATED = "ESCALATED"
    CONTRACT_BREACH = "CONTRACT_BREACH"
    AUTO_DETECTED = "AUTO_DETECTED"


TERMINAL_STATUSES: Final[frozenset[AlertStatus]] = frozenset(
    {AlertStatus.COMPLETED, AlertStatus.CONTRACT_BREACH}
)
OPENABLE_STATUSES: Final[frozenset[AlertStatus]] = frozenset(
    {AlertStatus.OPEN, AlertStatus.ESCALATED}
)
# Escalation is offered only before an alert has been escalated
ESCALATABLE_STATUSES: Final[frozenset[AlertStatus]] = frozenset(
    {AlertStatus.OPEN, AlertStatus.PROCESSING}
)

_ACTION_ENDPOINTS: Final[dict[ActionKind, str]] = {
    ActionKind.CERTIFY: "validate",
    ActionKind.ESCALATE: "escalate",
    ActionKind.BREACH: "breach",
}

# Confidence thresholds (percent)
HIGH_CONFIDENCE_THRESHOLD: Final[float] = 80.0
MEDIUM_CONFIDENCE_THRESHOLD: Final[float] = 60.0

FLEET_API_OUTAGE: Final[str] = "Outage Fleet Api"

PAGE_SIZE: Final[int] = 10
DEFAULT_MONITORING_INTERVAL_MINUTES: Final[int] = 60
DEFAULT_FAST_POLL_SECONDS: Final[float] = 10.0
ANALYSIS_TIMEOUT_MINUTES: Final[int] = 15
ERROR_TEXT_LIMIT: Final[int] = 200

IDEMPOTENCY_HEADER: Final[str] = "Idempotency-Key"
