"""
Protocol definitions for the gap alert client.

Controllers depend on these interfaces rather than on the concrete HTTP
repository, which keeps them testable with scripted backends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gapwatch.api.models import (
        AuditLogEntry,
        GapAlert,
        GapAlertPage,
        GapAlertStats,
        GapAnalysisResponse,
        MonitoringInterval,
        ProcessingStatus,
    )
    from gapwatch.core.constants import ActionKind
    from gapwatch.repository.client import ActionResult


@runtime_checkable
class AlertBackend(Protocol):
    """Read side of the alert backend used by the list controller."""

    async def fetch_alerts(
        self,
        page: int,
        page_size: int,
        *,
        status: str | None = None,
        severity: str | None = None,
    ) -> GapAlertPage:
        """Fetch one page of alerts."""
        ...

    async def fetch_alert(self, alert_id: int) -> GapAlert:
        """Fetch a single alert."""
        ...

    async def fetch_stats(self) -> GapAlertStats:
        """Fetch alert counts by status and severity."""
        ...

    async def fetch_monitoring_interval(self) -> MonitoringInterval:
        """Fetch the server's monitoring interval."""
        ...

    async def fetch_processing_status(self) -> ProcessingStatus:
        """Fetch whether a validation job is running server-side."""
        ...

    async def fetch_audit_log(self, alert_id: int) -> list[AuditLogEntry]:
        """Fetch the audit trail of an alert."""
        ...


@runtime_checkable
class ValidationBackend(Protocol):
    """Per-report analysis and action side used by the lifecycle controller."""

    async def fetch_analysis(self, report_id: int) -> GapAnalysisResponse:
        """Fetch the confidence-scored gap analysis of a report."""
        ...

    async def submit_action(
        self,
        report_id: int,
        action: ActionKind,
        *,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> ActionResult:
        """Dispatch certify, escalate or breach for a report."""
        ...
