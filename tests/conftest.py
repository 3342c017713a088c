"""
Pytest configuration and shared fixtures.

This module provides reusable fixtures for testing the gapwatch package:
wire payload builders, a scripted in-memory backend for the controllers,
and a repository factory over ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Generator
from datetime import datetime
from typing import Any

import httpx
import pytest

from gapwatch.api.models import (
    ActionResponse,
    AuditLogEntry,
    GapAlert,
    GapAlertPage,
    GapAlertStats,
    GapAnalysisResponse,
    MonitoringInterval,
    ProcessingStatus,
)
from gapwatch.core import (
    ActionKind,
    AlertSeverity,
    AlertStatus,
    AppConfig,
    BackendConfig,
    DashboardConfig,
    reset_config,
    set_config,
)
from gapwatch.repository import ActionResult, AlertRepository

DETECTED_AT = "2026-10-01T08:00:00"
RESOLVED_AT = "2026-10-02T09:30:00"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config() -> Generator[AppConfig, None, None]:
    """Provide a test configuration installed as the global config."""
    config = AppConfig(
        backend=BackendConfig(base_url="http://gap-backend.test"),
        dashboard=DashboardConfig(),
    )
    set_config(config)
    yield config
    reset_config()


@pytest.fixture
def dashboard_config() -> DashboardConfig:
    return DashboardConfig()


# =============================================================================
# Payload Builders
# =============================================================================


def alert_payload(**overrides: Any) -> dict[str, Any]:
    """camelCase GapAlert payload as the backend sends it."""
    payload: dict[str, Any] = {
        "id": 1,
        "vehicleId": 100,
        "pdfReportId": 42,
        "alertType": "CONSECUTIVE_GAPS",
        "severity": "WARNING",
        "detectedAt": DETECTED_AT,
        "description": "12 consecutive hours without telemetry",
        "status": "OPEN",
        "resolvedAt": None,
        "resolutionNotes": None,
        "vin": "VF1RFB00765432100",
        "brand": "Renault",
        "companyName": "Acme Logistics",
    }
    payload.update(overrides)
    if payload["status"] in ("COMPLETED", "CONTRACT_BREACH") and payload["resolvedAt"] is None:
        payload["resolvedAt"] = RESOLVED_AT
    return payload


def gap_payload(confidence: float, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "timestamp": "2026-09-14T03:00:00",
        "confidence": confidence,
        "justification": "No record for 3h inside typical usage hours",
        "factors": {
            "hasPreviousRecord": True,
            "hasNextRecord": True,
            "consecutiveGapHours": 3,
            "isWithinTypicalUsageHours": True,
            "isTechnicalFailure": False,
        },
    }
    payload.update(overrides)
    return payload


def analysis_payload(confidences: list[float] | None = None, **overrides: Any) -> dict[str, Any]:
    """camelCase GapAnalysisResponse payload built from gap confidences."""
    confidences = [85.0, 72.0, 59.0] if confidences is None else confidences
    gaps = [gap_payload(c) for c in confidences]
    average = sum(confidences) / len(confidences) if confidences else 0.0
    payload: dict[str, Any] = {
        "reportId": 42,
        "vehicleVin": "VF1RFB00765432100",
        "companyName": "Acme Logistics",
        "periodStart": "2026-09-01T00:00:00",
        "periodEnd": "2026-09-30T23:59:59",
        "totalGaps": len(confidences),
        "averageConfidence": average,
        "summary": {
            "highConfidence": sum(1 for c in confidences if c >= 80),
            "mediumConfidence": sum(1 for c in confidences if 60 <= c < 80),
            "lowConfidence": sum(1 for c in confidences if c < 60),
        },
        "outages": {
            "total": 0,
            "gapsAffected": 0,
            "gapsAffectedPercentage": 0,
            "totalDowntimeDays": 0,
            "totalDowntimeHours": 0,
            "avgConfidenceWithOutage": 0,
        },
        "gaps": gaps,
    }
    if not confidences:
        payload["message"] = "No gaps detected for this report"
    payload.update(overrides)
    return payload


def make_alert(**overrides: Any) -> GapAlert:
    return GapAlert.model_validate(alert_payload(**overrides))


def make_analysis(confidences: list[float] | None = None, **overrides: Any) -> GapAnalysisResponse:
    return GapAnalysisResponse.model_validate(analysis_payload(confidences, **overrides))


# =============================================================================
# Scripted Backend
# =============================================================================


_ACTION_RESULT_STATUS = {
    ActionKind.CERTIFY: AlertStatus.COMPLETED,
    ActionKind.ESCALATE: AlertStatus.ESCALATED,
    ActionKind.BREACH: AlertStatus.CONTRACT_BREACH,
}


class FakeBackend:
    """In-memory stand-in for AlertRepository.

    Holds a list of alerts, paginates and filters them like the backend,
    and applies accepted actions to the matching alerts. ``failures`` maps
    a method name to the exception it should raise; ``action_gate``, when
    set, holds every submitted action until released.
    """

    def __init__(
        self,
        alerts: list[GapAlert] | None = None,
        *,
        analysis: GapAnalysisResponse | None = None,
        interval_minutes: int | None = 60,
        has_processing: bool = False,
    ) -> None:
        self.alerts = list(alerts or [])
        self.analysis = analysis or make_analysis()
        self.interval_minutes = interval_minutes
        self.has_processing = has_processing
        self.failures: dict[str, Exception] = {}
        self.action_status = 202
        self.action_gate: asyncio.Event | None = None
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.on_call: Callable[[str], None] | None = None

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if self.on_call is not None:
            self.on_call(name)
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def fetch_alerts(
        self,
        page: int,
        page_size: int,
        *,
        status: str | None = None,
        severity: str | None = None,
    ) -> GapAlertPage:
        self._record("fetch_alerts", page=page, page_size=page_size, status=status, severity=severity)
        matching = [
            a
            for a in self.alerts
            if (not status or a.status.value == status) and (not severity or a.severity.value == severity)
        ]
        total_pages = math.ceil(len(matching) / page_size)
        echoed = max(1, min(page, total_pages))
        start = (echoed - 1) * page_size
        return GapAlertPage(
            data=matching[start : start + page_size],
            total_count=len(matching),
            total_pages=total_pages,
            page=echoed,
        )

    async def fetch_alert(self, alert_id: int) -> GapAlert:
        self._record("fetch_alert", alert_id=alert_id)
        return next(a for a in self.alerts if a.id == alert_id)

    async def fetch_stats(self) -> GapAlertStats:
        self._record("fetch_stats")

        def count(**match: Any) -> int:
            return sum(1 for a in self.alerts if all(getattr(a, k) == v for k, v in match.items()))

        return GapAlertStats(
            total_alerts=len(self.alerts),
            open_alerts=count(status=AlertStatus.OPEN),
            escalated_alerts=count(status=AlertStatus.ESCALATED),
            completed_alerts=count(status=AlertStatus.COMPLETED),
            contract_breach_alerts=count(status=AlertStatus.CONTRACT_BREACH),
            critical_alerts=count(severity=AlertSeverity.CRITICAL),
            warning_alerts=count(severity=AlertSeverity.WARNING),
            info_alerts=count(severity=AlertSeverity.INFO),
        )

    async def fetch_monitoring_interval(self) -> MonitoringInterval:
        self._record("fetch_monitoring_interval")
        return MonitoringInterval(check_interval_minutes=self.interval_minutes)

    async def fetch_processing_status(self) -> ProcessingStatus:
        self._record("fetch_processing_status")
        return ProcessingStatus(has_processing=self.has_processing)

    async def fetch_audit_log(self, alert_id: int) -> list[AuditLogEntry]:
        self._record("fetch_audit_log", alert_id=alert_id)
        return []

    async def fetch_analysis(self, report_id: int) -> GapAnalysisResponse:
        self._record("fetch_analysis", report_id=report_id)
        return self.analysis

    async def submit_action(
        self,
        report_id: int,
        action: ActionKind,
        *,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> ActionResult:
        self._record(
            "submit_action",
            report_id=report_id,
            action=action,
            notes=notes,
            idempotency_key=idempotency_key,
        )
        if self.action_gate is not None:
            await self.action_gate.wait()

        new_status = _ACTION_RESULT_STATUS[action]
        resolved_at = datetime(2026, 10, 2, 9, 30) if new_status.is_terminal else None
        self.alerts = [
            a.model_copy(update={"status": new_status, "resolved_at": resolved_at})
            if a.pdf_report_id == report_id
            else a
            for a in self.alerts
        ]
        return ActionResult(
            action=action,
            report_id=report_id,
            status_code=self.action_status,
            response=ActionResponse(status="Processing"),
            idempotency_key=idempotency_key,
        )


@pytest.fixture
def open_alert() -> GapAlert:
    return make_alert()


@pytest.fixture
def fake_backend(open_alert: GapAlert) -> FakeBackend:
    return FakeBackend([open_alert])


# =============================================================================
# HTTP Fixtures
# =============================================================================


Handler = Callable[[httpx.Request], Any]


@pytest.fixture
def make_repository() -> Callable[..., AlertRepository]:
    """Build an AlertRepository whose requests are answered by ``handler``."""

    def factory(handler: Handler, **config_overrides: Any) -> AlertRepository:
        config = BackendConfig(base_url="http://gap-backend.test", **config_overrides)
        return AlertRepository(config=config, transport=httpx.MockTransport(handler))

    return factory


async def settle(rounds: int = 20) -> None:
    """Let pending tasks on the loop run to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)
