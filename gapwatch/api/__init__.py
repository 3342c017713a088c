"""
API module - data models for the gap alert backend.

This module contains:
    - models: Pydantic data models for alert, analysis and action payloads
"""

from gapwatch.api.models import (
    ActionResponse,
    AuditLogEntry,
    ConfidenceSummary,
    Gap,
    GapAlert,
    GapAlertPage,
    GapAlertStats,
    GapAnalysisResponse,
    GapFactors,
    MonitoringInterval,
    OutageInfo,
    OutageSummary,
    ProcessingStatus,
    WireModel,
    confidence_band,
)

__all__ = [
    "WireModel",
    # Alerts
    "GapAlert",
    "GapAlertPage",
    "GapAlertStats",
    # Analysis
    "Gap",
    "GapFactors",
    "OutageInfo",
    "ConfidenceSummary",
    "OutageSummary",
    "GapAnalysisResponse",
    "confidence_band",
    # Responses
    "ActionResponse",
    "MonitoringInterval",
    "ProcessingStatus",
    "AuditLogEntry",
]
