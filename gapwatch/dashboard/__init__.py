"""
Dashboard module - controllers behind the gap alert views.

This module contains:
    - alert_list: paginated alert list, stats and monitoring interval
    - lifecycle: per-alert gap analysis and certify/escalate/breach
    - scheduler: periodic background refresh
    - display: banding, colors and row eligibility
    - events: operator-visible event log
"""

from gapwatch.dashboard.alert_list import AlertFilters, AlertListController, PendingAction
from gapwatch.dashboard.events import Event, EventLog
from gapwatch.dashboard.lifecycle import (
    ActionOutcome,
    AlertLifecycleController,
    Closed,
    Idle,
    LoadError,
    Loading,
    ModalState,
    OutcomeStatus,
    Ready,
    Submitting,
)
from gapwatch.dashboard.scheduler import RefreshScheduler

__all__ = [
    "AlertFilters",
    "AlertListController",
    "PendingAction",
    "AlertLifecycleController",
    "ActionOutcome",
    "OutcomeStatus",
    "ModalState",
    "Idle",
    "Loading",
    "Ready",
    "LoadError",
    "Submitting",
    "Closed",
    "RefreshScheduler",
    "Event",
    "EventLog",
]
