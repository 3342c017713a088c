"""
Paginated, filterable alert list with stats and the monitoring interval.

The AlertListController owns the alert page it displays. It never raises
backend failures to the caller: it keeps the data it already has, records
the failure in the event log, and tries again on the next refresh.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
from functools import partial

from gapwatch.api.models import GapAlert, GapAlertPage, GapAlertStats, ProcessingStatus
from gapwatch.core.config import DashboardConfig, get_config
from gapwatch.core.constants import ActionKind, AlertSeverity, AlertStatus, RefreshMode
from gapwatch.core.exceptions import RepositoryError
from gapwatch.core.logging import EventType, get_logger
from gapwatch.core.protocols import AlertBackend, ValidationBackend
from gapwatch.dashboard.events import EventLog
from gapwatch.dashboard.lifecycle import (
    ActionErrorCallback,
    AlertLifecycleController,
    BreachConfirmation,
)

logger = get_logger(__name__)

COMPONENT = "AlertListController"

# Change notifications sent to listeners
CHANGE_PAGE = "page"
CHANGE_INTERVAL = "interval"
CHANGE_IN_FLIGHT = "in_flight"
CHANGE_REFRESHED = "refreshed"

Listener = Callable[[str], None]


@dataclass(frozen=True)
class AlertFilters:
    """Status and severity filters; None means "all"."""

    status: AlertStatus | None = None
    severity: AlertSeverity | None = None

    @classmethod
    def from_values(
        cls,
        status: AlertStatus | str | None = None,
        severity: AlertSeverity | str | None = None,
    ) -> AlertFilters:
        """Build filters from raw select values; empty strings mean "all"."""
        return cls(
            status=AlertStatus(status) if status else None,
            severity=AlertSeverity(severity) if severity else None,
        )

    @property
    def status_param(self) -> str | None:
        return self.status.value if self.status else None

    @property
    def severity_param(self) -> str | None:
        return self.severity.value if self.severity else None


@dataclass(frozen=True)
class PendingAction:
    """An accepted action whose server-side effect is not confirmed yet."""

    report_id: int
    action: ActionKind
    alert_id: int | None = None
    status_at_dispatch: AlertStatus | None = None


class AlertListController:
    """Alert table state: page, filters, stats and the selected alert."""

    def __init__(
        self,
        backend: AlertBackend,
        validation_backend: ValidationBackend | None = None,
        *,
        config: DashboardConfig | None = None,
        event_log: EventLog | None = None,
        confirm_breach: BreachConfirmation | None = None,
        on_action_error: ActionErrorCallback | None = None,
        send_idempotency_key: bool = True,
    ) -> None:
        """Initialize the controller.

        Args:
            backend: Alert read side.
            validation_backend: Analysis/action side; defaults to ``backend``
                when it implements both (the HTTP repository does).
            config: Dashboard configuration; defaults to the global config.
            event_log: Shared event log; a new one is created if omitted.
            confirm_breach: Passed to every lifecycle controller opened here.
            on_action_error: Passed to every lifecycle controller opened here.
            send_idempotency_key: Whether actions carry an idempotency key.
        """
        self._backend = backend
        self._validation_backend = validation_backend or backend  # type: ignore[assignment]
        self._config = config or get_config().dashboard
        self._events = event_log or EventLog(self._config.event_log_size)
        self._confirm_breach = confirm_breach
        self._on_action_error = on_action_error
        self._send_idempotency_key = send_idempotency_key

        self._alerts: list[GapAlert] = []
        self._total_count = 0
        self._total_pages = 0
        self._current_page = 1
        self._filters = AlertFilters()
        # Bumped on every filter or page change; older list responses are dropped
        self._list_generation = 0
        self._stats: GapAlertStats | None = None
        self._interval_minutes = self._config.default_monitoring_interval_minutes
        self._processing: ProcessingStatus | None = None
        self._pending: dict[int, PendingAction] = {}
        self._selected: AlertLifecycleController | None = None

        self.loading = False
        self.refreshing = False

        self._listeners: list[Listener] = []

    # -------------------------------------------------------------------------
    # State inspection
    # -------------------------------------------------------------------------

    @property
    def alerts(self) -> list[GapAlert]:
        return list(self._alerts)

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def total_pages(self) -> int:
        return self._total_pages

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def filters(self) -> AlertFilters:
        return self._filters

    @property
    def stats(self) -> GapAlertStats | None:
        return self._stats

    @property
    def monitoring_interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def processing(self) -> ProcessingStatus | None:
        return self._processing

    @property
    def pending_actions(self) -> list[PendingAction]:
        return list(self._pending.values())

    @property
    def selected(self) -> AlertLifecycleController | None:
        return self._selected

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def has_work_in_flight(self) -> bool:
        """True while the server is processing or a dispatched action is unconfirmed."""
        if self._pending:
            return True
        return self._processing is not None and self._processing.has_processing

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: str) -> None:
        for listener in list(self._listeners):
            listener(change)

    def _set_page(self, page: int) -> None:
        if page != self._current_page:
            self._current_page = page
            self._notify(CHANGE_PAGE)

    def _track_in_flight(self, update: Callable[[], None]) -> None:
        before = self.has_work_in_flight
        update()
        if self.has_work_in_flight != before:
            self._notify(CHANGE_IN_FLIGHT)

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def fetch_alerts(
        self,
        page: int | None = None,
        filters: AlertFilters | None = None,
    ) -> GapAlertPage | None:
        """Fetch a page of alerts and make it current.

        The current page becomes the page echoed by the backend. On failure
        the previous list is kept and None is returned. A response to a
        request made before the last filter or page change is discarded,
        also returning None.
        """
        page = self._current_page if page is None else page
        filters = self._filters if filters is None else filters
        generation = self._list_generation
        try:
            result = await self._backend.fetch_alerts(
                page,
                self._config.page_size,
                status=filters.status_param,
                severity=filters.severity_param,
            )
        except RepositoryError as e:
            self._events.error(
                COMPONENT, EventType.ALERTS_FAILED, e.operator_message, page=page
            )
            return None

        if generation != self._list_generation:
            logger.debug(f"Dropping alert page {page} requested before the last navigation")
            return None

        self._alerts = list(result.data)
        self._total_count = result.total_count
        self._total_pages = result.total_pages
        self._set_page(result.page)
        self._track_in_flight(lambda: self._settle_pending(result.data))
        self._events.info(
            COMPONENT,
            EventType.ALERTS_LOADED,
            f"Loaded {len(result.data)} of {result.total_count} alerts",
            page=result.page,
            total_pages=result.total_pages,
        )
        return result

    async def fetch_stats(self) -> GapAlertStats | None:
        try:
            stats = await self._backend.fetch_stats()
        except RepositoryError as e:
            self._events.error(COMPONENT, EventType.STATS_FAILED, e.operator_message)
            return None
        self._stats = stats
        self._events.info(
            COMPONENT, EventType.STATS_LOADED, f"{stats.total_alerts} alerts in total"
        )
        return stats

    async def fetch_monitoring_interval(self) -> int:
        """Fetch the monitoring interval in minutes, falling back to the default."""
        minutes: int | None = None
        try:
            interval = await self._backend.fetch_monitoring_interval()
            minutes = interval.check_interval_minutes
        except RepositoryError as e:
            self._events.warning(
                COMPONENT, EventType.INTERVAL_FALLBACK, e.operator_message
            )

        if not minutes or minutes <= 0:
            minutes = self._config.default_monitoring_interval_minutes
        else:
            self._events.info(
                COMPONENT, EventType.INTERVAL_LOADED, f"Monitoring every {minutes} minutes"
            )

        if minutes != self._interval_minutes:
            self._interval_minutes = minutes
            self._notify(CHANGE_INTERVAL)
        return minutes

    async def fetch_processing_status(self) -> ProcessingStatus | None:
        """Fetch whether a validation job runs server-side.

        A successful answer supersedes locally tracked pending actions.
        """
        try:
            status = await self._backend.fetch_processing_status()
        except RepositoryError as e:
            self._events.warning(COMPONENT, EventType.PROCESSING_FAILED, e.operator_message)
            return None

        def update() -> None:
            self._processing = status
            self._pending.clear()

        self._track_in_flight(update)
        return status

    def _settle_pending(self, alerts: list[GapAlert]) -> None:
        """Drop pending actions whose alert visibly changed status."""
        for alert in alerts:
            if alert.pdf_report_id is None:
                continue
            pending = self._pending.get(alert.pdf_report_id)
            if pending is not None and alert.status != pending.status_at_dispatch:
                del self._pending[alert.pdf_report_id]

    async def refresh(self, mode: RefreshMode = RefreshMode.BACKGROUND) -> None:
        """Refetch the current page, stats, processing status and interval."""
        flag = {RefreshMode.INITIAL: "loading", RefreshMode.MANUAL: "refreshing"}.get(mode)
        if flag:
            setattr(self, flag, True)
        try:
            await asyncio.gather(
                self.fetch_alerts(self._current_page),
                self.fetch_stats(),
                self.fetch_processing_status(),
                self.fetch_monitoring_interval(),
            )
        finally:
            if flag:
                setattr(self, flag, False)
        self._notify(CHANGE_REFRESHED)

    async def load(self) -> None:
        """Initial load with the loading indicator."""
        await self.refresh(RefreshMode.INITIAL)

    # -------------------------------------------------------------------------
    # Filters and pagination
    # -------------------------------------------------------------------------

    def _navigate(self, page: int) -> None:
        self._list_generation += 1
        self._set_page(page)

    async def set_status_filter(self, value: AlertStatus | str | None) -> GapAlertPage | None:
        """Filter by status (empty for all) and go back to page 1."""
        status = AlertStatus(value) if value else None
        self._filters = replace(self._filters, status=status)
        self._navigate(1)
        return await self.fetch_alerts(1)

    async def set_severity_filter(self, value: AlertSeverity | str | None) -> GapAlertPage | None:
        severity = AlertSeverity(value) if value else None
        self._filters = replace(self._filters, severity=severity)
        self._navigate(1)
        return await self.fetch_alerts(1)

    async def go_to_page(self, page: int) -> GapAlertPage | None:
        """Navigate to a page, clamped to [1, total_pages].

        The monitoring interval is refetched alongside the new page.
        """
        page = max(1, min(page, max(1, self._total_pages)))
        self._navigate(page)
        result, _ = await asyncio.gather(self.fetch_alerts(page), self.fetch_monitoring_interval())
        return result

    async def next_page(self) -> GapAlertPage | None:
        return await self.go_to_page(self._current_page + 1)

    async def prev_page(self) -> GapAlertPage | None:
        return await self.go_to_page(self._current_page - 1)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def open_validation(self, alert: GapAlert) -> AlertLifecycleController | None:
        """Bind a lifecycle controller to an eligible alert.

        Returns None for rows that are not clickable. The caller awaits
        ``open()`` on the returned controller to load the analysis.
        """
        if not alert.can_open_validation:
            logger.debug(f"Alert {alert.id} is not eligible for validation")
            return None
        if self._selected is not None:
            self._selected.close()

        self._selected = AlertLifecycleController(
            alert,
            self._validation_backend,
            on_validation_complete=partial(self.on_validation_complete, alert=alert),
            on_action_error=self._on_action_error,
            confirm_breach=self._confirm_breach,
            event_log=self._events,
            send_idempotency_key=self._send_idempotency_key,
        )
        return self._selected

    def close_validation(self) -> None:
        if self._selected is not None:
            self._selected.close()
            self._selected = None

    async def on_validation_complete(
        self,
        report_id: int,
        action: ActionKind,
        alert: GapAlert | None = None,
    ) -> None:
        """Called after an accepted action: refetch instead of patching locally.

        ``alert`` is the alert the action was dispatched for. Without it the
        selected alert is used, but only when it belongs to ``report_id``.
        """
        selected = self._selected
        if selected is not None and selected.report_id == report_id:
            self._selected = None
            if alert is None:
                alert = selected.alert
        if alert is not None and alert.pdf_report_id != report_id:
            alert = None

        pending = PendingAction(
            report_id=report_id,
            action=action,
            alert_id=alert.id if alert is not None else None,
            status_at_dispatch=alert.status if alert is not None else None,
        )

        def update() -> None:
            self._pending[report_id] = pending

        self._track_in_flight(update)
        self._events.info(
            COMPONENT,
            EventType.VALIDATION_COMPLETE,
            f"{action.value} accepted, refreshing",
            report_id=report_id,
        )
        await self.refresh(RefreshMode.BACKGROUND)
