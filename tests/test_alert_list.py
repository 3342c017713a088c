"""
Tests for the AlertListController.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import FakeBackend, make_alert, settle
from gapwatch.core import (
    ActionKind,
    AlertSeverity,
    AlertStatus,
    DashboardConfig,
    HttpStatusError,
    RefreshMode,
    TransportError,
)
from gapwatch.core.logging import EventType
from gapwatch.dashboard import AlertFilters, AlertListController, AlertLifecycleController
from gapwatch.dashboard.alert_list import CHANGE_IN_FLIGHT, CHANGE_INTERVAL, CHANGE_PAGE


def many_alerts(count: int, **overrides) -> list:
    return [make_alert(id=i, pdfReportId=1000 + i, **overrides) for i in range(1, count + 1)]


@pytest.fixture
def controller(fake_backend: FakeBackend, dashboard_config: DashboardConfig) -> AlertListController:
    return AlertListController(fake_backend, config=dashboard_config)


class TestAlertFilters:
    """Tests for AlertFilters."""

    def test_empty_values_mean_all(self):
        """Test that empty select values become no filter."""
        filters = AlertFilters.from_values("", "")
        assert filters.status_param is None
        assert filters.severity_param is None

    def test_values(self):
        """Test that raw values become enum filters."""
        filters = AlertFilters.from_values("OPEN", "CRITICAL")
        assert filters.status is AlertStatus.OPEN
        assert filters.severity_param == "CRITICAL"


class TestFetchAlerts:
    """Tests for fetching the alert page."""

    @pytest.mark.asyncio
    async def test_success_replaces_state(self, dashboard_config):
        """Test a successful fetch replaces list, counts and page."""
        backend = FakeBackend(many_alerts(25))
        controller = AlertListController(backend, config=dashboard_config)

        page = await controller.fetch_alerts(2)

        assert page is not None
        assert [a.id for a in controller.alerts] == list(range(11, 21))
        assert controller.total_count == 25
        assert controller.total_pages == 3
        assert controller.current_page == 2
        assert backend.calls_to("fetch_alerts")[0]["page_size"] == 10

    @pytest.mark.asyncio
    async def test_current_page_follows_server_echo(self, dashboard_config):
        """Test the current page is clamped to the page the server echoes."""
        backend = FakeBackend(many_alerts(5))
        controller = AlertListController(backend, config=dashboard_config)

        await controller.fetch_alerts(4)

        assert backend.calls_to("fetch_alerts")[0]["page"] == 4
        assert controller.current_page == 1

    @pytest.mark.asyncio
    async def test_failure_keeps_prior_data(self, controller, fake_backend):
        """Test a failed fetch keeps the previous list and logs the error."""
        await controller.fetch_alerts(1)
        fake_backend.failures["fetch_alerts"] = HttpStatusError(
            "/api/gapalerts", status_code=500, detail="Internal Server Error"
        )

        result = await controller.fetch_alerts(1)

        assert result is None
        assert [a.id for a in controller.alerts] == [1]
        assert controller.total_count == 1
        error = controller.events.errors()[-1]
        assert error.event_type == EventType.ALERTS_FAILED
        assert error.message == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_stats_failure_isolated(self, controller, fake_backend):
        """Test a stats failure does not block the list fetch."""
        fake_backend.failures["fetch_stats"] = TransportError("/api/gapalerts/stats", reason="refused")

        await controller.refresh()

        assert controller.stats is None
        assert [a.id for a in controller.alerts] == [1]
        assert controller.events.entries(EventType.STATS_FAILED)

    @pytest.mark.asyncio
    async def test_list_failure_isolated(self, controller, fake_backend):
        """Test a list failure does not block the stats fetch."""
        fake_backend.failures["fetch_alerts"] = TransportError("/api/gapalerts", reason="refused")

        await controller.refresh()

        assert controller.alerts == []
        assert controller.stats is not None
        assert controller.stats.open_alerts == 1

    @pytest.mark.asyncio
    async def test_undecodable_body_logged(self, make_repository, dashboard_config):
        """Test a body that fails content decoding is logged, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")

        async with make_repository(handler) as repo:
            controller = AlertListController(repo, config=dashboard_config)
            result = await controller.fetch_alerts(1)

        assert result is None
        assert controller.alerts == []
        assert controller.events.entries(EventType.ALERTS_FAILED)


class TestMonitoringInterval:
    """Tests for the monitoring interval."""

    @pytest.mark.asyncio
    async def test_server_value(self, dashboard_config):
        """Test the configured interval is used."""
        controller = AlertListController(FakeBackend(interval_minutes=15), config=dashboard_config)
        assert await controller.fetch_monitoring_interval() == 15
        assert controller.monitoring_interval_minutes == 15

    @pytest.mark.parametrize("minutes", [None, 0, -5])
    @pytest.mark.asyncio
    async def test_absent_or_zero_falls_back(self, dashboard_config, minutes):
        """Test absent, zero or negative values fall back to 60."""
        controller = AlertListController(FakeBackend(interval_minutes=minutes), config=dashboard_config)
        assert await controller.fetch_monitoring_interval() == 60

    @pytest.mark.asyncio
    async def test_failure_falls_back(self, dashboard_config):
        """Test a failing call falls back to 60."""
        backend = FakeBackend(interval_minutes=15)
        backend.failures["fetch_monitoring_interval"] = TransportError("/x", reason="refused")
        controller = AlertListController(backend, config=dashboard_config)

        assert await controller.fetch_monitoring_interval() == 60
        assert controller.events.entries(EventType.INTERVAL_FALLBACK)

    @pytest.mark.asyncio
    async def test_change_notifies(self, dashboard_config):
        """Test listeners hear about interval changes."""
        controller = AlertListController(FakeBackend(interval_minutes=5), config=dashboard_config)
        changes: list[str] = []
        controller.subscribe(changes.append)

        await controller.fetch_monitoring_interval()

        assert CHANGE_INTERVAL in changes

    @pytest.mark.asyncio
    async def test_refetched_on_refresh(self, dashboard_config):
        """Test every refresh picks up a changed interval."""
        backend = FakeBackend([make_alert()], interval_minutes=60)
        controller = AlertListController(backend, config=dashboard_config)
        await controller.load()

        backend.interval_minutes = 20
        await controller.refresh()

        assert controller.monitoring_interval_minutes == 20
        assert len(backend.calls_to("fetch_monitoring_interval")) == 2

    @pytest.mark.asyncio
    async def test_refetched_on_page_change(self, dashboard_config):
        """Test navigating to another page refetches the interval."""
        backend = FakeBackend(many_alerts(25), interval_minutes=60)
        controller = AlertListController(backend, config=dashboard_config)
        await controller.fetch_alerts(1)

        backend.interval_minutes = 10
        await controller.next_page()

        assert controller.current_page == 2
        assert controller.monitoring_interval_minutes == 10


class TestFiltersAndPagination:
    """Tests for filter changes and page navigation."""

    @pytest.fixture
    def paged(self, dashboard_config) -> tuple[AlertListController, FakeBackend]:
        alerts = many_alerts(30) + [
            make_alert(id=100 + i, pdfReportId=None, severity="CRITICAL") for i in range(15)
        ]
        backend = FakeBackend(alerts)
        return AlertListController(backend, config=dashboard_config), backend

    @pytest.mark.asyncio
    async def test_status_filter_resets_page(self, paged):
        """Test that changing the status filter goes back to page 1."""
        controller, backend = paged
        await controller.fetch_alerts(1)
        await controller.go_to_page(3)
        assert controller.current_page == 3

        await controller.set_status_filter("OPEN")

        assert controller.current_page == 1
        last = backend.calls_to("fetch_alerts")[-1]
        assert last["page"] == 1
        assert last["status"] == "OPEN"

    @pytest.mark.asyncio
    async def test_severity_filter_resets_page(self, paged):
        """Test that changing the severity filter goes back to page 1."""
        controller, backend = paged
        await controller.fetch_alerts(1)
        await controller.go_to_page(2)

        await controller.set_severity_filter(AlertSeverity.CRITICAL)

        assert controller.current_page == 1
        assert backend.calls_to("fetch_alerts")[-1]["severity"] == "CRITICAL"
        assert controller.total_count == 15

    @pytest.mark.asyncio
    async def test_clearing_filter(self, paged):
        """Test an empty value clears the filter."""
        controller, backend = paged
        await controller.set_status_filter("OPEN")
        await controller.set_status_filter("")
        assert controller.filters.status is None
        assert backend.calls_to("fetch_alerts")[-1]["status"] is None

    @pytest.mark.asyncio
    async def test_next_prev_keep_filters(self, paged):
        """Test that Next/Prev never reset the filters."""
        controller, backend = paged
        await controller.set_severity_filter("WARNING")
        await controller.next_page()
        assert controller.current_page == 2
        await controller.next_page()
        await controller.prev_page()

        assert controller.current_page == 2
        assert controller.filters.severity is AlertSeverity.WARNING
        assert all(call["severity"] == "WARNING" for call in backend.calls_to("fetch_alerts"))

    @pytest.mark.asyncio
    async def test_navigation_clamped(self, paged):
        """Test navigation stays within [1, total_pages]."""
        controller, _ = paged
        await controller.fetch_alerts(1)
        await controller.prev_page()
        assert controller.current_page == 1
        await controller.go_to_page(99)
        assert controller.current_page == controller.total_pages == 5

    @pytest.mark.asyncio
    async def test_poll_answered_after_filter_change_is_dropped(self, paged):
        """Test a refresh requested before a filter change cannot overwrite it."""
        controller, backend = paged
        await controller.fetch_alerts(1)
        await controller.go_to_page(3)
        gate = asyncio.Event()
        original = backend.fetch_alerts

        async def held_fetch(page, page_size, **filters):
            result = await original(page, page_size, **filters)
            await gate.wait()
            return result

        backend.fetch_alerts = held_fetch
        poll = asyncio.create_task(controller.refresh())
        await settle()
        backend.fetch_alerts = original

        await controller.set_status_filter("ESCALATED")
        gate.set()
        await poll

        assert controller.current_page == 1
        assert controller.filters.status is AlertStatus.ESCALATED
        assert controller.alerts == []
        assert controller.total_count == 0

    @pytest.mark.asyncio
    async def test_page_answered_after_navigation_is_dropped(self, paged):
        """Test a slow page response does not replace a newer page."""
        controller, backend = paged
        await controller.fetch_alerts(1)
        gate = asyncio.Event()
        original = backend.fetch_alerts

        async def held_fetch(page, page_size, **filters):
            result = await original(page, page_size, **filters)
            await gate.wait()
            return result

        backend.fetch_alerts = held_fetch
        slow = asyncio.create_task(controller.go_to_page(2))
        await settle()
        backend.fetch_alerts = original

        await controller.go_to_page(4)
        gate.set()

        assert await slow is None
        assert controller.current_page == 4
        assert [a.id for a in controller.alerts] == list(range(100, 110))

    @pytest.mark.asyncio
    async def test_page_change_notifies(self, paged):
        """Test listeners hear about page changes."""
        controller, _ = paged
        await controller.fetch_alerts(1)
        changes: list[str] = []
        controller.subscribe(changes.append)

        await controller.next_page()

        assert changes.count(CHANGE_PAGE) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, paged):
        """Test an unsubscribed listener is not called."""
        controller, _ = paged
        await controller.fetch_alerts(1)
        changes: list[str] = []
        unsubscribe = controller.subscribe(changes.append)
        unsubscribe()

        await controller.next_page()

        assert changes == []


class TestRefresh:
    """Tests for refresh modes and loading flags."""

    @pytest.mark.parametrize(
        "mode,loading,refreshing",
        [
            (RefreshMode.INITIAL, True, False),
            (RefreshMode.MANUAL, False, True),
            (RefreshMode.BACKGROUND, False, False),
        ],
    )
    @pytest.mark.asyncio
    async def test_flags_during_refresh(self, controller, fake_backend, mode, loading, refreshing):
        """Test which indicator each refresh mode shows."""
        observed: list[tuple[bool, bool]] = []
        fake_backend.on_call = lambda name: observed.append((controller.loading, controller.refreshing))

        await controller.refresh(mode)

        assert observed
        assert all(flags == (loading, refreshing) for flags in observed)
        assert (controller.loading, controller.refreshing) == (False, False)

    @pytest.mark.asyncio
    async def test_load(self, controller, fake_backend):
        """Test the initial load fetches interval, list, stats and processing."""
        await controller.load()
        called = {name for name, _ in fake_backend.calls}
        assert called == {
            "fetch_monitoring_interval",
            "fetch_alerts",
            "fetch_stats",
            "fetch_processing_status",
        }


class TestValidation:
    """Tests for opening the validation modal and completion."""

    @pytest.mark.asyncio
    async def test_open_eligible(self, controller, open_alert):
        """Test an eligible row binds a lifecycle controller."""
        lifecycle = controller.open_validation(open_alert)
        assert isinstance(lifecycle, AlertLifecycleController)
        assert lifecycle.report_id == 42
        assert controller.selected is lifecycle

    @pytest.mark.parametrize(
        "overrides",
        [
            {"pdfReportId": None},
            {"status": "COMPLETED"},
            {"status": "CONTRACT_BREACH"},
            {"status": "PROCESSING"},
        ],
    )
    def test_open_ineligible(self, controller, overrides):
        """Test ineligible rows do not open the modal."""
        assert controller.open_validation(make_alert(**overrides)) is None
        assert controller.selected is None

    @pytest.mark.asyncio
    async def test_reopen_closes_previous(self, controller, open_alert):
        """Test opening another alert closes the previous modal."""
        first = controller.open_validation(open_alert)
        second = controller.open_validation(make_alert(id=2, pdfReportId=43))
        assert first is not None and first.is_closed
        assert controller.selected is second

    @pytest.mark.asyncio
    async def test_validation_complete_refetches(self, controller, fake_backend, open_alert):
        """Test completion clears the selection and refetches from the server."""
        await controller.fetch_alerts(1)
        lifecycle = controller.open_validation(open_alert)
        assert lifecycle is not None
        await lifecycle.open()
        fetches_before = len(fake_backend.calls_to("fetch_alerts"))

        outcome = await lifecycle.certify()

        assert outcome.succeeded
        assert controller.selected is None
        assert len(fake_backend.calls_to("fetch_alerts")) == fetches_before + 1
        assert controller.alerts[0].status is AlertStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_pending_action_tracked_until_server_confirms(self, controller, fake_backend, open_alert):
        """Test an unconfirmed action keeps work in flight."""
        fake_backend.failures["fetch_processing_status"] = TransportError("/x", reason="refused")
        fake_backend.failures["fetch_alerts"] = TransportError("/x", reason="refused")
        changes: list[str] = []
        controller.subscribe(changes.append)

        await controller.on_validation_complete(42, ActionKind.ESCALATE)

        assert controller.has_work_in_flight
        assert CHANGE_IN_FLIGHT in changes
        assert controller.pending_actions[0].action is ActionKind.ESCALATE

        del fake_backend.failures["fetch_alerts"]
        fake_backend.alerts = [open_alert.model_copy(update={"status": AlertStatus.ESCALATED})]
        await controller.refresh()

        assert not controller.has_work_in_flight

    @pytest.mark.asyncio
    async def test_completion_records_dispatching_alert(self, controller, fake_backend):
        """Test an action finishing after another alert was opened tracks its own alert."""
        first = make_alert(id=1, pdfReportId=10)
        second = make_alert(id=2, pdfReportId=20, status="ESCALATED")
        fake_backend.alerts = [first, second]
        fake_backend.failures["fetch_alerts"] = TransportError("/api/gapalerts", reason="refused")
        fake_backend.failures["fetch_processing_status"] = TransportError("/x", reason="refused")
        fake_backend.action_gate = asyncio.Event()

        lifecycle = controller.open_validation(first)
        assert lifecycle is not None
        await lifecycle.open()
        certify = asyncio.create_task(lifecycle.certify())
        await settle()
        other = controller.open_validation(second)
        fake_backend.action_gate.set()
        outcome = await certify

        assert outcome.succeeded
        assert controller.selected is other
        pending = controller.pending_actions
        assert len(pending) == 1
        assert pending[0].report_id == 10
        assert pending[0].alert_id == 1
        assert pending[0].status_at_dispatch is AlertStatus.OPEN

    @pytest.mark.asyncio
    async def test_completion_ignores_unrelated_selection(self, controller, fake_backend):
        """Test the selected alert is not used for another report's completion."""
        fake_backend.failures["fetch_alerts"] = TransportError("/api/gapalerts", reason="refused")
        fake_backend.failures["fetch_processing_status"] = TransportError("/x", reason="refused")
        selected = controller.open_validation(make_alert(id=2, pdfReportId=20, status="ESCALATED"))

        await controller.on_validation_complete(10, ActionKind.CERTIFY)

        assert controller.selected is selected
        pending = controller.pending_actions[0]
        assert pending.report_id == 10
        assert pending.alert_id is None
        assert pending.status_at_dispatch is None

    @pytest.mark.asyncio
    async def test_processing_status_drives_in_flight(self, dashboard_config):
        """Test the server processing flag marks work in flight."""
        controller = AlertListController(FakeBackend(has_processing=True), config=dashboard_config)
        await controller.refresh()
        assert controller.has_work_in_flight
