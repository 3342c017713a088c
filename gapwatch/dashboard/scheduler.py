"""
Periodic background refresh of the alert list.

The timer runs as one asyncio task. Whenever the page, the monitoring
interval or the in-flight state changes, the task is cancelled and
recreated with the new period; ``stop()`` tears it down.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from gapwatch.core.config import DashboardConfig, get_config
from gapwatch.core.constants import RefreshMode
from gapwatch.core.logging import EventType, get_logger
from gapwatch.dashboard.alert_list import (
    CHANGE_IN_FLIGHT,
    CHANGE_INTERVAL,
    CHANGE_PAGE,
    AlertListController,
)
from gapwatch.dashboard.events import EventLog

logger = get_logger(__name__)

COMPONENT = "RefreshScheduler"

RESCHEDULE_ON = frozenset({CHANGE_PAGE, CHANGE_INTERVAL, CHANGE_IN_FLIGHT})

Sleep = Callable[[float], Awaitable[None]]


class RefreshScheduler:
    """Drives background refreshes of an AlertListController.

    Period is the monitoring interval, or the fast poll period while the
    controller has work in flight.
    """

    def __init__(
        self,
        controller: AlertListController,
        *,
        config: DashboardConfig | None = None,
        event_log: EventLog | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._controller = controller
        self._config = config or get_config().dashboard
        self._events = event_log or controller.events
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._refresh_count = 0
        self._in_tick = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def refresh_count(self) -> int:
        """Background refreshes completed since start."""
        return self._refresh_count

    @property
    def period_seconds(self) -> float:
        if self._controller.has_work_in_flight:
            return self._config.fast_poll_seconds
        return self._controller.monitoring_interval_minutes * 60.0

    async def start(self, *, load: bool = True) -> None:
        """Start polling, optionally after the controller's initial load."""
        if self.running:
            return
        if load:
            await self._controller.load()
        self._unsubscribe = self._controller.subscribe(self._on_change)
        self._schedule()
        self._events.info(
            COMPONENT,
            EventType.SCHEDULER_STARTED,
            f"Refreshing every {self.period_seconds:g}s",
        )

    async def stop(self) -> None:
        """Cancel the timer and stop listening for changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._events.info(COMPONENT, EventType.SCHEDULER_STOPPED, "Background refresh stopped")

    async def refresh_now(self) -> None:
        """Operator-initiated refresh; shows the refreshing indicator."""
        await self._controller.refresh(RefreshMode.MANUAL)

    def reschedule(self) -> None:
        """Cancel the pending tick and start a new one with the current period."""
        if self._task is None:
            return
        self._schedule()
        self._events.info(
            COMPONENT,
            EventType.SCHEDULER_RESCHEDULED,
            f"Next refresh in {self.period_seconds:g}s",
        )

    def _schedule(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _on_change(self, change: str) -> None:
        if change not in RESCHEDULE_ON:
            return
        # The loop re-reads the period after each refresh it performs itself
        if self._in_tick:
            return
        self.reschedule()

    async def _run(self) -> None:
        while True:
            await self._sleep(self.period_seconds)
            self._in_tick = True
            try:
                await self._controller.refresh(RefreshMode.BACKGROUND)
            except Exception as e:
                self._events.error(COMPONENT, EventType.REFRESH_FAILED, str(e))
            else:
                self._refresh_count += 1
            finally:
                self._in_tick = False
