"""
Validation workflow for a single alert.

The AlertLifecycleController owns one alert's gap analysis and the terminal
action dispatched against it. Its state is one explicit value of
``ModalState``; there are no independent loading/submitting flags.

    Idle -> Loading -> Ready | LoadError
    Ready -> Submitting -> Closed            (action accepted)
    Ready -> Submitting -> Ready(error)      (action failed)
    any   -> Closed                          (operator closes)
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from gapwatch.api.models import GapAlert, GapAnalysisResponse
from gapwatch.core.constants import ActionKind
from gapwatch.core.exceptions import (
    ActionNotAllowedError,
    AlertNotEligibleError,
    HttpStatusError,
    RepositoryError,
    RequestTimeoutError,
    TransportError,
)
from gapwatch.core.logging import EventType, get_logger
from gapwatch.core.protocols import ValidationBackend
from gapwatch.dashboard.events import EventLog

logger = get_logger(__name__)

COMPONENT = "AlertLifecycleController"

ValidationCompleteCallback = Callable[[int, ActionKind], Union[Awaitable[None], None]]
ActionErrorCallback = Callable[[ActionKind, str], Union[Awaitable[None], None]]
BreachConfirmation = Callable[[int, Union[str, None]], Union[Awaitable[bool], bool]]


# =============================================================================
# Modal State
# =============================================================================


@dataclass(frozen=True)
class Idle:
    """Controller created, analysis not requested yet."""


@dataclass(frozen=True)
class Loading:
    report_id: int


@dataclass(frozen=True)
class Ready:
    """Analysis loaded; ``error`` holds the last failed action's message."""

    analysis: GapAnalysisResponse
    error: str | None = None


@dataclass(frozen=True)
class LoadError:
    """Analysis could not be loaded. Persistent until the modal is reopened."""

    message: str
    timed_out: bool = False


@dataclass(frozen=True)
class Submitting:
    analysis: GapAnalysisResponse
    action: ActionKind


@dataclass(frozen=True)
class Closed:
    """Modal closed; ``action`` is set when closed by an accepted action."""

    action: ActionKind | None = None


ModalState = Union[Idle, Loading, Ready, LoadError, Submitting, Closed]


class OutcomeStatus(str, Enum):
    """How an action invocation ended."""

    ACCEPTED = "accepted"  # 202, work continues server-side
    COMPLETED = "completed"  # legacy 200
    FAILED = "failed"
    REFUSED = "refused"  # prevented client-side, no request issued
    CANCELLED = "cancelled"  # breach confirmation declined


@dataclass(frozen=True)
class ActionOutcome:
    action: ActionKind
    status: OutcomeStatus
    status_code: int | None = None
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in (OutcomeStatus.ACCEPTED, OutcomeStatus.COMPLETED)


async def _maybe_await(value: Any) -> Any:
    """Resolve a callback result that may or may not be awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def _deny_breach(report_id: int, notes: str | None) -> bool:
    return False


# =============================================================================
# Controller
# =============================================================================


class AlertLifecycleController:
    """Drives gap analysis and certify/escalate/breach for one alert.

    Only alerts with a report in OPEN or ESCALATED status can be bound.
    Nothing here raises repository failures to the caller: load failures
    become ``LoadError``, action failures are reported through
    ``on_action_error`` and leave the controller ``Ready`` with the error.

    Example:
        >>> controller = AlertLifecycleController(alert, repository)
        >>> await controller.open()
        >>> outcome = await controller.certify()
    """

    def __init__(
        self,
        alert: GapAlert,
        backend: ValidationBackend,
        *,
        on_validation_complete: ValidationCompleteCallback | None = None,
        on_action_error: ActionErrorCallback | None = None,
        confirm_breach: BreachConfirmation | None = None,
        event_log: EventLog | None = None,
        send_idempotency_key: bool = True,
    ) -> None:
        if alert.pdf_report_id is None:
            raise AlertNotEligibleError(alert.id, reason="no report has been generated")
        if not alert.status.is_openable:
            raise AlertNotEligibleError(alert.id, reason=f"status is {alert.status.value}")

        self._alert = alert
        self._report_id: int = alert.pdf_report_id
        self._backend = backend
        self._on_validation_complete = on_validation_complete
        self._on_action_error = on_action_error
        self._confirm_breach = confirm_breach or _deny_breach
        self._events = event_log or EventLog()
        self._send_idempotency_key = send_idempotency_key

        self._state: ModalState = Idle()
        self._load_task: asyncio.Task[GapAnalysisResponse] | None = None
        self._load_generation = 0
        # Key of an action whose last attempt got no response; reused on retry
        self._retry_key: tuple[ActionKind, str] | None = None

        self.notes = ""

    # -------------------------------------------------------------------------
    # State inspection
    # -------------------------------------------------------------------------

    @property
    def alert(self) -> GapAlert:
        return self._alert

    @property
    def report_id(self) -> int:
        return self._report_id

    @property
    def state(self) -> ModalState:
        return self._state

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def analysis(self) -> GapAnalysisResponse | None:
        if isinstance(self._state, (Ready, Submitting)):
            return self._state.analysis
        return None

    @property
    def error(self) -> str | None:
        if isinstance(self._state, LoadError):
            return self._state.message
        if isinstance(self._state, Ready):
            return self._state.error
        return None

    @property
    def is_loading(self) -> bool:
        return isinstance(self._state, Loading)

    @property
    def is_submitting(self) -> bool:
        return isinstance(self._state, Submitting)

    @property
    def is_closed(self) -> bool:
        return isinstance(self._state, Closed)

    @property
    def shows_no_gaps(self) -> bool:
        """True when the analysis loaded and found nothing to validate."""
        analysis = self.analysis
        return analysis is not None and not analysis.has_gaps

    @property
    def visible_actions(self) -> tuple[ActionKind, ...]:
        """Action buttons to render. Disabled while submitting."""
        analysis = self.analysis
        if analysis is None or not analysis.has_gaps:
            return ()
        actions = [ActionKind.CERTIFY]
        if self._alert.can_escalate:
            actions.append(ActionKind.ESCALATE)
        actions.append(ActionKind.BREACH)
        return tuple(actions)

    @property
    def enabled_actions(self) -> tuple[ActionKind, ...]:
        if not isinstance(self._state, Ready):
            return ()
        return self.visible_actions

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def open(self) -> ModalState:
        """Load (or reload) the analysis, discarding anything held before.

        A load superseded by ``close()`` or another ``open()`` leaves the
        state to whoever superseded it.
        """
        self._cancel_load()
        self._load_generation += 1
        generation = self._load_generation
        self._state = Loading(self._report_id)

        task = asyncio.ensure_future(self._backend.fetch_analysis(self._report_id))
        self._load_task = task
        try:
            analysis = await task
        except asyncio.CancelledError:
            if generation != self._load_generation:
                logger.debug(f"Analysis load for report {self._report_id} aborted")
                return self._state
            raise
        except RequestTimeoutError as e:
            if generation == self._load_generation:
                minutes = e.timeout_seconds / 60
                self._state = LoadError(
                    f"Gap analysis timed out after {minutes:g} minutes", timed_out=True
                )
                self._events.error(
                    COMPONENT,
                    EventType.ANALYSIS_FAILED,
                    self._state.message,
                    report_id=self._report_id,
                    timed_out=True,
                )
            return self._state
        except RepositoryError as e:
            if generation == self._load_generation:
                self._state = LoadError(e.operator_message)
                self._events.error(
                    COMPONENT,
                    EventType.ANALYSIS_FAILED,
                    e.operator_message,
                    report_id=self._report_id,
                )
            return self._state
        finally:
            if self._load_task is task:
                self._load_task = None

        if generation == self._load_generation:
            self._state = Ready(analysis)
            self._events.info(
                COMPONENT,
                EventType.ANALYSIS_LOADED,
                f"Loaded {analysis.total_gaps} gaps",
                report_id=self._report_id,
                average_confidence=analysis.average_confidence,
            )
        return self._state

    def close(self) -> None:
        """Close the modal. Aborts a pending load.

        An action already submitted is not cancelled: the backend may have
        received it, so its completion still notifies the alert list.
        """
        self._load_generation += 1
        self._cancel_load()
        if isinstance(self._state, Submitting):
            logger.info(
                f"Closing report {self._report_id} while {self._state.action.value} is in flight"
            )
        self._state = Closed()

    def _cancel_load(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def certify(self) -> ActionOutcome:
        """Confirm the gaps as genuine data loss."""
        return await self._dispatch(ActionKind.CERTIFY, None)

    async def escalate(self, notes: str | None = None) -> ActionOutcome:
        """Hand the alert to a second-level reviewer."""
        return await self._dispatch(ActionKind.ESCALATE, self.notes if notes is None else notes)

    async def breach(self, notes: str | None = None) -> ActionOutcome:
        """Record a contract breach, after the confirmation callback accepts."""
        notes = self.notes if notes is None else notes
        try:
            self._ensure_allowed(ActionKind.BREACH)
        except ActionNotAllowedError as e:
            return self._refuse(e)

        confirmed = await _maybe_await(self._confirm_breach(self._report_id, notes))
        if not confirmed:
            self._events.info(
                COMPONENT,
                EventType.ACTION_CANCELLED,
                "Contract breach not confirmed",
                report_id=self._report_id,
            )
            return ActionOutcome(ActionKind.BREACH, OutcomeStatus.CANCELLED)
        return await self._dispatch(ActionKind.BREACH, notes)

    def _ensure_allowed(self, action: ActionKind) -> GapAnalysisResponse:
        """Return the loaded analysis, or raise when ``action`` cannot run now."""
        state = self._state
        if isinstance(state, Submitting):
            reason = f"{state.action.value} is already in progress"
        elif not isinstance(state, Ready):
            reason = "analysis is not loaded"
        elif not state.analysis.has_gaps:
            reason = "the report has no gaps"
        elif action is ActionKind.ESCALATE and not self._alert.can_escalate:
            reason = f"alert is already {self._alert.status.value}"
        else:
            return state.analysis
        raise ActionNotAllowedError(action.value, reason=reason, report_id=self._report_id)

    def _refuse(self, error: ActionNotAllowedError) -> ActionOutcome:
        self._events.warning(
            COMPONENT,
            EventType.ACTION_REFUSED,
            error.message,
            report_id=self._report_id,
        )
        return ActionOutcome(ActionKind(error.action), OutcomeStatus.REFUSED, message=error.reason)

    def _idempotency_key_for(self, action: ActionKind) -> str | None:
        if not self._send_idempotency_key:
            return None
        if self._retry_key is not None and self._retry_key[0] is action:
            return self._retry_key[1]
        return uuid.uuid4().hex

    async def _dispatch(self, action: ActionKind, notes: str | None) -> ActionOutcome:
        try:
            analysis = self._ensure_allowed(action)
        except ActionNotAllowedError as e:
            return self._refuse(e)

        # The state change happens before the first await and gates other actions
        self._state = Submitting(analysis, action)
        key = self._idempotency_key_for(action)
        self._events.info(
            COMPONENT,
            EventType.ACTION_STARTED,
            f"Submitting {action.value}",
            report_id=self._report_id,
        )

        try:
            result = await self._backend.submit_action(
                self._report_id, action, notes=notes, idempotency_key=key
            )
        except RepositoryError as e:
            return await self._fail(action, analysis, key, e)
        except Exception as e:
            logger.exception(f"Unexpected failure submitting {action.value} for report {self._report_id}")
            return await self._fail(action, analysis, key, e)

        self._retry_key = None
        self._state = Closed(action)
        self._events.info(
            COMPONENT,
            EventType.ACTION_ACCEPTED,
            f"{action.value} answered {result.status_code}",
            report_id=self._report_id,
            status=result.response.status,
        )
        if self._on_validation_complete is not None:
            await _maybe_await(self._on_validation_complete(self._report_id, action))

        return ActionOutcome(
            action,
            OutcomeStatus.ACCEPTED if result.accepted else OutcomeStatus.COMPLETED,
            status_code=result.status_code,
            message=result.response.message or result.response.status,
        )

    async def _fail(
        self,
        action: ActionKind,
        analysis: GapAnalysisResponse,
        key: str | None,
        error: Exception,
    ) -> ActionOutcome:
        # Without a response the backend may have applied the action
        if isinstance(error, TransportError) and key is not None:
            self._retry_key = (action, key)
        else:
            self._retry_key = None

        if isinstance(error, RepositoryError):
            message = error.operator_message
        else:
            message = str(error) or type(error).__name__
        if not isinstance(self._state, Closed):
            self._state = Ready(analysis, error=message)
        self._events.error(
            COMPONENT,
            EventType.ACTION_FAILED,
            message,
            report_id=self._report_id,
            action=action.value,
        )
        if self._on_action_error is not None:
            await _maybe_await(self._on_action_error(action, message))

        status_code = error.status_code if isinstance(error, HttpStatusError) else None
        return ActionOutcome(action, OutcomeStatus.FAILED, status_code=status_code, message=message)
