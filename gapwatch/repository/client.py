"""
REST client for the gap alert backend.

This module provides an asynchronous client for the alert list, stats,
monitoring-interval, gap analysis and action endpoints, with per-request
time budgets, typed error mapping and tolerant error-body parsing.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from types import TracebackType
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

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
from gapwatch.core.config import BackendConfig, get_config
from gapwatch.core.constants import IDEMPOTENCY_HEADER, ActionKind
from gapwatch.core.exceptions import (
    HttpStatusError,
    InvalidResponseError,
    RequestTimeoutError,
    TransportError,
)
from gapwatch.core.logging import get_logger
from gapwatch.repository.errors import decode_body, parse_http_error

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Statuses that count as success for certify/escalate/breach
ACTION_ACCEPTED = 202
ACTION_LEGACY_OK = 200


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a certify/escalate/breach request the backend accepted."""

    action: ActionKind
    report_id: int
    status_code: int
    response: ActionResponse
    idempotency_key: str | None = None

    @property
    def accepted(self) -> bool:
        """True when work continues server-side (202)."""
        return self.status_code == ACTION_ACCEPTED


class AlertRepository:
    """Asynchronous client for the gap alert REST surface.

    Every call either returns a validated model or raises a
    ``RepositoryError`` subclass:
    - ``RequestTimeoutError`` when the time budget is exhausted
    - ``TransportError`` when no response was received
    - ``HttpStatusError`` for non-success statuses
    - ``InvalidResponseError`` when a success body is malformed

    Example:
        >>> async with AlertRepository("http://backend:8080") as repo:
        ...     page = await repo.fetch_alerts(1, 10, status="OPEN")
    """

    def __init__(
        self,
        base_url: str | None = None,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            base_url: Backend root URL; overrides the configured one.
            config: Backend configuration; defaults to the global config.
            transport: Optional httpx transport (used to script responses in tests).
        """
        self._config = config or get_config().backend
        self._base_url = (base_url or self._config.base_url).rstrip("/")
        self._client = self._create_client(transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def config(self) -> BackendConfig:
        return self._config

    def _create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        """Create the pooled async client."""
        if transport is None:
            transport = httpx.AsyncHTTPTransport(retries=self._config.connect_retries)
        return httpx.AsyncClient(
            base_url=self._base_url,
            transport=transport,
            timeout=httpx.Timeout(self._config.request_timeout_seconds),
            headers={"Accept": "application/json"},
        )

    # -------------------------------------------------------------------------
    # Alert list side
    # -------------------------------------------------------------------------

    async def fetch_alerts(
        self,
        page: int,
        page_size: int,
        *,
        status: str | None = None,
        severity: str | None = None,
    ) -> GapAlertPage:
        """Fetch a 1-indexed page of alerts.

        ``status`` and ``severity`` are sent only when non-empty.
        """
        params: dict[str, Any] = {"page": page, "pageSize": page_size}
        if status:
            params["status"] = status
        if severity:
            params["severity"] = severity
        payload = await self._get_json("/api/gapalerts", params=params)
        return self._parse(GapAlertPage, "/api/gapalerts", payload)

    async def fetch_alert(self, alert_id: int) -> GapAlert:
        path = f"/api/gapalerts/{alert_id}"
        return self._parse(GapAlert, path, await self._get_json(path))

    async def fetch_stats(self) -> GapAlertStats:
        path = "/api/gapalerts/stats"
        return self._parse(GapAlertStats, path, await self._get_json(path))

    async def fetch_monitoring_interval(self) -> MonitoringInterval:
        path = "/api/gapalerts/monitoring-interval"
        payload = await self._get_json(path)
        if payload is None:
            return MonitoringInterval()
        return self._parse(MonitoringInterval, path, payload)

    async def fetch_processing_status(self) -> ProcessingStatus:
        path = "/api/pdfreports/gap-validation-processing"
        payload = await self._get_json(path)
        if payload is None:
            return ProcessingStatus()
        return self._parse(ProcessingStatus, path, payload)

    async def fetch_audit_log(self, alert_id: int) -> list[AuditLogEntry]:
        """Fetch an alert's audit trail, newest first."""
        path = f"/api/gapalerts/{alert_id}/audit"
        payload = await self._get_json(path)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise InvalidResponseError(path, reason="expected a JSON array")
        return [self._parse(AuditLogEntry, path, item) for item in payload]

    # -------------------------------------------------------------------------
    # Validation side
    # -------------------------------------------------------------------------

    async def fetch_analysis(self, report_id: int) -> GapAnalysisResponse:
        """Fetch the gap analysis of a report.

        Uses the long analysis budget: the backend computes confidence for
        every gap on demand and can take minutes.
        """
        path = f"/api/gapanalysis/{report_id}/analysis"
        payload = await self._get_json(path, timeout_seconds=self._config.analysis_timeout_seconds)
        return self._parse(GapAnalysisResponse, path, payload)

    async def submit_action(
        self,
        report_id: int,
        action: ActionKind,
        *,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> ActionResult:
        """POST certify/escalate/breach for a report.

        202 is the primary success path (job continues server-side); 200 is
        accepted as the legacy completion signal. Any other status raises.
        """
        path = f"/api/gapanalysis/{report_id}/{action.endpoint}"
        body: dict[str, Any] | None = None
        if action is not ActionKind.CERTIFY:
            body = {"notes": notes or ""}
        headers = {IDEMPOTENCY_HEADER: idempotency_key} if idempotency_key else None

        response = await self._send(
            "POST",
            path,
            json_body=body,
            headers=headers,
            timeout_seconds=self._config.action_timeout_seconds,
        )
        if response.status_code not in (ACTION_ACCEPTED, ACTION_LEGACY_OK):
            self._raise_for_status(path, response)

        payload = self._try_json(response)
        action_response = ActionResponse()
        if isinstance(payload, dict):
            try:
                action_response = ActionResponse.model_validate(payload)
            except ValidationError:
                logger.debug(f"Ignoring unexpected {action.value} body from {path}")

        logger.debug(f"{action.value} for report {report_id} answered {response.status_code}")
        return ActionResult(
            action=action,
            report_id=report_id,
            status_code=response.status_code,
            response=action_response,
            idempotency_key=idempotency_key,
        )

    async def certify(self, report_id: int, *, idempotency_key: str | None = None) -> ActionResult:
        return await self.submit_action(report_id, ActionKind.CERTIFY, idempotency_key=idempotency_key)

    async def escalate(
        self, report_id: int, notes: str | None = None, *, idempotency_key: str | None = None
    ) -> ActionResult:
        return await self.submit_action(
            report_id, ActionKind.ESCALATE, notes=notes, idempotency_key=idempotency_key
        )

    async def breach(
        self, report_id: int, notes: str | None = None, *, idempotency_key: str | None = None
    ) -> ActionResult:
        return await self.submit_action(
            report_id, ActionKind.BREACH, notes=notes, idempotency_key=idempotency_key
        )

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        timeout_seconds: float | None = None,
    ) -> Any:
        """GET a path and return its decoded JSON body (None when empty)."""
        response = await self._send("GET", path, params=params, timeout_seconds=timeout_seconds)
        if not response.is_success:
            self._raise_for_status(path, response)

        text = decode_body(response.content).strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except (ValueError, RecursionError) as e:
            raise InvalidResponseError(
                path,
                reason="body is not valid JSON",
                status_code=response.status_code,
                cause=e,
            ) from e

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> httpx.Response:
        """Send a request under an overall time ceiling.

        The httpx timeout bounds each phase of the exchange; ``wait_for``
        bounds the exchange as a whole. Both map to RequestTimeoutError.
        """
        budget = timeout_seconds or self._config.request_timeout_seconds
        request = self._client.request(
            method,
            path,
            params=params,
            json=json_body,
            headers=headers,
            timeout=httpx.Timeout(budget),
        )
        logger.debug(f"{method} {path} params={params} budget={budget:g}s")
        try:
            return await asyncio.wait_for(request, timeout=budget)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(path, timeout_seconds=budget, cause=e) from e
        except httpx.RequestError as e:
            # Transport failures plus undecodable bodies and redirect loops
            raise TransportError(path, reason=str(e) or type(e).__name__, cause=e) from e

    def _raise_for_status(self, path: str, response: httpx.Response) -> None:
        parsed = parse_http_error(
            response.status_code,
            response.content,
            limit=self._config.error_text_limit,
        )
        raise HttpStatusError(
            path,
            status_code=response.status_code,
            detail=parsed.message,
            error_code=getattr(parsed, "error_code", None),
        )

    @staticmethod
    def _try_json(response: httpx.Response) -> Any:
        text = decode_body(response.content).strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except (ValueError, RecursionError):
            return None

    @staticmethod
    def _parse(model: type[ModelT], path: str, payload: Any) -> ModelT:
        if payload is None:
            raise InvalidResponseError(path, reason="empty body")
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseError(
                path,
                reason=f"{model.__name__} validation failed ({e.error_count()} errors)",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the underlying client and release connections."""
        await self._client.aclose()

    async def __aenter__(self) -> AlertRepository:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
