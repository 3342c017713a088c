"""
Custom exception hierarchy for the gap alert client.

This module provides a structured exception hierarchy that enables:
- Specific error handling at the repository and controller boundaries
- Rich error context for debugging
- A distinct timeout error, separate from generic transport failures
"""

from __future__ import annotations

from typing import Any


class GapWatchError(Exception):
    """Base exception for all gapwatch errors.

    All custom exceptions inherit from this class, enabling catching every
    client-side failure with a single except clause.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.cause = cause
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message including context."""
        parts = [self.message]
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[{context_str}]")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " ".join(parts)


# =============================================================================
# Repository (HTTP) Exceptions
# =============================================================================


class RepositoryError(GapWatchError):
    """Base exception for failures talking to the alert backend."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        context = dict(context or {})
        if endpoint:
            context.setdefault("endpoint", endpoint)
        super().__init__(message, context=context, cause=cause)
        self.endpoint = endpoint

    @property
    def operator_message(self) -> str:
        """Short message suitable for showing to an operator."""
        return self.message


class TransportError(RepositoryError):
    """Raised when a request never produced an HTTP response.

    Examples:
        - Connection refused
        - DNS failure
        - Connection reset mid-body
    """

    def __init__(
        self,
        endpoint: str,
        *,
        reason: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        message = f"Request to {endpoint} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, endpoint=endpoint, cause=cause)


class RequestTimeoutError(TransportError):
    """Raised when a request exceeds its time budget or is aborted by it."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(endpoint, reason=f"timed out after {timeout_seconds:g}s", cause=cause)
        self.timeout_seconds = timeout_seconds


class HttpStatusError(RepositoryError):
    """Raised when the backend answers with a non-success status.

    The ``detail`` is the operator-facing message extracted from the body,
    either a structured ``error``/``message`` field or truncated raw text.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        status_code: int,
        detail: str,
        error_code: str | None = None,
    ) -> None:
        context: dict[str, Any] = {"status_code": status_code}
        if error_code:
            context["error_code"] = error_code
        super().__init__(detail, endpoint=endpoint, context=context)
        self.status_code = status_code
        self.detail = detail
        self.error_code = error_code


class InvalidResponseError(RepositoryError):
    """Raised when a success response does not carry the expected payload."""

    def __init__(
        self,
        endpoint: str,
        *,
        reason: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(
            f"Invalid response from {endpoint}: {reason}",
            endpoint=endpoint,
            context=context,
            cause=cause,
        )
        self.status_code = status_code


# =============================================================================
# Lifecycle Exceptions
# =============================================================================


class LifecycleError(GapWatchError):
    """Base exception for validation workflow errors."""

    pass


class ActionNotAllowedError(LifecycleError):
    """Raised when an action is refused client-side before any request.

    Examples:
        - Certify on an analysis with zero gaps
        - Escalate on an already escalated alert
        - Any action while another one is in flight
    """

    def __init__(
        self,
        action: str,
        *,
        reason: str,
        report_id: int | None = None,
    ) -> None:
        context: dict[str, Any] = {"action": action}
        if report_id is not None:
            context["report_id"] = report_id
        super().__init__(f"Cannot {action}: {reason}", context=context)
        self.action = action
        self.reason = reason
        self.report_id = report_id


class AlertNotEligibleError(LifecycleError):
    """Raised when an alert cannot be opened for validation."""

    def __init__(self, alert_id: int, *, reason: str) -> None:
        super().__init__(f"Alert {alert_id} cannot be validated: {reason}", context={"alert_id": alert_id})
        self.alert_id = alert_id


# =============================================================================
# Configuration-Related Exceptions
# =============================================================================


class ConfigurationError(GapWatchError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        parameter: str,
        *,
        reason: str,
        value: Any = None,
    ) -> None:
        context = {"parameter": parameter}
        if value is not None:
            context["value"] = value
        super().__init__(f"Configuration error for {parameter}: {reason}", context=context)
        self.parameter = parameter
