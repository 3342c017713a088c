"""
Parsing of backend error bodies.

The backend answers failures either with a JSON object (``{"error": ...}``,
``{"message": ...}``, ASP.NET problem details) or with bare text such as
``Internal Server Error``. ``parse_http_error`` turns any body into a typed
value and never raises.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from gapwatch.core.constants import ERROR_TEXT_LIMIT

_MESSAGE_KEYS = ("error", "message", "title")


@dataclass(frozen=True)
class StructuredError:
    """Error body that parsed as a JSON object."""

    status_code: int
    error: str | None = None
    details: str | None = None
    error_code: str | None = None

    @property
    def message(self) -> str:
        return self.error or f"HTTP {self.status_code}"


@dataclass(frozen=True)
class RawTextError:
    """Error body that was not a JSON object; holds the truncated text."""

    status_code: int
    text: str = ""

    @property
    def message(self) -> str:
        return self.text or f"HTTP {self.status_code}"


ParsedError = Union[StructuredError, RawTextError]


def _truncate(text: str, limit: int) -> str:
    return text[:limit]


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return json.dumps(value)


def decode_body(body: bytes | str | None) -> str:
    """Decode a response body leniently."""
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def parse_http_error(
    status_code: int,
    body: bytes | str | None,
    *,
    limit: int = ERROR_TEXT_LIMIT,
) -> ParsedError:
    """Turn an error response body into a structured or raw-text error.

    Args:
        status_code: HTTP status of the failed response.
        body: Raw response body.
        limit: Maximum length of any message taken from the body.

    Returns:
        StructuredError when the body is a JSON object, RawTextError otherwise.
    """
    text = decode_body(body).strip()
    if not text:
        return RawTextError(status_code=status_code)

    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        # Not JSON, or nested deeper than the decoder can follow
        return RawTextError(status_code=status_code, text=_truncate(text, limit))

    if isinstance(payload, str):
        return RawTextError(status_code=status_code, text=_truncate(payload, limit))
    if not isinstance(payload, dict):
        return RawTextError(status_code=status_code, text=_truncate(text, limit))

    message = next(
        (_as_text(payload[key]) for key in _MESSAGE_KEYS if _as_text(payload.get(key))),
        None,
    )
    details = _as_text(payload.get("details") or payload.get("detail"))
    error_code = _as_text(payload.get("errorCode"))
    return StructuredError(
        status_code=status_code,
        error=_truncate(message, limit) if message else None,
        details=_truncate(details, limit) if details else None,
        error_code=error_code,
    )
