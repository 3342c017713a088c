"""
Repository module - REST access to the gap alert backend.

This module contains:
    - client: asynchronous AlertRepository over httpx
    - errors: tolerant parsing of error response bodies
"""

from gapwatch.repository.client import ActionResult, AlertRepository
from gapwatch.repository.errors import (
    ParsedError,
    RawTextError,
    StructuredError,
    parse_http_error,
)

__all__ = [
    "AlertRepository",
    "ActionResult",
    "ParsedError",
    "RawTextError",
    "StructuredError",
    "parse_http_error",
]
