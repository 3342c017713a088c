"""
Operator-visible event log.

Controllers never raise list or stats failures to the caller; they record
them here instead. Every entry is mirrored to the standard logger.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gapwatch.core.logging import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """One recorded component event."""

    component: str
    level: int
    event_type: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.level >= logging.ERROR


class EventLog:
    """Bounded in-memory log of component events."""

    def __init__(self, max_size: int = 200, log: logging.Logger | None = None) -> None:
        self._events: deque[Event] = deque(maxlen=max_size)
        self._logger = log or logger

    def record(
        self,
        component: str,
        level: int,
        event_type: str,
        message: str,
        **details: Any,
    ) -> Event:
        """Record an event and mirror it to the logger."""
        event = Event(
            component=component,
            level=level,
            event_type=event_type,
            message=message,
            details=details,
        )
        self._events.append(event)
        log_event(self._logger, level, event_type, component, message, **details)
        return event

    def info(self, component: str, event_type: str, message: str, **details: Any) -> Event:
        return self.record(component, logging.INFO, event_type, message, **details)

    def warning(self, component: str, event_type: str, message: str, **details: Any) -> Event:
        return self.record(component, logging.WARNING, event_type, message, **details)

    def error(self, component: str, event_type: str, message: str, **details: Any) -> Event:
        return self.record(component, logging.ERROR, event_type, message, **details)

    def entries(self, event_type: str | None = None) -> list[Event]:
        """Get recorded events, oldest first, optionally filtered by type."""
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.event_type == event_type]

    def errors(self) -> list[Event]:
        return [e for e in self._events if e.is_error]

    def last(self) -> Event | None:
        return self._events[-1] if self._events else None

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
