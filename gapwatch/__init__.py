"""
gapwatch - Gap alert lifecycle and validation client.

Client for a fleet telemetry backend that raises alerts when a vehicle's
data collection has gaps. Operators browse alerts, inspect the
confidence-scored gap analysis of a report, and certify, escalate or
declare a contract breach.

Package Structure:
    - core: Configuration, constants, exceptions, logging, protocols
    - api: Pydantic models of the backend payloads
    - repository: Asynchronous REST client
    - dashboard: Alert list, validation lifecycle and refresh scheduling

Example usage:
    from gapwatch.repository import AlertRepository
    from gapwatch.dashboard import AlertListController, RefreshScheduler
"""

__version__ = "1.0.0"

from gapwatch.core.config import AppConfig, get_config
from gapwatch.core.constants import ActionKind, AlertSeverity, AlertStatus
from gapwatch.core.exceptions import GapWatchError
from gapwatch.core.logging import configure_logging, get_logger

__all__ = [
    # Version
    "__version__",
    # Config
    "get_config",
    "AppConfig",
    # Constants
    "ActionKind",
    "AlertSeverity",
    "AlertStatus",
    # Exceptions
    "GapWatchError",
    # Logging
    "get_logger",
    "configure_logging",
]
