"""
Core module - configuration, constants, exceptions and logging.
"""

from gapwatch.core.config import (
    AppConfig,
    BackendConfig,
    DashboardConfig,
    get_config,
    reset_config,
    set_config,
)
from gapwatch.core.constants import (
    ESCALATABLE_STATUSES,
    FLEET_API_OUTAGE,
    HIGH_CONFIDENCE_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
    OPENABLE_STATUSES,
    PAGE_SIZE,
    TERMINAL_STATUSES,
    ActionKind,
    AlertSeverity,
    AlertStatus,
    AlertType,
    AuditActionType,
    ConfidenceBand,
    RefreshMode,
)
from gapwatch.core.exceptions import (
    ActionNotAllowedError,
    AlertNotEligibleError,
    ConfigurationError,
    GapWatchError,
    HttpStatusError,
    InvalidResponseError,
    LifecycleError,
    RepositoryError,
    RequestTimeoutError,
    TransportError,
)
from gapwatch.core.logging import (
    EventType,
    configure_logging,
    get_logger,
    log_event,
)

__all__ = [
    # Config
    "AppConfig",
    "BackendConfig",
    "DashboardConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Constants
    "ActionKind",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "AuditActionType",
    "ConfidenceBand",
    "RefreshMode",
    "ESCALATABLE_STATUSES",
    "FLEET_API_OUTAGE",
    "HIGH_CONFIDENCE_THRESHOLD",
    "MEDIUM_CONFIDENCE_THRESHOLD",
    "OPENABLE_STATUSES",
    "PAGE_SIZE",
    "TERMINAL_STATUSES",
    # Exceptions
    "GapWatchError",
    "RepositoryError",
    "TransportError",
    "RequestTimeoutError",
    "HttpStatusError",
    "InvalidResponseError",
    "LifecycleError",
    "ActionNotAllowedError",
    "AlertNotEligibleError",
    "ConfigurationError",
    # Logging
    "EventType",
    "configure_logging",
    "get_logger",
    "log_event",
]
