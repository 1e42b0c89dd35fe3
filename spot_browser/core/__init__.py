"""
Core module for spot-browser.

Foundational components used throughout the application:
    - exceptions: Error hierarchy (SpotBrowserError and subclasses)
    - config: Settings file loading/saving and filesystem paths
    - logger: Console + file logging setup
    - events: Process-wide event bus (AuthErrorEvent, ApiErrorEvent)
    - executor: UI executor and worker pool

Usage:
    from spot_browser.core import (
        Settings, load_settings, Paths,
        setup_logging, get_logger,
        get_event_bus, AuthErrorEvent,
    )
"""

from spot_browser.core.config import Paths, Settings, load_settings, save_settings
from spot_browser.core.events import (
    ApiErrorEvent,
    AuthErrorEvent,
    BusEvent,
    EventBus,
    get_event_bus,
    init_event_bus,
    shutdown_event_bus,
)
from spot_browser.core.exceptions import (
    ApiError,
    AuthError,
    ConfigError,
    DecodeError,
    ListenerError,
    OtherApiError,
    RateLimitedError,
    SpotBrowserError,
    TransportError,
    UnauthorizedError,
)
from spot_browser.core.executor import UiExecutor, WorkerPool
from spot_browser.core.logger import (
    get_logger,
    log_api_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "Paths",
    "Settings",
    "load_settings",
    "save_settings",
    "ApiErrorEvent",
    "AuthErrorEvent",
    "BusEvent",
    "EventBus",
    "get_event_bus",
    "init_event_bus",
    "shutdown_event_bus",
    "ApiError",
    "AuthError",
    "ConfigError",
    "DecodeError",
    "ListenerError",
    "OtherApiError",
    "RateLimitedError",
    "SpotBrowserError",
    "TransportError",
    "UnauthorizedError",
    "UiExecutor",
    "WorkerPool",
    "get_logger",
    "log_api_failure",
    "setup_logging",
    "shutdown_logging",
]
