"""
Common Utilities

Shared modules used across all services:
- config.py - Configuration dataclasses and YAML loading
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- scheduler.py - Tick scheduler for polling loops
- timestamp.py - RFC3339 timestamps
"""

from .config import (
    AppConfig,
    SessionConfig,
    Protocol,
    load_config,
    save_config,
    validate_config,
    config_from_dict,
)
from .exceptions import (
    ModstreamError,
    ConfigError,
    DeviceError,
    ConnectError,
    DeviceReadError,
    SessionError,
    UpgradeError,
    HandshakeSendError,
    ChannelSendError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    log_register_read,
    log_session_event,
)
from .scheduler import Ticker
from .timestamp import format_rfc3339, utc_now

__all__ = [
    # Config
    "AppConfig",
    "SessionConfig",
    "Protocol",
    "load_config",
    "save_config",
    "validate_config",
    "config_from_dict",
    # Exceptions
    "ModstreamError",
    "ConfigError",
    "DeviceError",
    "ConnectError",
    "DeviceReadError",
    "SessionError",
    "UpgradeError",
    "HandshakeSendError",
    "ChannelSendError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "log_register_read",
    "log_session_event",
    # Scheduling
    "Ticker",
    "format_rfc3339",
    "utc_now",
]
