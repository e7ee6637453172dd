"""
Configuration Dataclasses

Type-safe configuration structures for the bridge, plus the YAML file
layer that loads them. A missing config file is created with defaults;
an unreadable or invalid one is replaced by defaults for the run.
"""

from dataclasses import dataclass, asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from modstream.common.exceptions import ConfigError
from modstream.common.logging_setup import get_service_logger

logger = get_service_logger("config")

DEFAULT_CONFIG_PATH = "config.yaml"

MAX_REGISTER = 0xFFFF
MAX_UNIT_ID = 0xFF


class Protocol(str, Enum):
    """Device link protocols"""
    TCP = "tcp"
    RTU = "rtu"


@dataclass(frozen=True)
class SessionConfig:
    """Per-session streaming parameters. Immutable for the session's life."""
    host: str
    port: int
    start_address: int = 0
    quantity: int = 2
    poll_interval: float = 1.0
    unit_id: int = 1
    send_timeout: float = 5.0

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class AppConfig:
    """Application configuration (config.yaml)"""
    server_ip: str = "localhost"
    server_port: int = 5020
    start_address: int = 0
    quantity: int = 2
    delay_seconds: int = 1
    web_ui_port: int = 8080
    slave_id: int = 1

    web_ui_host: str = "0.0.0.0"
    protocol: Protocol = Protocol.TCP
    # RTU settings (used when protocol == RTU)
    serial_port: str = ""         # e.g., "/dev/ttyUSB0"
    baudrate: int = 9600
    parity: str = "N"             # N=None, E=Even, O=Odd
    stopbits: int = 1
    timeout: float = 1.0          # Device request timeout (s)
    send_timeout: float = 5.0     # Per-message WebSocket send deadline (s)

    def session_config(self) -> SessionConfig:
        """Build the per-session parameters from this configuration"""
        if self.protocol == Protocol.RTU:
            host, port = self.serial_port, self.baudrate
        else:
            host, port = self.server_ip, self.server_port

        return SessionConfig(
            host=host,
            port=port,
            start_address=self.start_address,
            quantity=self.quantity,
            poll_interval=float(self.delay_seconds),
            unit_id=self.slave_id,
            send_timeout=self.send_timeout,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["protocol"] = self.protocol.value
        return data


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate the configuration.

    Args:
        config: Configuration to check

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    if not isinstance(config.server_ip, str) or not config.server_ip:
        errors.append("server_ip must be a non-empty string")

    for name in ("server_port", "web_ui_port"):
        value = getattr(config, name)
        if not _is_int(value) or not 1 <= value <= 65535:
            errors.append(f"{name} must be an integer between 1 and 65535")

    for name in ("start_address", "quantity"):
        value = getattr(config, name)
        if not _is_int(value) or not 0 <= value <= MAX_REGISTER:
            errors.append(f"{name} must be an integer between 0 and {MAX_REGISTER}")

    if not _is_int(config.delay_seconds) or config.delay_seconds < 1:
        errors.append("delay_seconds must be an integer >= 1")

    if not _is_int(config.slave_id) or not 0 <= config.slave_id <= MAX_UNIT_ID:
        errors.append(f"slave_id must be an integer between 0 and {MAX_UNIT_ID}")

    for name in ("timeout", "send_timeout"):
        value = getattr(config, name)
        if not _is_number(value) or value <= 0:
            errors.append(f"{name} must be a positive number")

    if config.protocol == Protocol.RTU:
        if not config.serial_port:
            errors.append("serial_port is required when protocol is rtu")
        if config.parity not in ("N", "E", "O"):
            errors.append("parity must be one of N, E, O")
        if config.stopbits not in (1, 2):
            errors.append("stopbits must be 1 or 2")
        if not _is_int(config.baudrate) or config.baudrate <= 0:
            errors.append("baudrate must be a positive integer")

    return errors


def config_from_dict(data: dict) -> AppConfig:
    """
    Build AppConfig from a dictionary (e.g., parsed YAML).

    Missing keys take defaults; unknown keys are ignored.

    Raises:
        ConfigError: If protocol is not a known value
    """
    known = {f.name for f in fields(AppConfig)}
    kwargs = {}
    for key, value in data.items():
        if key not in known:
            logger.debug(f"Ignoring unknown config key: {key}")
            continue
        kwargs[key] = value

    if "protocol" in kwargs:
        try:
            kwargs["protocol"] = Protocol(str(kwargs["protocol"]).lower())
        except ValueError:
            raise ConfigError(f"unknown protocol '{kwargs['protocol']}'")

    return AppConfig(**kwargs)


def save_config(config: AppConfig, path: str | Path = DEFAULT_CONFIG_PATH) -> None:
    """Write configuration to a YAML file"""
    path = Path(path)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """
    Load configuration from a YAML file.

    If the file does not exist it is created with default values.
    If it exists but cannot be parsed or is invalid, a warning is logged
    and defaults are used.

    Args:
        path: Path to configuration file

    Returns:
        Loaded (or default) configuration
    """
    path = Path(path)
    defaults = AppConfig()

    if not path.exists():
        logger.info(f"{path} not found. Creating with default values.")
        save_config(defaults, path)
        return defaults

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError("top level must be a mapping")
        config = config_from_dict(data)
    except (yaml.YAMLError, ConfigError, TypeError) as e:
        logger.warning(f"Error loading {path}: {e}. Using default configuration.")
        return defaults

    errors = validate_config(config)
    if errors:
        for error in errors:
            logger.warning(f"Configuration error in {path}: {error}")
        logger.warning("Using default configuration.")
        return defaults

    logger.info(f"Loaded configuration from {path}")
    return config
