"""
Structured Logging Setup

Consistent logging configuration across all services.
Uses JSON format for structured logs by default; set
MODSTREAM_LOG_FORMAT=text for human-readable output.
"""

import logging
import sys
import os
from datetime import datetime, timezone
from typing import Any
import json

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "service",
    "message", "taskName",
))


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds service name to all logs"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs.setdefault("extra", {})
        kwargs["extra"]["service"] = self.extra.get("service", "unknown")
        return msg, kwargs


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for a service.

    Args:
        service_name: Name of the service (e.g., "web", "stream.session")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"modstream.{service_name}")
    logger.setLevel(numeric_level)

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    Args:
        service_name: Name of the service

    Returns:
        Logger adapter with service name in all logs
    """
    log_level = os.environ.get("MODSTREAM_LOG_LEVEL", "INFO")
    json_format = os.environ.get("MODSTREAM_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(service_name, log_level, json_format)
    return ServiceLoggerAdapter(logger, {"service": service_name})


def configure_all(log_level: str, json_format: bool) -> None:
    """
    Reconfigure every modstream logger created so far.

    Used by the CLI after parsing --log-level/--log-format, since module
    level loggers are created at import time.
    """
    os.environ["MODSTREAM_LOG_LEVEL"] = log_level
    os.environ["MODSTREAM_LOG_FORMAT"] = "json" if json_format else "text"

    for name in list(logging.root.manager.loggerDict):
        if name.startswith("modstream."):
            setup_logging(name[len("modstream."):], log_level, json_format)


def log_register_read(
    logger: logging.Logger,
    address: int,
    quantity: int,
    values: list[int] | None = None,
    error: Any = None,
) -> None:
    """Log a register block read"""
    if error is None:
        logger.debug(
            f"Read {quantity} registers at {address}",
            extra={"address": address, "quantity": quantity, "values": values},
        )
    else:
        logger.warning(
            f"Failed to read {quantity} registers at {address}: {error}",
            extra={"address": address, "quantity": quantity},
        )


def log_session_event(
    logger: logging.Logger,
    event: str,
    peer: str,
    **details: Any,
) -> None:
    """Log a streaming session lifecycle event"""
    suffix = ", ".join(f"{k}={v}" for k, v in details.items())
    logger.info(
        f"Session {event}: {peer}" + (f" ({suffix})" if suffix else ""),
        extra={"event": event, "peer": peer, **details},
    )
