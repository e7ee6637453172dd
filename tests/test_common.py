import json
import logging
from datetime import datetime, timezone

from modstream.common.exceptions import (
    ChannelSendError,
    ConfigError,
    ConnectError,
    DeviceError,
    DeviceReadError,
    HandshakeSendError,
    ModstreamError,
    SessionError,
    UpgradeError,
)
from modstream.common.logging_setup import (
    JsonFormatter,
    ServiceLoggerAdapter,
    log_session_event,
)
from modstream.common.timestamp import format_rfc3339, parse_rfc3339


def test_device_errors_are_recoverable():
    error = DeviceReadError("timeout", address=4000, quantity=2)

    assert isinstance(error, DeviceError)
    assert isinstance(error, ModstreamError)
    assert error.recoverable
    assert (error.address, error.quantity) == (4000, 2)
    assert str(error) == "timeout"
    assert ConnectError("refused", host="h", port=1).recoverable


def test_session_errors_are_fatal():
    for cls in (UpgradeError, HandshakeSendError, ChannelSendError):
        error = cls("gone", peer="127.0.0.1")
        assert isinstance(error, SessionError)
        assert not error.recoverable
        assert error.peer == "127.0.0.1"


def test_config_error_prefix():
    assert str(ConfigError("bad port")) == "Config Error: bad port"


def test_json_formatter_includes_service_and_extras():
    record = logging.LogRecord(
        "modstream.stream", logging.INFO, __file__, 1, "Session started", None, None,
    )
    record.service = "stream.session"
    record.peer = "127.0.0.1"

    data = json.loads(JsonFormatter().format(record))

    assert data["level"] == "INFO"
    assert data["service"] == "stream.session"
    assert data["message"] == "Session started"
    assert data["peer"] == "127.0.0.1"


def test_session_event_log_carries_details(caplog):
    logger = logging.getLogger("tests.session_events")
    adapter = ServiceLoggerAdapter(logger, {"service": "stream.session"})

    with caplog.at_level(logging.INFO, logger="tests.session_events"):
        log_session_event(adapter, "ended", "10.0.0.2", sent=3, reason="close")

    record = caplog.records[-1]
    assert record.getMessage() == "Session ended: 10.0.0.2 (sent=3, reason=close)"
    assert record.service == "stream.session"
    assert record.sent == 3


def test_rfc3339_formatting():
    ts = datetime(2026, 10, 19, 8, 0, 1, 999999, tzinfo=timezone.utc)

    assert format_rfc3339(ts) == "2026-10-19T08:00:01+00:00"
    assert format_rfc3339(ts.replace(tzinfo=None)) == "2026-10-19T08:00:01+00:00"
    assert parse_rfc3339("2026-10-19T08:00:01Z") == ts.replace(microsecond=0)
