"""Test module for structured logging helpers."""
import json
import logging

from app.core.logging_config import (
    ContextEnricher,
    JSONFormatter,
    bind_request_context,
    request_id_ctx,
    reset_request_context,
)


def _record(**extra):
    record = logging.LogRecord(
        "app.notifications", logging.INFO, __file__, 10, "Dispatched %s", ("reminder",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_known_extras():
    """Test case for JSON log lines."""
    payload = json.loads(
        JSONFormatter().format(_record(event_type="reminder", duration="1.50", colour="red"))
    )
    assert payload["message"] == "Dispatched reminder"
    assert payload["logger"] == "app.notifications"
    assert payload["event_type"] == "reminder"
    assert payload["duration_ms"] == "1.50"
    assert "colour" not in payload
    assert payload["timestamp"].endswith("Z")


def test_context_is_bound_and_reset():
    """Test case for request context propagation into records."""
    tokens = bind_request_context(request_id="abc", ip_address="10.0.0.1")
    try:
        record = _record()
        ContextEnricher().filter(record)
        assert record.request_id == "abc"
        assert record.ip_address == "10.0.0.1"
    finally:
        reset_request_context(tokens)
    assert request_id_ctx.get() is None
