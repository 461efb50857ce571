"""Tests for the telemetry data models."""

from datetime import timezone

import pytest

from cli_telemetry.errors import InvalidProperties
from cli_telemetry.models import (
    TelemetryConfig,
    TelemetryErrorReport,
    TelemetryEvent,
    sanitize_properties,
    validate_properties,
)


class TestValidateProperties:
    """Tests for property map validation."""

    def test_none_is_empty(self):
        """None becomes an empty mapping."""
        assert validate_properties(None) == {}

    def test_scalars(self):
        """Test that every scalar type is accepted."""
        props = {"s": "x", "i": 1, "f": 1.5, "b": True, "n": None}
        assert validate_properties(props) == props

    def test_returns_a_copy(self):
        """Returns a copy."""
        props = {"a": 1}
        validated = validate_properties(props)
        validated["b"] = 2
        assert props == {"a": 1}

    @pytest.mark.parametrize("value", [[1], {"a": 1}, object(), b"bytes"])
    def test_rejects_non_scalars(self, value):
        """Rejects non scalars."""
        with pytest.raises(InvalidProperties):
            validate_properties({"key": value})

    def test_rejects_non_string_keys(self):
        """Rejects non string keys."""
        with pytest.raises(InvalidProperties):
            validate_properties({1: "a"})

    def test_rejects_non_mapping(self):
        """Rejects non mapping."""
        with pytest.raises(InvalidProperties):
            validate_properties([("a", 1)])


def test_config_defaults():
    """Test config defaults."""
    config = TelemetryConfig(app_name="demo-cli")
    assert config.consent_given is None
    assert config.consent_unset
    assert config.created_at.tzinfo == timezone.utc
    assert "config_path" not in config.to_dict()


def test_event_payload():
    """Test building the PostHog payload."""
    event = TelemetryEvent(
        name="node_started",
        properties={"network": "local"},
        anonymous_id="abc",
        app_name="demo-cli",
        os_platform="linux",
        library_version="0.1.0",
    )
    payload = event.to_posthog_payload()
    assert payload["event"] == "node_started"
    assert payload["distinct_id"] == "abc"
    assert payload["properties"]["network"] == "local"
    assert payload["properties"]["$os"] == "linux"
    assert payload["properties"]["library_version"] == "0.1.0"
    assert "$timestamp" in payload["properties"]


def test_error_report_keeps_only_the_message():
    """Error report keeps only the message."""
    try:
        raise RuntimeError("boom")
    except RuntimeError as e:
        report = TelemetryErrorReport.from_error(e, anonymous_id="abc", app_name="demo-cli")

    payload = report.to_sentry_payload()
    assert payload == {
        "message": "boom",
        "level": "error",
        "extra": {},
        "tags": {"app_name": "demo-cli", "error_kind": "RuntimeError"},
        "user": {"id": "abc"},
    }


def test_error_report_without_message():
    """Error report without message."""
    report = TelemetryErrorReport.from_error(KeyError(), anonymous_id="abc", app_name="demo-cli")
    assert report.message == "KeyError"


def test_sanitize_properties_drops_invalid_entries(caplog):
    """Invalid entries are dropped and logged instead of raised."""
    with caplog.at_level("WARNING", logger="cli_telemetry"):
        props = sanitize_properties({"ok": 1, "bad": [1], 2: "x"})
    assert props == {"ok": 1}
    assert "bad" in caplog.text
    assert sanitize_properties("not a mapping") == {}
    assert sanitize_properties(None) == {}
