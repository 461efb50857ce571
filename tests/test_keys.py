"""Tests for backend key handling."""

import pytest

from cli_telemetry.errors import ConfigError
from cli_telemetry.keys import TelemetryKeys


class TestTelemetryKeys:
    """Tests for key validation and loading."""

    def test_valid_keys(self):
        """Valid keys."""
        keys = TelemetryKeys.validated("phc_validkey123", "https://key@o1.ingest.sentry.io/123")
        assert keys.has_analytics
        assert keys.has_error_tracking

    def test_self_hosted_sentry(self):
        """Self hosted Sentry."""
        keys = TelemetryKeys.validated(sentry_dsn="http://key@sentry.internal:9000/7")
        assert keys.sentry_dsn == "http://key@sentry.internal:9000/7"

    def test_invalid_posthog_key(self):
        """Invalid PostHog key."""
        with pytest.raises(ConfigError):
            TelemetryKeys.validated("invalid_key", None)

    @pytest.mark.parametrize(
        "dsn",
        ["invalid_dsn", "ftp://key@sentry.io/1", "https://sentry.io/1", "https://key@sentry.io/"],
    )
    def test_invalid_sentry_dsn(self, dsn):
        """Invalid Sentry DSN."""
        with pytest.raises(ConfigError):
            TelemetryKeys.validated(None, dsn)

    def test_blank_values_are_absent(self):
        """Blank values are absent."""
        keys = TelemetryKeys.validated("  ", "")
        assert keys == TelemetryKeys()
        assert not keys.has_analytics
        assert not keys.has_error_tracking

    def test_from_env(self):
        """Test loading keys with a custom prefix."""
        keys = TelemetryKeys.from_env(
            "ANVIL",
            environ={
                "ANVIL_POSTHOG_KEY": "phc_testkey123",
                "ANVIL_SENTRY_DSN": "https://test@o1.ingest.sentry.io/123",
            },
        )
        assert keys.posthog_key == "phc_testkey123"
        assert keys.sentry_dsn == "https://test@o1.ingest.sentry.io/123"

    def test_from_env_default_prefix(self, monkeypatch):
        """Test loading keys with the default prefix."""
        monkeypatch.setenv("CLI_TELEMETRY_POSTHOG_KEY", "phc_fromenv")
        monkeypatch.delenv("CLI_TELEMETRY_SENTRY_DSN", raising=False)
        keys = TelemetryKeys.from_env()
        assert keys.posthog_key == "phc_fromenv"
        assert keys.sentry_dsn is None
