"""Shared fixtures for the telemetry tests."""

import pytest

from cli_telemetry import ConfigStore, EnvironmentDetector, RecordingSender, Telemetry


@pytest.fixture
def config_path(tmp_path):
    """Config file location inside a temporary directory."""
    return tmp_path / "demo-cli" / "telemetry.json"


@pytest.fixture
def interactive_env():
    """A synthetic environment without any CI markers."""
    return EnvironmentDetector({})


@pytest.fixture
def ci_env():
    """A synthetic environment that looks like a CI run."""
    return EnvironmentDetector({"CI": "true"})


@pytest.fixture
def analytics():
    """Recording sender standing in for PostHog."""
    return RecordingSender()


@pytest.fixture
def errors():
    """Recording sender standing in for Sentry."""
    return RecordingSender()


@pytest.fixture
def make_client(config_path, interactive_env, analytics, errors):
    """Build a client wired to recording senders."""

    def _make(consent=None, environment=None, **kwargs):
        if consent is not None:
            ConfigStore().update_consent("demo-cli", config_path, consent)
        kwargs.setdefault("analytics_sender", analytics)
        kwargs.setdefault("error_sender", errors)
        return Telemetry(
            "demo-cli",
            config_path=config_path,
            environment=environment or interactive_env,
            **kwargs,
        )

    return _make
