"""Consent-gated telemetry for command-line applications.

It provides a low-overhead way to collect anonymous usage data and error
reports, sent only after the user has opted in.
"""

__version__ = "0.1.0"

from cli_telemetry.client import SendOutcome, Telemetry, configure_telemetry_logging
from cli_telemetry.config import ConfigStore, resolve_config_path, update_consent
from cli_telemetry.consent import prompt_for_consent
from cli_telemetry.environment import EnvironmentDetector, is_ci, is_interactive
from cli_telemetry.errors import (
    ConfigCorrupt,
    ConfigError,
    InvalidProperties,
    PersistError,
    SendFailed,
    TelemetryError,
    TransportError,
)
from cli_telemetry.keys import TelemetryKeys
from cli_telemetry.models import TelemetryConfig, TelemetryErrorReport, TelemetryEvent
from cli_telemetry.senders import (
    NoopSender,
    PostHogSender,
    RecordingSender,
    Sender,
    SentrySender,
)


__all__ = [
    "ConfigCorrupt",
    "ConfigError",
    "ConfigStore",
    "EnvironmentDetector",
    "InvalidProperties",
    "NoopSender",
    "PersistError",
    "PostHogSender",
    "RecordingSender",
    "SendFailed",
    "SendOutcome",
    "Sender",
    "SentrySender",
    "Telemetry",
    "TelemetryConfig",
    "TelemetryError",
    "TelemetryErrorReport",
    "TelemetryEvent",
    "TelemetryKeys",
    "TransportError",
    "configure_telemetry_logging",
    "is_ci",
    "is_interactive",
    "prompt_for_consent",
    "resolve_config_path",
    "update_consent",
]
