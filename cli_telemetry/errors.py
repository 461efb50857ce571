"""Exceptions raised by the telemetry library."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base class for all telemetry errors."""


class ConfigError(TelemetryError):
    """The telemetry config location could not be established."""


class ConfigCorrupt(ConfigError):
    """The persisted config file exists but cannot be parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse telemetry config at {path}: {reason}")


class PersistError(TelemetryError):
    """Writing the config file failed (disk full, permission denied, ...)."""


class TransportError(TelemetryError):
    """A sender could not deliver its payload to the backend."""


class SendFailed(TelemetryError):
    """A payload was dropped after a transport failure.

    Never raised out of ``track_event``/``track_error``; the client logs it
    and reports ``SendOutcome.SEND_FAILED`` instead.
    """

    def __init__(self, channel: str, cause: BaseException):
        self.channel = channel
        self.cause = cause
        super().__init__(f"Failed to send {channel} telemetry: {cause}")


class InvalidProperties(TelemetryError, ValueError):
    """Event properties contain a value that is not a JSON scalar."""
