"""Consent-gated telemetry client for command-line applications.

Events go to PostHog and error reports to Sentry, but only while the user
has opted in and the process is not running under CI. Both conditions are
re-checked on every call, so consent granted or revoked elsewhere in the
host application takes effect without rebuilding the client.
"""

from __future__ import annotations

import logging
import os
import threading
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import Any, Mapping, Optional, Type, Union

from cli_telemetry import __version__
from cli_telemetry.config import ConfigStore
from cli_telemetry.environment import EnvironmentDetector
from cli_telemetry.errors import ConfigError, PersistError, SendFailed, TransportError
from cli_telemetry.keys import TelemetryKeys
from cli_telemetry.models import (
    TelemetryConfig,
    TelemetryErrorReport,
    TelemetryEvent,
    sanitize_properties,
    validate_properties,
)
from cli_telemetry.senders import (
    DEFAULT_POSTHOG_HOST,
    NoopSender,
    PostHogSender,
    Sender,
    SentrySender,
)

LOG_LEVEL_ENV_VAR = "CLI_TELEMETRY_LOG_LEVEL"
POSTHOG_HOST_ENV_VAR = "CLI_TELEMETRY_POSTHOG_HOST"

TELEMETRY_LOGGER = "cli_telemetry"


def configure_telemetry_logging(level: Optional[int] = None) -> None:
    """Set the level of the library's own logger.

    Without an explicit ``level`` the ``CLI_TELEMETRY_LOG_LEVEL`` environment
    variable is used, falling back to WARNING so that telemetry stays quiet
    in the host application's output.
    """
    if level is None:
        env_level = os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING").upper()
        level = logging.getLevelName(env_level)
        if not isinstance(level, int):
            level = logging.WARNING

    logging.getLogger(TELEMETRY_LOGGER).setLevel(level)


configure_telemetry_logging()

logger = logging.getLogger("cli_telemetry.client")


class SendOutcome(str, Enum):
    """What happened to a single ``track_*`` call."""

    SENT = "sent"
    SUPPRESSED_CI = "suppressed_ci"
    SUPPRESSED_CONSENT = "suppressed_consent"
    DISABLED = "disabled"
    SEND_FAILED = "send_failed"

    @property
    def delivered(self) -> bool:
        return self is SendOutcome.SENT


class Telemetry:
    """Telemetry client embedded in a host CLI.

    Example:
        >>> telemetry = Telemetry("demo-cli", analytics_key="phc_...")
        >>> telemetry.track_event("node_started", {"network": "local"})
        <SendOutcome.SUPPRESSED_CONSENT: 'suppressed_consent'>

    ``track_event`` and ``track_error`` never raise because of the backends:
    transport failures are logged and reported as ``SendOutcome.SEND_FAILED``.
    """

    def __init__(
        self,
        app_name: str,
        analytics_key: Optional[str] = None,
        error_tracking_key: Optional[str] = None,
        config_path: Optional[Union[str, Path]] = None,
        *,
        analytics_sender: Optional[Sender] = None,
        error_sender: Optional[Sender] = None,
        environment: Optional[EnvironmentDetector] = None,
        config_store: Optional[ConfigStore] = None,
        posthog_host: Optional[str] = None,
    ):
        """Initialize the client.

        Args:
            app_name: Name of the host application
            analytics_key: PostHog project key, or None to disable analytics
            error_tracking_key: Sentry DSN, or None to disable error tracking
            config_path: Config file location overriding the platform default
            analytics_sender: Sender used instead of the PostHog one
            error_sender: Sender used instead of the Sentry one
            environment: Environment detector, reads ``os.environ`` by default
            config_store: Store used to read and write the config
            posthog_host: PostHog host, defaults to ``CLI_TELEMETRY_POSTHOG_HOST``

        Raises:
            ConfigError: If the config file could not be loaded or created, or
                a key is malformed
        """
        self.app_name = app_name
        self._custom_config_path = config_path
        self._environment = environment or EnvironmentDetector()
        self._store = config_store or ConfigStore()
        self._lock = threading.Lock()

        self._config = self._store.load_or_create(app_name, config_path)
        keys = TelemetryKeys.validated(analytics_key, error_tracking_key)

        if analytics_sender is None:
            if keys.has_analytics:
                host = (
                    posthog_host
                    or self._environment.environ.get(POSTHOG_HOST_ENV_VAR)
                    or DEFAULT_POSTHOG_HOST
                )
                analytics_sender = PostHogSender(keys.posthog_key, host)
            else:
                analytics_sender = NoopSender()
        if error_sender is None:
            if keys.has_error_tracking:
                error_sender = SentrySender(keys.sentry_dsn, release=f"{app_name}@{__version__}")
            else:
                error_sender = NoopSender()

        self._analytics = analytics_sender
        self._errors = error_sender

        logger.info(
            f"Telemetry client for {app_name} ready "
            f"(analytics={'on' if self._analytics.enabled else 'off'}, "
            f"error tracking={'on' if self._errors.enabled else 'off'})"
        )

    @property
    def config(self) -> TelemetryConfig:
        """The most recently read config snapshot."""
        with self._lock:
            return self._config

    @property
    def config_path(self) -> Path:
        return self.config.config_path

    @property
    def anonymous_id(self) -> str:
        return self.config.anonymous_id

    @property
    def consent_given(self) -> Optional[bool]:
        """The stored consent, re-read from disk."""
        return self._refresh_consent()

    @property
    def analytics_enabled(self) -> bool:
        return self._analytics.enabled

    @property
    def error_tracking_enabled(self) -> bool:
        return self._errors.enabled

    def _refresh_consent(self) -> Optional[bool]:
        consent = self._store.read_consent(self.app_name, self.config_path)
        with self._lock:
            if self._config.consent_given != consent:
                logger.debug(f"Telemetry consent changed on disk: {consent}")
                self._config = self._config.model_copy(update={"consent_given": consent})
        return consent

    def _eligibility(self) -> Optional[SendOutcome]:
        """Return the suppression outcome, or None if sending is allowed."""
        if self._environment.is_ci():
            return SendOutcome.SUPPRESSED_CI
        if self._environment.is_do_not_track():
            return SendOutcome.SUPPRESSED_CONSENT
        if self._refresh_consent() is not True:
            return SendOutcome.SUPPRESSED_CONSENT
        return None

    def is_enabled(self) -> bool:
        """Check whether a send would currently be attempted."""
        return self._eligibility() is None

    def _dispatch(self, channel: str, sender: Sender, payload: Mapping[str, Any]) -> SendOutcome:
        try:
            sender.send(dict(payload))
        except TransportError as e:
            failure = SendFailed(channel, e)
            logger.warning(str(failure))
            return SendOutcome.SEND_FAILED
        except Exception as e:
            # Backend SDK bugs must not reach the host either
            failure = SendFailed(channel, e)
            logger.warning(f"{failure} (unexpected error)")
            return SendOutcome.SEND_FAILED
        logger.debug(f"Sent {channel} telemetry")
        return SendOutcome.SENT

    def track_event(
        self, event_name: str, properties: Optional[Mapping[str, Any]] = None
    ) -> SendOutcome:
        """Record an analytics event.

        Args:
            event_name: Name of the event, e.g. ``node_started``
            properties: Event properties (must not contain sensitive data)

        Returns:
            SendOutcome: What happened to the event

        Raises:
            InvalidProperties: If a property value is not a JSON scalar
        """
        props = validate_properties(properties)

        suppressed = self._eligibility()
        if suppressed is not None:
            logger.debug(f"Telemetry event {event_name} not sent: {suppressed.value}")
            return suppressed
        if not self._analytics.enabled:
            logger.debug(f"Analytics disabled, skipping event: {event_name}")
            return SendOutcome.DISABLED

        config = self.config
        event = TelemetryEvent(
            name=event_name,
            properties=props,
            anonymous_id=config.anonymous_id,
            app_name=self.app_name,
            os_platform=self._environment.platform_name(),
            library_version=__version__,
        )
        return self._dispatch("analytics", self._analytics, event.to_posthog_payload())

    def track_error(
        self,
        error: Any,
        *,
        context: Optional[Mapping[str, Any]] = None,
        kind: Optional[str] = None,
    ) -> SendOutcome:
        """Report an error to the error-tracking backend.

        Only the error's message and classification are sent; the error
        object and its traceback stay local.

        Args:
            error: Any value with a displayable message, usually an exception
            context: Extra properties describing the failure; entries that are
                not JSON scalars are logged and dropped rather than raised, so
                the host's own exception is never replaced
            kind: Classification overriding the one derived from ``error``

        Returns:
            SendOutcome: What happened to the report
        """
        context_props = sanitize_properties(context)

        suppressed = self._eligibility()
        if suppressed is not None:
            logger.debug(f"Error report not sent: {suppressed.value}")
            return suppressed
        if not self._errors.enabled:
            logger.debug("Error tracking disabled, skipping error report")
            return SendOutcome.DISABLED

        report = TelemetryErrorReport.from_error(
            error,
            anonymous_id=self.config.anonymous_id,
            app_name=self.app_name,
            context=context_props,
            kind=kind,
            os_platform=self._environment.platform_name(),
        )
        return self._dispatch("error tracking", self._errors, report.to_sentry_payload())

    def update_consent(self, enabled: bool) -> bool:
        """Persist the user's consent decision.

        Returns:
            bool: True if the decision was saved, False if writing failed
        """
        try:
            config = self._store.update_consent(self.app_name, self.config_path, enabled)
        except (PersistError, ConfigError) as e:
            logger.warning(f"Could not save telemetry consent: {e}")
            return False
        with self._lock:
            self._config = config
        return True

    def enable(self) -> bool:
        """Opt in to telemetry."""
        return self.update_consent(True)

    def disable(self) -> bool:
        """Opt out of telemetry."""
        return self.update_consent(False)

    def flush(self) -> None:
        """Flush both senders."""
        for sender in (self._analytics, self._errors):
            try:
                sender.flush()
            except Exception as e:
                logger.debug(f"Failed to flush telemetry sender: {e}")

    def shutdown(self) -> None:
        """Flush pending payloads and close both senders."""
        self.flush()
        for sender in (self._analytics, self._errors):
            try:
                sender.close()
            except Exception as e:
                logger.debug(f"Failed to close telemetry sender: {e}")

    def __enter__(self) -> Telemetry:
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.shutdown()
