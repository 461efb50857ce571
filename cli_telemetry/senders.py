"""Transports that deliver telemetry payloads to their backends.

Every backend is reached through the same :class:`Sender` capability, so
the client never needs to know which SDK sits behind a channel.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import sentry_sdk
from posthog import Posthog

from cli_telemetry.errors import TransportError

logger = logging.getLogger("cli_telemetry.senders")

DEFAULT_POSTHOG_HOST = "https://us.i.posthog.com"
SENTRY_FLUSH_TIMEOUT = 2.0


class Sender(ABC):
    """A single telemetry backend."""

    #: Whether payloads handed to this sender can leave the process
    enabled: bool = True

    @abstractmethod
    def send(self, payload: Dict[str, Any]) -> None:
        """Deliver ``payload``.

        Raises:
            TransportError: If the backend could not be reached
        """

    def flush(self) -> None:
        """Deliver anything still buffered."""

    def close(self) -> None:
        """Release the underlying client."""


class NoopSender(Sender):
    """Sender for a disabled channel; drops every payload."""

    enabled = False

    def send(self, payload: Dict[str, Any]) -> None:
        logger.debug("Channel disabled, dropping telemetry payload")


class RecordingSender(Sender):
    """Captures payloads in memory instead of performing network I/O.

    Args:
        fail_with: Exception raised from every :meth:`send` call, after the
            payload has been recorded
    """

    def __init__(self, fail_with: Optional[BaseException] = None):
        self.payloads: List[Dict[str, Any]] = []
        self.fail_with = fail_with
        self.flushed = 0
        self.closed = False
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.payloads)

    @property
    def last_payload(self) -> Optional[Dict[str, Any]]:
        return self.payloads[-1] if self.payloads else None

    def send(self, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.payloads.append(copy.deepcopy(payload))
        if self.fail_with is not None:
            raise self.fail_with

    def flush(self) -> None:
        self.flushed += 1

    def close(self) -> None:
        self.closed = True


class PostHogSender(Sender):
    """Sends analytics events to PostHog.

    The PostHog client runs in sync mode so that :meth:`send` returns only
    after the request has completed.
    """

    def __init__(self, api_key: str, host: str = DEFAULT_POSTHOG_HOST, *, debug: bool = False):
        self.host = host
        self._client = Posthog(
            project_api_key=api_key,
            host=host,
            debug=debug,
            sync_mode=True,
            disable_geoip=True,
        )
        logger.debug(f"PostHog sender initialized for {host}")

    def send(self, payload: Dict[str, Any]) -> None:
        try:
            result = self._client.capture(
                distinct_id=payload["distinct_id"],
                event=payload["event"],
                properties=payload.get("properties", {}),
            )
        except Exception as e:
            raise TransportError(f"PostHog capture failed: {e}") from e
        # The sync-mode client logs request failures itself and returns None
        if result is None:
            raise TransportError("PostHog client did not deliver the event")

    def flush(self) -> None:
        try:
            self._client.flush()
        except Exception as e:
            logger.debug(f"Failed to flush PostHog events: {e}")

    def close(self) -> None:
        try:
            self._client.shutdown()
        except Exception as e:
            logger.debug(f"Failed to shut down PostHog client: {e}")


class SentrySender(Sender):
    """Sends error reports to Sentry through an isolated client.

    The client is not bound to the global hub, and default integrations are
    off, so the host application's own exception hooks stay untouched.

    Delivery happens on the SDK's background transport. :meth:`send` only
    detects events the client refuses to accept; an unreachable server is
    reported by the ``sentry_sdk`` logger and the event still counts as sent.
    """

    def __init__(self, dsn: str, *, release: Optional[str] = None):
        self._client = sentry_sdk.Client(
            dsn=dsn,
            release=release,
            # PII collection stays at the SDK default, which is off
            default_integrations=False,
            traces_sample_rate=0.0,
        )
        logger.debug("Sentry sender initialized")

    def send(self, payload: Dict[str, Any]) -> None:
        try:
            event_id = self._client.capture_event(dict(payload))
        except Exception as e:
            raise TransportError(f"Sentry capture failed: {e}") from e
        if event_id is None:
            raise TransportError("Sentry client did not accept the event")
        self._client.flush(timeout=SENTRY_FLUSH_TIMEOUT)

    def flush(self) -> None:
        self._client.flush(timeout=SENTRY_FLUSH_TIMEOUT)

    def close(self) -> None:
        self._client.close(timeout=SENTRY_FLUSH_TIMEOUT)
