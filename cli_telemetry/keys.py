"""Analytics and error-tracking credentials."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlsplit

from cli_telemetry.errors import ConfigError

DEFAULT_ENV_PREFIX = "CLI_TELEMETRY"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_posthog_key(key: str) -> str:
    """Check that ``key`` looks like a PostHog project key."""
    if not key.startswith("phc_"):
        raise ConfigError("Invalid PostHog key format. Must start with 'phc_'")
    return key


def validate_sentry_dsn(dsn: str) -> str:
    """Check that ``dsn`` has the shape ``scheme://public_key@host/project_id``."""
    parts = urlsplit(dsn)
    if (
        parts.scheme not in ("http", "https")
        or not parts.username
        or not parts.hostname
        or not parts.path.strip("/")
    ):
        raise ConfigError("Invalid Sentry DSN format")
    return dsn


@dataclass(frozen=True)
class TelemetryKeys:
    """Keys for the analytics (PostHog) and error-tracking (Sentry) backends.

    Either key may be None, which disables the corresponding channel.
    """

    posthog_key: Optional[str] = None
    sentry_dsn: Optional[str] = None

    @classmethod
    def validated(
        cls, posthog_key: Optional[str] = None, sentry_dsn: Optional[str] = None
    ) -> TelemetryKeys:
        """Create keys, rejecting values with an invalid format.

        Raises:
            ConfigError: If a supplied key is malformed
        """
        posthog_key = _clean(posthog_key)
        sentry_dsn = _clean(sentry_dsn)
        if posthog_key is not None:
            validate_posthog_key(posthog_key)
        if sentry_dsn is not None:
            validate_sentry_dsn(sentry_dsn)
        return cls(posthog_key=posthog_key, sentry_dsn=sentry_dsn)

    @classmethod
    def from_env(
        cls, prefix: str = DEFAULT_ENV_PREFIX, environ: Optional[Mapping[str, str]] = None
    ) -> TelemetryKeys:
        """Load keys from ``<PREFIX>_POSTHOG_KEY`` and ``<PREFIX>_SENTRY_DSN``.

        Blank values count as unset.
        """
        env = os.environ if environ is None else environ
        return cls.validated(
            posthog_key=env.get(f"{prefix}_POSTHOG_KEY"),
            sentry_dsn=env.get(f"{prefix}_SENTRY_DSN"),
        )

    @property
    def has_analytics(self) -> bool:
        return self.posthog_key is not None

    @property
    def has_error_tracking(self) -> bool:
        return self.sentry_dsn is not None
