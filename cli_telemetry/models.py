"""Models for telemetry data."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from cli_telemetry.errors import InvalidProperties

logger = logging.getLogger("cli_telemetry.models")

PropertyValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]

# bool is checked before int, since bool is a subclass of int
_SCALAR_TYPES = (bool, int, float, str, type(None))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_properties(properties: Optional[Mapping[str, Any]]) -> Dict[str, PropertyValue]:
    """Check that every property is a string key mapped to a JSON scalar.

    Args:
        properties: Caller supplied property map, or None for no properties

    Returns:
        A plain dict copy of the properties

    Raises:
        InvalidProperties: If a key is not a string or a value is not a scalar
    """
    if properties is None:
        return {}
    if not isinstance(properties, Mapping):
        raise InvalidProperties(f"Properties must be a mapping, got {type(properties).__name__}")

    validated: Dict[str, PropertyValue] = {}
    for key, value in properties.items():
        if not isinstance(key, str):
            raise InvalidProperties(f"Property names must be strings, got {key!r}")
        if not isinstance(value, _SCALAR_TYPES):
            raise InvalidProperties(
                f"Property {key!r} must be a string, number, boolean or None, "
                f"got {type(value).__name__}"
            )
        validated[key] = value
    return validated


def sanitize_properties(properties: Optional[Mapping[str, Any]]) -> Dict[str, PropertyValue]:
    """Like :func:`validate_properties`, but drops invalid entries instead of raising."""
    if properties is None:
        return {}
    if not isinstance(properties, Mapping):
        logger.warning(f"Ignoring non-mapping telemetry properties of type {type(properties).__name__}")
        return {}

    sanitized: Dict[str, PropertyValue] = {}
    for key, value in properties.items():
        if isinstance(key, str) and isinstance(value, _SCALAR_TYPES):
            sanitized[key] = value
        else:
            logger.warning(f"Dropping telemetry property {key!r}: not a string key with a scalar value")
    return sanitized


class TelemetryConfig(BaseModel):
    """Persisted consent state and anonymous identity for one application."""

    app_name: str
    anonymous_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    consent_given: Optional[bool] = None
    created_at: datetime = Field(default_factory=_utcnow)
    config_path: Optional[Path] = Field(default=None, exclude=True)

    @classmethod
    def load(cls, app_name: str, config_path: Optional[Union[str, Path]] = None) -> TelemetryConfig:
        """Load the config for ``app_name``, creating it on first use."""
        from cli_telemetry.config import ConfigStore

        return ConfigStore().load_or_create(app_name, config_path)

    @property
    def consent_unset(self) -> bool:
        return self.consent_given is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to the dictionary written to disk."""
        return self.model_dump(mode="json")


class TelemetryEvent(BaseModel):
    """A single analytics event with its automatic fields attached."""

    name: str
    properties: Dict[str, PropertyValue] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    anonymous_id: str
    app_name: str
    os_platform: str
    library_version: Optional[str] = None

    def to_posthog_payload(self) -> Dict[str, Any]:
        """Build the payload handed to the analytics sender.

        Automatic fields take precedence over caller properties of the same name.
        """
        properties: Dict[str, Any] = dict(self.properties)
        properties.update(
            {
                "$os": self.os_platform,
                "$timestamp": self.timestamp.isoformat(),
                "app_name": self.app_name,
            }
        )
        if self.library_version:
            properties["library_version"] = self.library_version
        return {
            "event": self.name,
            "distinct_id": self.anonymous_id,
            "properties": properties,
        }


class TelemetryErrorReport(BaseModel):
    """An error report stripped down to its message and classification."""

    message: str
    error_kind: str
    context_properties: Dict[str, PropertyValue] = Field(default_factory=dict)
    anonymous_id: str
    app_name: str
    os_platform: Optional[str] = None

    @classmethod
    def from_error(
        cls,
        error: Any,
        *,
        anonymous_id: str,
        app_name: str,
        context: Optional[Mapping[str, Any]] = None,
        kind: Optional[str] = None,
        os_platform: Optional[str] = None,
    ) -> TelemetryErrorReport:
        """Build a report from any value with a displayable message.

        The classification is taken from ``kind``, then an ``error_kind`` or
        ``kind`` attribute on the error, then the error's class name.
        """
        message = getattr(error, "message", None)
        if not isinstance(message, str) or not message:
            message = str(error) or type(error).__name__

        if kind is None:
            for attr in ("error_kind", "kind"):
                value = getattr(error, attr, None)
                if isinstance(value, str) and value:
                    kind = value
                    break
            else:
                kind = type(error).__name__

        return cls(
            message=message,
            error_kind=kind,
            context_properties=validate_properties(context),
            anonymous_id=anonymous_id,
            app_name=app_name,
            os_platform=os_platform,
        )

    def to_sentry_payload(self) -> Dict[str, Any]:
        """Build the event handed to the error-tracking sender."""
        tags = {"app_name": self.app_name, "error_kind": self.error_kind}
        if self.os_platform:
            tags["os"] = self.os_platform
        return {
            "message": self.message,
            "level": "error",
            "extra": dict(self.context_properties),
            "tags": tags,
            "user": {"id": self.anonymous_id},
        }
