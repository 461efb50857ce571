"""Local persistence of telemetry consent and the anonymous identifier.

The config file is a small JSON document::

    {
      "anonymous_id": "0c6b...",
      "app_name": "demo-cli",
      "consent_given": null,
      "created_at": "2025-01-01T00:00:00Z"
    }

``consent_given`` is ``null`` until the user has been asked.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from pydantic import ValidationError

from cli_telemetry.errors import ConfigCorrupt, ConfigError, PersistError
from cli_telemetry.models import TelemetryConfig

logger = logging.getLogger("cli_telemetry.config")

CONFIG_FILE_NAME = "telemetry.json"

PathLike = Union[str, Path]

# One lock per resolved config path, shared by every store in the process
_path_locks: Dict[Path, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.expanduser().absolute()
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


def user_config_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the platform's per-user configuration directory."""
    env = os.environ if environ is None else environ
    system = platform.system()
    if system == "Windows":
        return Path(env.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config"))


def resolve_config_path(
    app_name: str,
    custom_path: Optional[PathLike] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Resolve where the config for ``app_name`` lives.

    Args:
        app_name: Application name, used as the config sub-directory
        custom_path: Explicit file location, takes precedence when given
        environ: Environment mapping used for the platform default

    Returns:
        Path to the JSON config file
    """
    if custom_path is not None:
        return Path(custom_path).expanduser()
    if not app_name or any(sep in app_name for sep in ("/", "\\")) or app_name in (".", ".."):
        raise ConfigError(f"Invalid application name for config path: {app_name!r}")
    return user_config_dir(environ) / app_name / CONFIG_FILE_NAME


class ConfigStore:
    """Reads and writes :class:`TelemetryConfig` files."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    def resolve(self, app_name: str, custom_path: Optional[PathLike] = None) -> Path:
        return resolve_config_path(app_name, custom_path, self._environ)

    def load(self, path: PathLike) -> TelemetryConfig:
        """Strictly parse the config file at ``path``.

        Raises:
            FileNotFoundError: If there is no file at ``path``
            ConfigCorrupt: If the file is not a valid config document
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigCorrupt(path, str(e)) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigCorrupt(path, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigCorrupt(path, "top-level value is not an object")
        missing = sorted({"app_name", "anonymous_id"} - data.keys())
        if missing:
            raise ConfigCorrupt(path, f"missing fields: {', '.join(missing)}")

        try:
            config = TelemetryConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigCorrupt(path, str(e)) from e
        config.config_path = path
        return config

    def load_or_create(
        self, app_name: str, custom_path: Optional[PathLike] = None
    ) -> TelemetryConfig:
        """Load the config for ``app_name``, creating it if absent.

        A corrupt file is not fatal: it is logged and replaced by a fresh
        config whose consent is unset.

        Raises:
            ConfigError: If no config could be loaded or created at the location
        """
        path = self.resolve(app_name, custom_path)
        with _lock_for(path):
            return self._load_or_create_locked(app_name, path)

    def _load_or_create_locked(self, app_name: str, path: Path) -> TelemetryConfig:
        try:
            config = self.load(path)
            logger.debug(f"Loaded telemetry config from {path}")
            return config
        except FileNotFoundError:
            logger.debug(f"No telemetry config at {path}, creating one")
            corrupt = False
        except ConfigCorrupt as e:
            logger.warning(f"{e}; treating telemetry consent as unset")
            corrupt = True

        config = TelemetryConfig(app_name=app_name, config_path=path)
        try:
            self._write(config)
        except PersistError as e:
            if corrupt:
                # The location exists, so carry on with an in-memory config
                logger.warning("Continuing with an unsaved telemetry config")
                return config
            raise ConfigError(f"Failed to create telemetry config: {e}") from e
        logger.debug(f"Created telemetry config with anonymous ID {config.anonymous_id}")
        return config

    def persist(self, config: TelemetryConfig) -> None:
        """Atomically overwrite the config file with ``config``.

        Raises:
            PersistError: If the file could not be written
        """
        if config.config_path is None:
            raise PersistError("Config has no path to persist to")
        with _lock_for(config.config_path):
            self._write(config)

    def update_consent(
        self, app_name: str, custom_path: Optional[PathLike], enabled: bool
    ) -> TelemetryConfig:
        """Record the user's consent decision.

        The read-modify-write runs under the per-path lock so concurrent
        updates cannot interleave.

        Returns:
            The updated config

        Raises:
            ConfigError: If the config could not be created
            PersistError: If the updated config could not be written
        """
        path = self.resolve(app_name, custom_path)
        with _lock_for(path):
            config = self._load_or_create_locked(app_name, path)
            enabled = bool(enabled)
            if config.consent_given is enabled:
                return config
            config.consent_given = enabled
            self._write(config)
        logger.info(f"Telemetry consent for {app_name} set to {enabled}")
        return config

    def read_consent(self, app_name: str, custom_path: Optional[PathLike] = None) -> Optional[bool]:
        """Return the stored consent without creating or repairing the file.

        A missing or corrupt file reads as unset.
        """
        path = self.resolve(app_name, custom_path)
        try:
            return self.load(path).consent_given
        except FileNotFoundError:
            return None
        except ConfigCorrupt as e:
            logger.debug(f"{e}; treating telemetry consent as unset")
            return None

    @staticmethod
    def serialize(config: TelemetryConfig) -> str:
        return json.dumps(config.to_dict(), indent=2, sort_keys=True) + "\n"

    def _write(self, config: TelemetryConfig) -> None:
        path = config.config_path
        data = self.serialize(config)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", delete=False, dir=path.parent, prefix=f".{path.name}."
            ) as fh:
                tmp_name = fh.name
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            logger.warning(f"Failed to write telemetry config {path}: {e}")
            if tmp_name is not None and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug(f"Could not remove temporary file {tmp_name}")
            raise PersistError(f"Failed to write telemetry config to {path}: {e}") from e


def update_consent(app_name: str, custom_path: Optional[PathLike], enabled: bool) -> TelemetryConfig:
    """Record consent for ``app_name`` using a default :class:`ConfigStore`."""
    return ConfigStore().update_consent(app_name, custom_path, enabled)
