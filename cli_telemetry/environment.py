"""Detection of non-interactive execution contexts."""

from __future__ import annotations

import os
import platform
import sys
from typing import IO, Mapping, Optional, Tuple

# Environment variables set by the major CI providers
CI_ENVIRONMENT_VARIABLES: Tuple[str, ...] = (
    "CI",
    "CONTINUOUS_INTEGRATION",
    "BUILD_NUMBER",
    "RUN_ID",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "CIRCLECI",
    "TRAVIS",
    "JENKINS_URL",
    "TEAMCITY_VERSION",
    "BUILDKITE",
    "TF_BUILD",
    "BITBUCKET_BUILD_NUMBER",
    "CODEBUILD_BUILD_ID",
    "DRONE",
    "APPVEYOR",
)

_FALSY_VALUES = ("", "0", "false", "no", "off")


def _is_truthy(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in _FALSY_VALUES


def is_ci(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Check whether the process runs under continuous integration.

    Args:
        environ: Environment mapping to inspect, defaults to ``os.environ``

    Returns:
        bool: True if any known CI variable is set to a truthy value
    """
    env = os.environ if environ is None else environ
    return any(_is_truthy(env.get(name)) for name in CI_ENVIRONMENT_VARIABLES)


def is_do_not_track(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Check the ``DO_NOT_TRACK`` convention for a global opt-out."""
    env = os.environ if environ is None else environ
    return _is_truthy(env.get("DO_NOT_TRACK"))


def is_interactive(
    environ: Optional[Mapping[str, str]] = None,
    stdin: Optional[IO] = None,
    stdout: Optional[IO] = None,
) -> bool:
    """Check whether a user could answer a prompt on this terminal."""
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    try:
        attached = stdin.isatty() and stdout.isatty()
    except (AttributeError, ValueError):
        # Closed or replaced streams
        return False
    return attached and not is_ci(environ)


def platform_name() -> str:
    """Return the lower-case operating system name, e.g. ``linux``."""
    return platform.system().lower() or sys.platform


class EnvironmentDetector:
    """Answers environment questions against an injectable environ mapping.

    Passing an explicit mapping keeps tests away from the real process
    environment; by default ``os.environ`` is read on every call.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def is_ci(self) -> bool:
        return is_ci(self.environ)

    def is_do_not_track(self) -> bool:
        return is_do_not_track(self.environ)

    def is_interactive(self) -> bool:
        return is_interactive(self.environ)

    def platform_name(self) -> str:
        return platform_name()
