"""Interactive opt-in prompt for host CLIs."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Mapping, Optional, TextIO, Union

from cli_telemetry.config import ConfigStore
from cli_telemetry.environment import EnvironmentDetector
from cli_telemetry.errors import ConfigError, PersistError

logger = logging.getLogger("cli_telemetry.consent")

CONSENT_NOTICE = """\
Help us improve {app_name} by sending anonymous usage data.
We collect:
  - Basic usage statistics
  - Error reports
  - Platform information

We DO NOT collect:
  - Personal information
  - Sensitive configuration
  - Private keys or addresses
"""

CONSENT_QUESTION = "Would you like to enable telemetry? (y/n) "


def parse_answer(answer: str) -> bool:
    return answer.strip().lower() in ("y", "yes")


def prompt_for_consent(
    app_name: str,
    config_path: Optional[Union[str, Path]] = None,
    *,
    input_fn: Callable[[str], str] = input,
    output: Optional[TextIO] = None,
    environ: Optional[Mapping[str, str]] = None,
    environment: Optional[EnvironmentDetector] = None,
    force: bool = False,
    interactive: Optional[bool] = None,
    store: Optional[ConfigStore] = None,
) -> Optional[bool]:
    """Ask the user whether telemetry may be sent and remember the answer.

    The question is only asked in an interactive session, and only while
    consent is still unset unless ``force`` is given. Otherwise the stored
    decision is returned unchanged.

    Args:
        app_name: Name of the host application
        config_path: Config file location overriding the platform default
        input_fn: Function reading the user's answer
        output: Stream the notice is written to, defaults to stdout
        environ: Environment mapping used for the CI check
        environment: Detector used for the terminal check, built from
            ``environ`` when omitted
        force: Ask again even if a decision was already stored
        interactive: Override terminal detection
        store: Store used to read and write the config

    Returns:
        The consent decision, or None if it is still unset
    """
    store = store or ConfigStore(environ)
    output = output or sys.stdout
    config = store.load_or_create(app_name, config_path)

    if config.consent_given is not None and not force:
        return config.consent_given

    if interactive is None:
        environment = environment or EnvironmentDetector(environ)
        interactive = environment.is_interactive()
    if not interactive:
        logger.debug("Not an interactive session, leaving telemetry consent unchanged")
        return config.consent_given

    output.write(CONSENT_NOTICE.format(app_name=app_name))
    output.write("\n")
    output.flush()
    try:
        answer = input_fn(CONSENT_QUESTION)
    except (EOFError, KeyboardInterrupt):
        output.write("\n")
        answer = ""
    enabled = parse_answer(answer)

    try:
        store.update_consent(app_name, config.config_path, enabled)
    except (PersistError, ConfigError) as e:
        logger.warning(f"Could not save telemetry consent: {e}")
    return enabled
