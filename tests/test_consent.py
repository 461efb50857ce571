"""Tests for the interactive consent prompt."""

import io
from unittest.mock import MagicMock, patch

import pytest

from cli_telemetry.config import ConfigStore
from cli_telemetry.consent import parse_answer, prompt_for_consent
from cli_telemetry.environment import EnvironmentDetector
from cli_telemetry.errors import PersistError


@pytest.mark.parametrize(
    "answer, expected",
    [("y", True), ("YES", True), (" yes \n", True), ("n", False), ("", False), ("maybe", False)],
)
def test_parse_answer(answer, expected):
    """Test parsing yes/no answers."""
    assert parse_answer(answer) is expected


class TestPromptForConsent:
    """Tests for the consent prompt flow."""

    def test_records_yes(self, config_path):
        """A yes answer is recorded."""
        output = io.StringIO()
        result = prompt_for_consent(
            "demo-cli", config_path, input_fn=lambda _: "y", output=output, interactive=True
        )
        assert result is True
        assert "demo-cli" in output.getvalue()
        assert "We DO NOT collect" in output.getvalue()
        assert ConfigStore().read_consent("demo-cli", config_path) is True

    def test_records_no(self, config_path):
        """A no answer is recorded."""
        result = prompt_for_consent(
            "demo-cli", config_path, input_fn=lambda _: "n", output=io.StringIO(), interactive=True
        )
        assert result is False
        assert ConfigStore().read_consent("demo-cli", config_path) is False

    def test_end_of_input_means_no(self, config_path):
        """End of input means no."""
        def closed(_):
            raise EOFError

        result = prompt_for_consent(
            "demo-cli", config_path, input_fn=closed, output=io.StringIO(), interactive=True
        )
        assert result is False

    def test_existing_decision_is_not_asked_again(self, config_path):
        """Existing decision is not asked again."""
        ConfigStore().update_consent("demo-cli", config_path, True)
        input_fn = MagicMock()
        result = prompt_for_consent(
            "demo-cli", config_path, input_fn=input_fn, output=io.StringIO(), interactive=True
        )
        assert result is True
        input_fn.assert_not_called()

    def test_force_asks_again(self, config_path):
        """Force asks again."""
        ConfigStore().update_consent("demo-cli", config_path, True)
        result = prompt_for_consent(
            "demo-cli",
            config_path,
            input_fn=lambda _: "no",
            output=io.StringIO(),
            interactive=True,
            force=True,
        )
        assert result is False
        assert ConfigStore().read_consent("demo-cli", config_path) is False

    def test_ci_is_never_prompted(self, config_path):
        """CI is never prompted."""
        input_fn = MagicMock()
        result = prompt_for_consent(
            "demo-cli", config_path, input_fn=input_fn, output=io.StringIO(), environ={"CI": "1"}
        )
        assert result is None
        input_fn.assert_not_called()
        assert ConfigStore().read_consent("demo-cli", config_path) is None

    def test_uses_environment_detector(self, config_path):
        """Terminal detection goes through the supplied environment detector."""
        environment = MagicMock(spec=EnvironmentDetector)
        environment.is_interactive.return_value = True
        result = prompt_for_consent(
            "demo-cli",
            config_path,
            input_fn=lambda _: "yes",
            output=io.StringIO(),
            environment=environment,
        )
        assert result is True
        environment.is_interactive.assert_called_once_with()

    def test_unwritable_location_is_not_fatal(self, config_path):
        """A consent answer that cannot be saved is still returned."""
        store = ConfigStore()
        store.load_or_create("demo-cli", config_path)
        config_path.unlink()
        with patch.object(store, "_write", side_effect=PersistError("read-only fs")):
            result = prompt_for_consent(
                "demo-cli",
                config_path,
                input_fn=lambda _: "y",
                output=io.StringIO(),
                interactive=True,
                store=store,
            )
        assert result is True
