"""Tests for CLI module."""

from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from walink import __version__
from walink.cli import main
from walink.pairing.controller import PairingResult
from walink.pairing.session import PairingState


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


class TestCLIHelp:
    """Test CLI help output."""

    def test_cli_help(self, runner):
        """walink --help lists commands."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "serve" in result.output
        assert "pair" in result.output
        assert "version" in result.output

    def test_version_command(self, runner):
        """walink version prints the version."""
        result = runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_config_option_accepted(self, runner, tmp_path):
        """--config points at a YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("port: 9999\n")

        result = runner.invoke(main, ["--config", str(config_file), "version"])

        assert result.exit_code == 0


class TestPairCommand:
    """Test pair command."""

    def _result(self, state):
        return PairingResult(session_id="0" * 32, state=state)

    def test_pair_success_exit_code(self, runner):
        """Successful pairing exits 0."""
        with patch("walink.pairing.controller.PairingController.run", new=AsyncMock(
            return_value=self._result(PairingState.DONE)
        )) as run:
            result = runner.invoke(main, ["pair"])

        assert result.exit_code == 0
        run.assert_awaited_once()

    def test_pair_failure_exit_code(self, runner):
        """Timed out pairing exits 1."""
        with patch("walink.pairing.controller.PairingController.run", new=AsyncMock(
            return_value=self._result(PairingState.TIMED_OUT)
        )):
            result = runner.invoke(main, ["pair"])

        assert result.exit_code == 1

    def test_pair_timeout_override(self, runner):
        """--timeout replaces the configured deadline."""
        captured = {}

        async def fake_run(self, responder):
            captured["deadline"] = self.config.pairing.deadline_seconds
            return PairingResult(session_id=self.session.session_id, state=PairingState.DONE)

        with patch("walink.pairing.controller.PairingController.run", new=fake_run):
            result = runner.invoke(main, ["pair", "--timeout", "60"])

        assert result.exit_code == 0
        assert captured["deadline"] == 60.0


class TestServeCommand:
    """Test serve command."""

    def test_serve_help(self, runner):
        """walink serve --help shows options."""
        result = runner.invoke(main, ["serve", "--help"])

        assert result.exit_code == 0
        assert "--port" in result.output
        assert "--host" in result.output

    def test_serve_starts_server(self, runner):
        """serve starts the server on the requested address."""
        with patch("walink.server.PairingServer.start", new=AsyncMock(
            side_effect=KeyboardInterrupt
        )) as start:
            result = runner.invoke(main, ["serve", "--host", "127.0.0.1", "--port", "9123"])

        assert result.exit_code == 0
        start.assert_awaited_once_with("127.0.0.1", 9123)
        assert "Shutting down" in result.output
