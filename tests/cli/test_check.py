"""
Tests for the check command.
"""

from unittest.mock import patch

import pytest

from dfupack.cli.parser import CLI
from dfupack.preflight import CheckResult


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """CLI run from an empty directory, without touching logging setup."""
    monkeypatch.chdir(tmp_path)
    with patch.object(CLI, "_configure_logging"):
        yield CLI()


class TestCheckCommand:
    """Test the check command."""

    def test_all_tools_found(self, cli, capsys):
        with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            result = cli.run(["check", "--os", "Linux", "--arch", "x86_64"])

        assert result == 0
        output = capsys.readouterr().out
        assert "Checking host tools for Linux-x86_64" in output
        assert "✅ patchelf: /usr/bin/patchelf" in output
        assert "0 failed" in output

    def test_missing_required_tool(self, cli, capsys):
        def which(name):
            return None if name == "install_name_tool" else f"/usr/bin/{name}"

        with patch("shutil.which", side_effect=which):
            result = cli.run(["check", "--os", "Darwin", "--arch", "arm64"])

        assert result == 1
        output = capsys.readouterr().out
        assert "❌ install_name_tool" in output
        assert "Fix: Run: xcode-select --install" in output

    def test_missing_optional_tool_is_warning(self, cli, capsys):
        with patch("dfupack.cli.commands.check.PreflightChecker") as mock_checker:
            mock_checker.return_value.run_all_checks.return_value = [
                CheckResult("make", True, "/usr/bin/make"),
                CheckResult("ldd", False, "ldd not found", required=False),
            ]
            result = cli.run(["check", "--os", "Linux"])

        assert result == 0
        assert "1 passed, 0 failed, 1 warnings" in capsys.readouterr().out
