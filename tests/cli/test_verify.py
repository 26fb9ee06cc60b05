"""
Tests for the verify command.
"""

from unittest.mock import patch

import pytest

from dfupack.cli.parser import CLI
from dfupack.verifier import VerificationOutcome, VerificationReport


@pytest.fixture
def cli(tmp_path, monkeypatch):
    """CLI run from an empty directory, without touching logging setup."""
    monkeypatch.chdir(tmp_path)
    with patch.object(CLI, "_configure_logging"):
        yield CLI()


class TestVerifyCommand:
    """Test the verify command."""

    def test_missing_archive(self, cli, tmp_path, capsys):
        result = cli.run(["verify", str(tmp_path / "missing.tar.gz")])

        assert result == 1
        assert "Archive not found" in capsys.readouterr().err

    def test_binaries_from_options(self, cli, tmp_path, capsys):
        archive = tmp_path / "pkg.tar.gz"
        archive.write_bytes(b"")
        report = VerificationReport(
            root=tmp_path,
            outcomes=[
                VerificationOutcome("bin/a", tmp_path / "bin/a", True, returncode=0)
            ],
        )

        with patch(
            "dfupack.cli.commands.verify.verify_archive", return_value=report
        ) as mock_verify:
            result = cli.run(["verify", str(archive), "--binary", "bin/a"])

        assert result == 0
        assert mock_verify.call_args[0][1] == ["bin/a"]
        output = capsys.readouterr().out
        assert "✅ bin/a: exit code 0" in output
        assert "pkg.tar.gz is relocatable" in output

    def test_defaults_to_configured_binaries(self, cli, tmp_path):
        archive = tmp_path / "pkg.tar.gz"
        archive.write_bytes(b"")

        with patch(
            "dfupack.cli.commands.verify.verify_archive",
            return_value=VerificationReport(root=tmp_path),
        ) as mock_verify:
            cli.run(["verify", str(archive)])

        assert mock_verify.call_args[0][1] == [
            "bin/dfu-util",
            "bin/dfu-suffix",
            "bin/dfu-prefix",
        ]

    def test_failed_binary(self, cli, tmp_path, capsys):
        archive = tmp_path / "pkg.tar.gz"
        archive.write_bytes(b"")
        report = VerificationReport(
            root=tmp_path,
            outcomes=[
                VerificationOutcome(
                    "bin/a",
                    tmp_path / "bin/a",
                    False,
                    missing_libraries=["libusb-1.0.so.0"],
                )
            ],
        )

        with patch("dfupack.cli.commands.verify.verify_archive", return_value=report):
            result = cli.run(["verify", str(archive), "--binary", "bin/a"])

        assert result == 1
        captured = capsys.readouterr()
        assert "unresolved libraries: libusb-1.0.so.0" in captured.out
        assert "Verification failed for: bin/a" in captured.err

    def test_archive_layout_error(self, cli, tmp_path, tarball, capsys):
        """Test an archive with several top-level folders is rejected."""
        archive = tarball(tmp_path / "pkg.tar.gz", {"a/x": "1", "b/y": "2"})

        result = cli.run(["verify", str(archive), "--os", "Linux"])

        assert result == 1
        assert "exactly one top-level folder" in capsys.readouterr().err
