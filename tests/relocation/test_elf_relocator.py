"""
Unit tests for ELF relocation with patchelf.
"""

from pathlib import Path

import pytest

from dfupack.build import ProducedBinary
from dfupack.core.exceptions import RelocateError
from dfupack.relocation import ORIGIN_RPATH, ElfRelocator


@pytest.fixture
def prefix(tmp_path):
    prefix = tmp_path / "tool-1.0.0-Linux-x86_64"
    (prefix / "bin").mkdir(parents=True)
    (prefix / "lib").mkdir()
    (prefix / "bin" / "tool").write_text("ELF")
    return prefix


@pytest.fixture
def binary(prefix):
    return ProducedBinary(prefix / "bin" / "tool", Path("bin/tool"))


def set_rpath(fake_runner):
    """Make later --print-rpath calls report the rpath that was just set."""

    def action(call):
        fake_runner.on("patchelf", "--print-rpath", stdout=call.args[2] + "\n")

    return action


class TestElfRelocator:
    """Test ElfRelocator."""

    def test_sets_origin_rpath(self, prefix, binary, fake_runner):
        """Test the rpath reads back as $ORIGIN/../lib/ after relocation."""
        fake_runner.on("patchelf", "--print-rpath", stdout=f"{prefix}/lib\n")
        fake_runner.on("patchelf", "--set-rpath", action=set_rpath(fake_runner))
        relocator = ElfRelocator(runner=fake_runner, timeout=30)

        relocator.relocate([binary], prefix)

        assert ["patchelf", "--set-rpath", "$ORIGIN/../lib/", str(binary.path)] in (
            fake_runner.commands("patchelf")
        )
        assert relocator.read_rpath(binary.path) == ORIGIN_RPATH
        assert all(call.timeout == 30 for call in fake_runner.calls)

    def test_relocation_is_idempotent(self, prefix, binary, fake_runner):
        """Test a second pass leaves an already relocated binary alone."""
        fake_runner.on("patchelf", "--print-rpath", stdout="")
        fake_runner.on("patchelf", "--set-rpath", action=set_rpath(fake_runner))
        relocator = ElfRelocator(runner=fake_runner)

        relocator.relocate([binary], prefix)
        relocator.relocate([binary], prefix)

        set_calls = [c for c in fake_runner.commands("patchelf") if c[1] == "--set-rpath"]
        assert len(set_calls) == 1

    def test_binary_outside_prefix(self, tmp_path, prefix, fake_runner):
        """Test files outside the prefix are never patched."""
        outside = tmp_path / "elsewhere" / "tool"
        outside.parent.mkdir()
        outside.write_text("ELF")
        relocator = ElfRelocator(runner=fake_runner)

        with pytest.raises(RelocateError, match="not under install prefix"):
            relocator.relocate([ProducedBinary(outside, Path("bin/tool"))], prefix)

        assert fake_runner.calls == []

    def test_patchelf_failure(self, prefix, binary, fake_runner):
        fake_runner.on("patchelf", "--set-rpath", returncode=1, stdout="not an ELF executable")
        relocator = ElfRelocator(runner=fake_runner)

        with pytest.raises(RelocateError, match="not an ELF executable"):
            relocator.relocate([binary], prefix)
