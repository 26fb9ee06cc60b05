"""
Integration tests for binary relocation with the real patch tools.

Compiles a trivial executable into a throwaway prefix and relocates it.
Run with: pytest --integration
"""

import shutil
from pathlib import Path

import pytest

from dfupack.build.base import ProducedBinary
from dfupack.core.platform import BinaryFormat, detect_platform
from dfupack.core.process import run_command
from dfupack.relocation import ORIGIN_RPATH, ElfRelocator, relocate
from dfupack.verifier import Verifier

pytestmark = pytest.mark.integration

HELLO_C = """
#include <stdio.h>
int main(void) { puts("usage: hello"); return 0; }
"""


@pytest.fixture
def compiled_binary(tmp_path):
    """An executable at <prefix>/bin/hello built with the host compiler."""
    if shutil.which("cc") is None:
        pytest.skip("cc not found")

    prefix = tmp_path / "hello-1.0-host"
    (prefix / "bin").mkdir(parents=True)
    (prefix / "lib").mkdir()
    source = tmp_path / "hello.c"
    source.write_text(HELLO_C)

    run_command(["cc", "-o", str(prefix / "bin" / "hello"), str(source)])
    return prefix, ProducedBinary(
        path=prefix / "bin" / "hello", relative=Path("bin/hello")
    )


class TestElfRelocationIntegration:
    """Relocate a real ELF executable with patchelf."""

    def test_rpath_read_back(self, compiled_binary):
        platform = detect_platform()
        if platform.binary_format is not BinaryFormat.ELF:
            pytest.skip("host does not produce ELF executables")
        if shutil.which("patchelf") is None:
            pytest.skip("patchelf not found")

        prefix, binary = compiled_binary

        relocate([binary], prefix, platform)

        assert ElfRelocator().read_rpath(binary.path) == ORIGIN_RPATH

    def test_relocated_tree_verifies(self, compiled_binary, tmp_path):
        """Test the relocated tree still runs after being moved."""
        platform = detect_platform()
        if platform.binary_format is not BinaryFormat.ELF:
            pytest.skip("host does not produce ELF executables")
        if shutil.which("patchelf") is None or shutil.which("ldd") is None:
            pytest.skip("patchelf or ldd not found")

        prefix, binary = compiled_binary
        relocate([binary], prefix, platform)

        report = Verifier(platform).verify(
            [binary], prefix, quarantine=tmp_path / "moved" / prefix.name
        )

        assert report.success, [outcome.message for outcome in report.outcomes]
        assert "usage: hello" in report.outcomes[0].output
