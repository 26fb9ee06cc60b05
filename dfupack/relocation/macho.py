"""
Mach-O relocation with install_name_tool.

macOS binaries record the absolute install name of each dylib they link.
The reference to the bundled library is rewritten to
``@loader_path/../lib/<library>`` so it resolves relative to the binary.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from dfupack.build.base import ProducedBinary
from dfupack.core.exceptions import CommandError, LibraryNotFound, RelocateError
from dfupack.core.process import CommandRunner
from dfupack.relocation.base import Relocator

logger = logging.getLogger(__name__)

LOADER_PATH_PREFIX = "@loader_path/../lib/"

# "\t/tmp/p/lib/libusb-1.0.0.dylib (compatibility version 3.0.0, current version 3.0.0)"
_OTOOL_ENTRY = re.compile(r"^\s+(\S.*?)\s+\(compatibility version .*\)\s*$")


def parse_otool_output(output: str) -> List[str]:
    """
    Parse ``otool -L`` output into a list of install names.

    The first line (the binary path followed by a colon) is skipped.

    Example:
        >>> parse_otool_output("/p/bin/dfu-util:\\n\\t/usr/lib/libSystem.B.dylib "
        ...                    "(compatibility version 1.0.0, current version 1.0.0)\\n")
        ['/usr/lib/libSystem.B.dylib']
    """
    names = []
    for line in output.splitlines():
        match = _OTOOL_ENTRY.match(line)
        if match:
            names.append(match.group(1))
    return names


def otool_dependencies(
    binary: Path, runner: CommandRunner, timeout: Optional[float] = None, otool: str = "otool"
) -> List[str]:
    """List the install names a Mach-O binary links against."""
    result = runner([otool, "-L", str(binary)], timeout=timeout)
    return parse_otool_output(result.stdout or "")


class MachORelocator(Relocator):
    """Relocate Mach-O executables by rewriting their dylib reference."""

    def __init__(
        self,
        library: str,
        *args,
        install_name_tool: str = "install_name_tool",
        otool: str = "otool",
        **kwargs,
    ):
        """
        Initialize Mach-O relocator.

        Args:
            library: File name of the bundled dylib (e.g. 'libusb-1.0.0.dylib')
            install_name_tool: install_name_tool executable
            otool: otool executable
        """
        super().__init__(*args, **kwargs)
        self.library = library
        self.install_name_tool = install_name_tool
        self.otool = otool

    @property
    def relative_reference(self) -> str:
        return f"{LOADER_PATH_PREFIX}{self.library}"

    def library_path(self, prefix: Path) -> Path:
        return Path(prefix) / "lib" / self.library

    def prepare(self, prefix: Path) -> None:
        expected = self.library_path(prefix)
        if not expected.is_file():
            logger.error(f"Expected library at {expected} not found")
            raise LibraryNotFound(expected)

    def dependencies(self, binary: Path) -> List[str]:
        try:
            return otool_dependencies(binary, self.runner, self.timeout, self.otool)
        except CommandError as e:
            raise RelocateError(f"Failed to read dependencies of {binary}: {e}") from e

    def relocate_binary(self, binary: ProducedBinary, prefix: Path) -> None:
        absolute = str(self.library_path(prefix))
        # otool reports the install name recorded at link time, which uses
        # the unresolved prefix spelling
        candidates = {absolute, str(self.library_path(prefix.resolve()))}

        references = [
            name for name in self.dependencies(binary.path) if _basename(name) == self.library
        ]

        if not references:
            logger.info(f"{binary.name} does not link {self.library}, nothing to change")
            return

        for reference in references:
            if reference == self.relative_reference:
                logger.info(f"{binary.name} already references {self.relative_reference}")
                continue
            if reference not in candidates:
                raise LibraryNotFound(absolute, binary=binary.path)

            logger.info(f"Changing {reference} to {self.relative_reference} in {binary.name}")
            try:
                self.runner(
                    [
                        self.install_name_tool,
                        "-change",
                        reference,
                        self.relative_reference,
                        str(binary.path),
                    ],
                    timeout=self.timeout,
                )
            except CommandError as e:
                raise RelocateError(
                    f"Failed to modify {binary.path} with install_name_tool: {e}"
                ) from e

            logger.info(f"Library path set to '{self.relative_reference}' in {binary.name}")


def _basename(install_name: str) -> str:
    return install_name.rsplit("/", 1)[-1]
