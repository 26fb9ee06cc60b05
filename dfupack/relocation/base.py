"""
Binary relocation strategy interface.

A relocator rewrites the runtime library lookup metadata of installed
binaries so they find the bundled shared library relative to their own
location instead of the absolute build prefix.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from dfupack.build.base import ProducedBinary
from dfupack.core.exceptions import RelocateError
from dfupack.core.filesystem import is_relative_to
from dfupack.core.process import CommandRunner, run_command

logger = logging.getLogger(__name__)


class Relocator(ABC):
    """Base class for platform-specific relocation strategies."""

    def __init__(
        self, runner: Optional[CommandRunner] = None, timeout: Optional[float] = None
    ):
        """
        Initialize relocator.

        Args:
            runner: Command runner (default: run_command)
            timeout: Timeout for each patch tool invocation
        """
        self.runner = runner or run_command
        self.timeout = timeout

    def relocate(self, binaries: Sequence[ProducedBinary], prefix: Path) -> None:
        """
        Relocate every binary, once each.

        Args:
            binaries: Binaries installed under prefix
            prefix: Install prefix

        Raises:
            RelocateError: If a binary is outside the prefix or patching fails
        """
        prefix = Path(prefix)
        resolved = prefix.resolve()
        for binary in binaries:
            if not is_relative_to(binary.path.resolve(), resolved):
                raise RelocateError(
                    f"Refusing to patch {binary.path}: not under install prefix {prefix}"
                )

        self.prepare(prefix)
        for binary in binaries:
            self.relocate_binary(binary, prefix)

    def prepare(self, prefix: Path) -> None:
        """Hook run once before any binary is patched."""

    @abstractmethod
    def relocate_binary(self, binary: ProducedBinary, prefix: Path) -> None:
        """Rewrite one binary's library lookup metadata."""

