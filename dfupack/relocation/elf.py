"""
ELF relocation with patchelf.

Each binary's RUNPATH is set to ``$ORIGIN/../lib/``: the directory holding
the binary, then the sibling lib directory of the install tree.
"""

import logging
from pathlib import Path

from dfupack.build.base import ProducedBinary
from dfupack.core.exceptions import CommandError, RelocateError
from dfupack.relocation.base import Relocator

logger = logging.getLogger(__name__)

ORIGIN_RPATH = "$ORIGIN/../lib/"


class ElfRelocator(Relocator):
    """Relocate ELF executables by rewriting their rpath."""

    def __init__(self, *args, patchelf: str = "patchelf", **kwargs):
        super().__init__(*args, **kwargs)
        self.patchelf = patchelf

    def read_rpath(self, binary: Path) -> str:
        """
        Read a binary's current rpath.

        Returns:
            rpath string ('' if unset)
        """
        try:
            result = self.runner(
                [self.patchelf, "--print-rpath", str(binary)], timeout=self.timeout
            )
        except CommandError as e:
            raise RelocateError(f"Failed to read rpath of {binary}: {e}") from e
        return (result.stdout or "").strip()

    def relocate_binary(self, binary: ProducedBinary, prefix: Path) -> None:
        if self.read_rpath(binary.path) == ORIGIN_RPATH:
            logger.info(f"{binary.name} already has rpath {ORIGIN_RPATH}")
            return

        logger.info(f"Patching {binary.path} with patchelf...")
        try:
            self.runner(
                [self.patchelf, "--set-rpath", ORIGIN_RPATH, str(binary.path)],
                timeout=self.timeout,
            )
        except CommandError as e:
            raise RelocateError(f"Failed to patch {binary.path} with patchelf: {e}") from e

        logger.info(f"RPATH set to '{ORIGIN_RPATH}' in {binary.name}")

