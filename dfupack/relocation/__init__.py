"""
Binary relocation for dfupack.

Selects the relocation strategy from the platform's executable format:
patchelf rpath rewriting for ELF, install_name_tool reference rewriting for
Mach-O. Other platforms are rejected with UnsupportedPlatform.
"""

from pathlib import Path
from typing import Optional, Sequence

from dfupack.build.base import ProducedBinary
from dfupack.config.model import DEFAULT_MACHO_LIBRARY
from dfupack.core.exceptions import UnsupportedPlatform
from dfupack.core.platform import BinaryFormat, PlatformDescriptor
from dfupack.core.process import CommandRunner
from dfupack.relocation.base import Relocator
from dfupack.relocation.elf import ORIGIN_RPATH, ElfRelocator
from dfupack.relocation.macho import (
    LOADER_PATH_PREFIX,
    MachORelocator,
    otool_dependencies,
    parse_otool_output,
)


def get_relocator(
    platform: PlatformDescriptor,
    macho_library: str = DEFAULT_MACHO_LIBRARY,
    runner: Optional[CommandRunner] = None,
    timeout: Optional[float] = None,
) -> Relocator:
    """
    Get the relocation strategy for a platform.

    Args:
        platform: Target platform
        macho_library: Bundled dylib name used on Mach-O platforms
        runner: Command runner passed to the strategy
        timeout: Timeout for each patch tool invocation

    Returns:
        Relocator for the platform's binary format

    Raises:
        UnsupportedPlatform: If the platform has no relocation strategy
    """
    binary_format = platform.binary_format

    if binary_format is BinaryFormat.ELF:
        return ElfRelocator(runner=runner, timeout=timeout)
    if binary_format is BinaryFormat.MACHO:
        return MachORelocator(macho_library, runner=runner, timeout=timeout)
    if binary_format is BinaryFormat.UNSUPPORTED:
        raise UnsupportedPlatform(platform.os_name)

    raise AssertionError(f"Unhandled binary format: {binary_format}")


def relocate(
    binaries: Sequence[ProducedBinary],
    prefix: Path,
    platform: PlatformDescriptor,
    macho_library: str = DEFAULT_MACHO_LIBRARY,
    runner: Optional[CommandRunner] = None,
    timeout: Optional[float] = None,
) -> None:
    """
    Make the installed binaries find their shared library relative to themselves.

    Raises:
        RelocateError: If relocation fails (LibraryNotFound, UnsupportedPlatform, ...)
    """
    relocator = get_relocator(platform, macho_library, runner=runner, timeout=timeout)
    relocator.relocate(binaries, prefix)


__all__ = [
    "Relocator",
    "ElfRelocator",
    "MachORelocator",
    "ORIGIN_RPATH",
    "LOADER_PATH_PREFIX",
    "get_relocator",
    "relocate",
    "otool_dependencies",
    "parse_otool_output",
]
