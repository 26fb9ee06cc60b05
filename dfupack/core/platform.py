"""
Platform detection for dfupack.

The platform is described by the raw operating-system name and machine
architecture as reported by ``uname -s`` / ``uname -m`` (for example
``Linux``/``x86_64`` or ``Darwin``/``arm64``). Those strings appear verbatim
in install prefixes and archive names, so they are not normalized; values
containing "-" or a path separator are rejected because they would make two
platforms share a prefix.

Usage:
    from dfupack.core.platform import detect_platform

    platform_info = detect_platform()
    print(platform_info.slug)            # 'Linux-x86_64'
    print(platform_info.binary_format)   # BinaryFormat.ELF
"""

import functools
import os
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BinaryFormat(Enum):
    """Executable format family, which selects the relocation strategy."""

    ELF = "elf"
    MACHO = "macho"
    UNSUPPORTED = "unsupported"


# uname -s values producing ELF executables
ELF_SYSTEMS = frozenset({"Linux", "FreeBSD", "NetBSD", "OpenBSD", "DragonFly", "SunOS"})
MACHO_SYSTEMS = frozenset({"Darwin"})

# "-" joins OS and architecture in the slug; path separators would move the
# prefix out of the install base.
RESERVED_CHARACTERS = frozenset({"-", "/", "\\", os.sep})


def validate_platform_name(value: str, field_name: str = "platform name") -> str:
    """
    Check an OS or architecture name can be embedded in a prefix.

    Args:
        value: OS or architecture name
        field_name: Name used in the error message

    Returns:
        The value, unchanged

    Raises:
        ValueError: If the value is empty or contains a reserved character
    """
    if not value:
        raise ValueError(f"{field_name} must not be empty")
    reserved = sorted(c for c in RESERVED_CHARACTERS if c in value)
    if reserved:
        raise ValueError(
            f"{field_name} {value!r} must not contain {', '.join(repr(c) for c in reserved)}"
        )
    return value


@dataclass(frozen=True)
class PlatformDescriptor:
    """
    Target operating system and architecture.

    Attributes:
        os_name: Operating system name as reported by uname -s
        arch: Machine architecture as reported by uname -m
    """

    os_name: str
    arch: str

    def __post_init__(self):
        validate_platform_name(self.os_name, "OS name")
        validate_platform_name(self.arch, "architecture")

    @property
    def slug(self) -> str:
        """
        Get the '<os>-<arch>' string used in prefixes and archive names.

        Example:
            >>> PlatformDescriptor('Linux', 'x86_64').slug
            'Linux-x86_64'
        """
        return f"{self.os_name}-{self.arch}"

    @property
    def binary_format(self) -> BinaryFormat:
        """Executable format produced on this platform."""
        return binary_format_for(self.os_name)

    def __str__(self) -> str:
        return self.slug


def binary_format_for(os_name: str) -> BinaryFormat:
    """
    Map an operating system name to its executable format.

    Args:
        os_name: uname -s style OS name

    Returns:
        BinaryFormat for the OS, BinaryFormat.UNSUPPORTED if unknown
    """
    if os_name in ELF_SYSTEMS:
        return BinaryFormat.ELF
    if os_name in MACHO_SYSTEMS:
        return BinaryFormat.MACHO
    return BinaryFormat.UNSUPPORTED


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformDescriptor:
    """
    Detect the host platform.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformDescriptor for the running host

    Raises:
        RuntimeError: If the OS or architecture cannot be determined or
            contains a reserved character
    """
    os_name = platform.system()
    arch = platform.machine()

    if not os_name or not arch:
        raise RuntimeError(
            f"Unable to detect host platform (system={os_name!r}, machine={arch!r})"
        )

    try:
        return PlatformDescriptor(os_name=os_name, arch=arch)
    except ValueError as e:
        raise RuntimeError(
            f"Host platform cannot be used in a prefix name: {e}. "
            "Pass --os/--arch to override it."
        ) from e


def resolve_platform(
    os_name: Optional[str] = None, arch: Optional[str] = None
) -> PlatformDescriptor:
    """
    Get the platform to build for, applying optional overrides.

    Either field may be overridden independently; missing fields are taken
    from the host.

    Args:
        os_name: Forced OS name (e.g. 'Linux')
        arch: Forced architecture (e.g. 'aarch64')

    Returns:
        PlatformDescriptor with overrides applied

    Raises:
        ValueError: If an override contains a reserved character
    """
    if os_name and arch:
        return PlatformDescriptor(os_name=os_name, arch=arch)

    host = detect_platform()
    return PlatformDescriptor(os_name=os_name or host.os_name, arch=arch or host.arch)


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    """
    detect_platform.cache_clear()


__all__ = [
    "BinaryFormat",
    "PlatformDescriptor",
    "binary_format_for",
    "validate_platform_name",
    "detect_platform",
    "resolve_platform",
    "clear_platform_cache",
]
