"""
Core functionality for dfupack.

This package contains the foundational modules the pipeline stages depend on.
"""

from .exceptions import (
    DfuPackError,
    ConfigError,
    WorkspaceLocked,
    PreflightError,
    CommandError,
    CommandTimeout,
    FetchError,
    DownloadFailed,
    ChecksumMismatch,
    ExtractError,
    CorruptOrUnsupported,
    BuildError,
    ConfigureFailed,
    CompileFailed,
    InstallFailed,
    RelocateError,
    LibraryNotFound,
    UnsupportedPlatform,
    PackageError,
    CompressionFailed,
    VerificationError,
    VerificationFailed,
)

from .platform import (
    BinaryFormat,
    PlatformDescriptor,
    detect_platform,
    resolve_platform,
    clear_platform_cache,
)

__all__ = [
    "DfuPackError",
    "ConfigError",
    "WorkspaceLocked",
    "PreflightError",
    "CommandError",
    "CommandTimeout",
    "FetchError",
    "DownloadFailed",
    "ChecksumMismatch",
    "ExtractError",
    "CorruptOrUnsupported",
    "BuildError",
    "ConfigureFailed",
    "CompileFailed",
    "InstallFailed",
    "RelocateError",
    "LibraryNotFound",
    "UnsupportedPlatform",
    "PackageError",
    "CompressionFailed",
    "VerificationError",
    "VerificationFailed",
    "BinaryFormat",
    "PlatformDescriptor",
    "detect_platform",
    "resolve_platform",
    "clear_platform_cache",
]
