"""
Centralized exception hierarchy for dfupack.

Every pipeline stage raises a subclass of DfuPackError. The pipeline driver
treats all of them as fatal; verification outcomes are reported separately
and only become an error in strict mode.
"""

from pathlib import Path
from typing import Optional, Sequence, Union


# ============================================================================
# Base Exceptions
# ============================================================================


class DfuPackError(Exception):
    """Base exception for all dfupack errors."""

    pass


class ConfigError(DfuPackError):
    """Raised when configuration is missing, malformed or has wrong types."""

    pass


class WorkspaceLocked(DfuPackError):
    """Raised when another dfupack process holds the work directory lock."""

    def __init__(self, lock_file: Path):
        self.lock_file = lock_file
        super().__init__(
            f"Work directory is locked by another dfupack process: {lock_file}"
        )


class PreflightError(DfuPackError):
    """Raised when required host tools are missing."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required tools: {', '.join(self.missing)}")


# ============================================================================
# External Process Exceptions
# ============================================================================


class CommandError(DfuPackError):
    """Raised when an external command exits non-zero or cannot be started."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int] = None,
        output: str = "",
        reason: str = "",
    ):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        msg = f"Command failed: {' '.join(self.command)}"
        if returncode is not None:
            msg += f" (exit code {returncode})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class CommandTimeout(CommandError):
    """Raised when an external command exceeds its timeout."""

    def __init__(self, command: Sequence[str], timeout: float, output: str = ""):
        self.timeout = timeout
        super().__init__(command, output=output, reason=f"timed out after {timeout}s")


# ============================================================================
# Fetch / Extract Exceptions
# ============================================================================


class FetchError(DfuPackError):
    """Base exception for artifact retrieval errors."""

    pass


class DownloadFailed(FetchError):
    """Raised when a source archive cannot be downloaded."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        msg = f"Download failed: {url}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ChecksumMismatch(FetchError):
    """Raised when a downloaded file does not match its expected SHA256."""

    def __init__(self, path: Path, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {Path(path).name}: expected {expected}, got {actual}"
        )


class ExtractError(DfuPackError):
    """Base exception for archive extraction errors."""

    pass


class CorruptOrUnsupported(ExtractError):
    """Raised when an archive cannot be extracted."""

    def __init__(self, archive: Union[str, Path], reason: str = ""):
        self.archive = Path(archive)
        msg = f"Failed to extract {self.archive.name}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(DfuPackError):
    """Base exception for configure/compile/install failures."""

    step = "build"

    def __init__(self, target: str, detail: str = ""):
        self.target = target
        self.detail = detail
        msg = f"{self.step} failed for {target}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ConfigureFailed(BuildError):
    """Raised when ./configure exits non-zero."""

    step = "configure"


class CompileFailed(BuildError):
    """Raised when make exits non-zero."""

    step = "compile"


class InstallFailed(BuildError):
    """Raised when make install exits non-zero or installs incomplete output."""

    step = "install"


# ============================================================================
# Relocation Exceptions
# ============================================================================


class RelocateError(DfuPackError):
    """Base exception for binary relocation errors."""

    pass


class LibraryNotFound(RelocateError):
    """Raised when the shared library to relink against is not where expected."""

    def __init__(self, expected_path: Union[str, Path], binary: Optional[Path] = None):
        self.expected_path = Path(expected_path)
        self.binary = binary
        msg = f"Expected library not found at {self.expected_path}"
        if binary is not None:
            msg += f" (referenced by {binary})"
        super().__init__(msg)


class UnsupportedPlatform(RelocateError):
    """Raised when no relocation strategy exists for the platform."""

    def __init__(self, os_name: str):
        self.os_name = os_name
        super().__init__(f"Binary relocation is not supported on {os_name}")


# ============================================================================
# Packaging / Verification Exceptions
# ============================================================================


class PackageError(DfuPackError):
    """Base exception for packaging errors."""

    pass


class CompressionFailed(PackageError):
    """Raised when the distributable archive cannot be written."""

    def __init__(self, archive: Union[str, Path], reason: str = ""):
        self.archive = Path(archive)
        msg = f"Failed to create archive {self.archive.name}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class VerificationError(DfuPackError):
    """Raised when verification cannot be set up (e.g. quarantine path in use)."""

    pass


class VerificationFailed(VerificationError):
    """Raised in strict mode when one or more binaries fail verification."""

    def __init__(self, failed: Sequence[str]):
        self.failed = list(failed)
        super().__init__(f"Verification failed for: {', '.join(self.failed)}")
