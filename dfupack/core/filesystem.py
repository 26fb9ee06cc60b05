"""
File system utilities for dfupack.

This module provides:
- Archive format detection (gzip-tar, bzip2-tar)
- Idempotent, traversal-safe archive extraction
- Moving install trees
- Absolute path normalization for configured directories
"""

import logging
import os
import shutil
import sys
import tarfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from dfupack.core.exceptions import CorruptOrUnsupported

logger = logging.getLogger(__name__)


class ArchiveFormat(Enum):
    """Supported source archive formats, valued by tarfile read mode."""

    GZIP_TAR = "r:gz"
    BZIP2_TAR = "r:bz2"

    @classmethod
    def from_filename(cls, name: Union[str, Path]) -> "ArchiveFormat":
        """
        Detect archive format from a file name.

        Args:
            name: Archive file name or path

        Returns:
            Matching ArchiveFormat

        Raises:
            ValueError: If the extension is not recognized
        """
        lowered = Path(name).name.lower()
        if lowered.endswith((".tar.gz", ".tgz")):
            return cls.GZIP_TAR
        if lowered.endswith((".tar.bz2", ".tbz2", ".tbz")):
            return cls.BZIP2_TAR
        raise ValueError(
            f"Unsupported archive format: {Path(name).name}. "
            "Supported: .tar.gz, .tgz, .tar.bz2, .tbz2"
        )


# ============================================================================
# Path Utilities
# ============================================================================


def absolute_path(path: Union[str, Path]) -> Path:
    """
    Make a path absolute against the current directory.

    ``~`` is expanded and ``..`` segments are collapsed. Symlinks are kept:
    the install prefix is written into binaries exactly as configured, so
    ``/tmp`` must not turn into ``/private/tmp`` on macOS.

    Example:
        >>> absolute_path("build")
        PosixPath('/home/user/project/build')
    """
    return Path(os.path.abspath(os.path.expanduser(str(path))))


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is under parent directory.

    Example:
        >>> is_relative_to(Path("/tmp/pkg/bin/tool"), Path("/tmp/pkg"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _validate_archive_path(name: str, destination: Path) -> None:
    """Reject archive members that would land outside destination."""
    member_path = (destination / name).resolve()
    if not is_relative_to(member_path, destination.resolve()):
        raise CorruptOrUnsupported(
            name, "archive member attempts directory traversal"
        )


# ============================================================================
# Archive Extraction
# ============================================================================


def extract(
    archive_path: Union[str, Path],
    expected_folder: Union[str, Path],
    archive_format: Optional[ArchiveFormat] = None,
    destination: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Ensure an archive has been extracted exactly once.

    The presence of the expected folder is the idempotence marker: if it
    already exists as a directory nothing is extracted.

    Args:
        archive_path: Path to the downloaded archive
        expected_folder: Name (or path) of the top-level folder the archive
            produces; relative names are resolved against destination
        archive_format: Compression format (detected from the name if None)
        destination: Directory to extract into (default: archive's directory)

    Returns:
        Path to the extracted folder

    Raises:
        CorruptOrUnsupported: If the archive cannot be read or extracted, or
            does not produce the expected folder

    Example:
        >>> extract('libusb-1.0.22.tar.bz2', 'libusb-1.0.22')
        PosixPath('libusb-1.0.22')
    """
    archive_path = Path(archive_path)
    destination = Path(destination) if destination else archive_path.parent
    folder = destination / expected_folder

    if folder.is_dir():
        logger.info(f"{folder.name} already extracted, skipping")
        return folder

    if not archive_path.is_file():
        raise CorruptOrUnsupported(archive_path, "archive not found")

    if archive_format is None:
        try:
            archive_format = ArchiveFormat.from_filename(archive_path)
        except ValueError as e:
            raise CorruptOrUnsupported(archive_path, str(e)) from e

    logger.info(f"Extracting {archive_path.name}...")
    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, archive_format.value) as tar:
            for member in tar.getmembers():
                _validate_archive_path(member.name, destination)

            # Extraction filter for security (Python 3.12+)
            if sys.version_info >= (3, 12):
                tar.extractall(destination, filter="tar")
            else:
                tar.extractall(destination)
    except CorruptOrUnsupported:
        raise
    except (tarfile.TarError, EOFError, OSError) as e:
        raise CorruptOrUnsupported(archive_path, str(e)) from e

    if not folder.is_dir():
        raise CorruptOrUnsupported(
            archive_path, f"archive did not contain expected folder '{expected_folder}'"
        )

    return folder


# ============================================================================
# Tree Operations
# ============================================================================


def move_tree(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Move a directory tree to a new location.

    Args:
        source: Existing directory
        destination: New path for the directory (must not exist)

    Returns:
        The destination path

    Raises:
        FileNotFoundError: If source does not exist
        FileExistsError: If destination already exists
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise FileNotFoundError(f"Directory not found: {source}")
    if destination.exists():
        raise FileExistsError(f"Destination already exists: {destination}")

    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(destination))
    return destination
