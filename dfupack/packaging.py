"""
Distributable archive creation.

The install prefix is packed as a gzip-compressed tarball whose single
top-level entry is the prefix directory itself, so extracting the archive
anywhere recreates ``<tool>-<version>-<os>-<arch>/{bin,lib,...}``.
"""

import logging
import tarfile
import tempfile
from pathlib import Path
from typing import List

from dfupack.core.exceptions import CompressionFailed

logger = logging.getLogger(__name__)


def package(prefix: Path, archive_path: Path) -> Path:
    """
    Archive an install prefix.

    The archive is written to a temporary file next to archive_path and
    renamed into place, so a failed run never leaves a truncated archive
    under the final name.

    Args:
        prefix: Install prefix to archive
        archive_path: Destination .tar.gz path

    Returns:
        Path to the created archive

    Raises:
        CompressionFailed: If the prefix is missing or the archive can't be written

    Example:
        >>> package(Path('/tmp/dfu-util-0.11-Linux-x86_64'),
        ...         Path('tool-dfuutil-0.11-Linux-x86_64.tar.gz'))
    """
    prefix = Path(prefix)
    archive_path = Path(archive_path)

    if not prefix.is_dir():
        raise CompressionFailed(archive_path, f"install prefix not found: {prefix}")

    logger.info(f"Packing installed files into {archive_path.name}...")

    temp_path = None
    try:
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            dir=archive_path.parent, prefix=f".{archive_path.name}.", suffix=".tmp"
        )
        temp_path = Path(temp_name)
        with open(fd, "wb") as f:
            with tarfile.open(fileobj=f, mode="w:gz") as tar:
                tar.add(str(prefix), arcname=prefix.name)
        # mkstemp creates the file owner-only
        temp_path.chmod(0o644)
        temp_path.replace(archive_path)
    except (tarfile.TarError, OSError) as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise CompressionFailed(archive_path, str(e)) from e

    logger.info(f"All files have been packed into {archive_path}")
    return archive_path


def list_archive(archive_path: Path) -> List[str]:
    """
    List the member names of a packaged archive.

    Raises:
        CompressionFailed: If the archive can't be read
    """
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            return tar.getnames()
    except (tarfile.TarError, OSError) as e:
        raise CompressionFailed(archive_path, str(e)) from e
