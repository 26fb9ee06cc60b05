"""
Source archive downloader.

Fetches upstream tarballs over HTTP(S) with:
- Idempotence (an existing destination file is never downloaded again)
- Partial-file safety (data is streamed to '<name>.part' and renamed on success)
- Optional SHA256 verification
- Optional retries with exponential backoff (disabled by default)
- Progress reporting (bytes, percentage, speed, ETA)
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from dfupack.core.exceptions import ChecksumMismatch, DownloadFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        return format_progress(self)


def fetch(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: float = 60,
    max_retries: int = 1,
) -> Path:
    """
    Ensure the file behind a URL exists locally.

    If destination already exists the call is a no-op and no request is
    made. Otherwise the file is downloaded. On failure no file is left under
    the destination name.

    Args:
        url: URL to download from
        destination: Local path to save the file
        expected_sha256: Expected SHA256 hash of the file
        progress_callback: Optional callback for progress updates
        timeout: Connect/read timeout in seconds
        max_retries: Number of attempts (1 means fail on first error)

    Returns:
        Path to the local file

    Raises:
        DownloadFailed: If every attempt fails or the file can't be written
        ChecksumMismatch: If the downloaded or already present file doesn't
            match expected_sha256
        ValueError: If URL or destination is empty

    Example:
        >>> fetch("https://dfu-util.sourceforge.net/releases/dfu-util-0.11.tar.gz",
        ...       Path("dfu-util-0.11.tar.gz"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)

    if destination.is_file():
        if expected_sha256:
            actual = file_sha256(destination)
            if actual.lower() != expected_sha256.lower():
                raise ChecksumMismatch(destination, expected_sha256, actual)
        logger.info(f"{destination.name} already downloaded, skipping")
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return _download(url, destination, expected_sha256, progress_callback, timeout)
        except RequestException as e:
            if attempt == attempts - 1:
                raise DownloadFailed(url, str(e)) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)
        except OSError as e:
            # Local write errors are not retried
            raise DownloadFailed(url, f"cannot write {destination.name}: {e}") from e

    raise DownloadFailed(url)


def _download(
    url: str,
    destination: Path,
    expected_sha256: Optional[str],
    progress_callback: Optional[Callable[[DownloadProgress], None]],
    timeout: float,
) -> Path:
    """Stream url into a .part file next to destination, then rename it."""
    part_path = destination.with_name(destination.name + ".part")

    logger.info(f"Downloading {url}")

    try:
        with requests.get(
            url, stream=True, timeout=timeout, allow_redirects=True
        ) as response:
            response.raise_for_status()

            total_size = _content_length(response)

            hasher = hashlib.sha256()
            downloaded = 0
            start_time = time.time()
            last_progress_time = start_time

            with open(part_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    hasher.update(chunk)
                    downloaded += len(chunk)

                    # Report at most twice per second
                    current_time = time.time()
                    if progress_callback and current_time - last_progress_time >= 0.5:
                        progress_callback(
                            _progress(downloaded, total_size, current_time - start_time)
                        )
                        last_progress_time = current_time

            if progress_callback:
                progress_callback(
                    _progress(downloaded, total_size, time.time() - start_time)
                )
    except BaseException:
        part_path.unlink(missing_ok=True)
        raise

    actual = hasher.hexdigest()
    if expected_sha256 and actual.lower() != expected_sha256.lower():
        part_path.unlink(missing_ok=True)
        raise ChecksumMismatch(destination, expected_sha256, actual)

    part_path.replace(destination)
    logger.info(f"Download complete: {destination} ({downloaded} bytes)")
    return destination


def _content_length(response) -> int:
    """Declared body size, 0 if the header is missing or malformed."""
    try:
        return max(0, int(response.headers.get("content-length") or 0))
    except ValueError:
        logger.debug(
            f"Ignoring invalid Content-Length: {response.headers.get('content-length')!r}"
        )
        return 0


def _progress(downloaded: int, total_size: int, elapsed: float) -> DownloadProgress:
    speed = downloaded / elapsed if elapsed > 0 else 0
    remaining = total_size - downloaded if total_size > 0 else 0
    return DownloadProgress(
        bytes_downloaded=downloaded,
        total_bytes=total_size if total_size > 0 else downloaded,
        percentage=(downloaded / total_size * 100) if total_size > 0 else 0,
        speed_bps=speed,
        eta_seconds=remaining / speed if speed > 0 else 0,
    )


def file_sha256(file_path: Path) -> str:
    """
    Compute the SHA256 of a file.

    Args:
        file_path: Path to file to hash

    Returns:
        Lowercase hex digest

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)

    return hasher.hexdigest()


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"
