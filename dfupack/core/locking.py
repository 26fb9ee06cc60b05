"""
Work directory locking.

A build downloads, extracts and installs into shared locations (the work
directory and the install prefix). The workspace lock makes a second dfupack
process fail fast instead of interleaving with a running build.

Usage:
    from dfupack.core.locking import workspace_lock

    with workspace_lock(work_dir, timeout=0):
        run_pipeline()
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

from dfupack.core.exceptions import WorkspaceLocked

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".dfupack.lock"


@contextmanager
def workspace_lock(work_dir: Path, timeout: float = 0):
    """
    Acquire the lock for a work directory.

    Args:
        work_dir: Directory holding downloads and extracted sources
        timeout: Maximum wait time in seconds (0 fails immediately)

    Yields:
        Path to the lock file

    Raises:
        WorkspaceLocked: If the lock can't be acquired within timeout
    """
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)
    lock_path = work_dir / LOCK_FILE_NAME
    lock = FileLock(lock_path, timeout=timeout)

    try:
        lock.acquire()
    except LockTimeout as e:
        logger.error(
            f"Could not acquire workspace lock after {timeout}s. "
            "Another dfupack process may be running."
        )
        raise WorkspaceLocked(lock_path) from e

    logger.debug(f"Acquired workspace lock: {lock_path}")
    try:
        yield lock_path
    finally:
        lock.release()
        logger.debug(f"Released workspace lock: {lock_path}")
