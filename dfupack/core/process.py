"""
External command execution.

All external tools (configure, make, patchelf, install_name_tool, otool,
ldd and the produced binaries themselves) are run through ``run_command``.
Components accept a ``runner`` argument with the same signature so tests can
substitute a fake process boundary.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Union

from dfupack.core.exceptions import CommandError, CommandTimeout

logger = logging.getLogger(__name__)

# Lines of output kept in error messages
OUTPUT_TAIL_LINES = 20

CommandRunner = Callable[..., subprocess.CompletedProcess]


def run_command(
    command: Sequence[Union[str, Path]],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run an external command and wait for it to finish.

    stdout and stderr are captured together and logged at DEBUG level.

    Args:
        command: Program and arguments
        cwd: Working directory for the command
        env: Complete environment for the child process (inherits if None)
        timeout: Seconds before the command is killed (None for no limit)
        check: Raise CommandError on non-zero exit

    Returns:
        CompletedProcess with returncode and combined output in stdout

    Raises:
        CommandError: If the program cannot be started, or exits non-zero
            and check is True
        CommandTimeout: If the command exceeds timeout
    """
    args = [str(part) for part in command]
    logger.debug(f"Running: {' '.join(args)}" + (f" (cwd={cwd})" if cwd else ""))

    try:
        result = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        output = _decode(e.output)
        raise CommandTimeout(args, timeout or 0, output=output) from e
    except OSError as e:
        raise CommandError(args, reason=str(e)) from e

    if result.stdout:
        for line in result.stdout.splitlines():
            logger.debug(f"  | {line}")

    if check and result.returncode != 0:
        raise CommandError(
            args,
            returncode=result.returncode,
            output=result.stdout or "",
            reason=tail(result.stdout or ""),
        )

    return result


def tail(output: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    """Get the last lines of command output for error messages."""
    kept = [line for line in output.strip().splitlines() if line.strip()][-lines:]
    return "\n".join(kept)


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
