"""
Relocated package verification.

Moves the finished install tree somewhere outside the build location, the
way an end user would unpack it, then checks every binary:

- its shared library dependencies resolve (``ldd`` on ELF, ``otool -L`` on Mach-O)
- it runs and exits successfully when invoked with a help flag

Failures are reported as outcomes rather than raised; the pipeline decides
whether a failed report is fatal.
"""

import logging
import posixpath
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple

from dfupack.build.base import ProducedBinary
from dfupack.core.exceptions import CommandError, VerificationError
from dfupack.core.filesystem import extract, move_tree
from dfupack.core.platform import BinaryFormat, PlatformDescriptor
from dfupack.core.process import CommandRunner, run_command, tail
from dfupack.packaging import list_archive
from dfupack.relocation.macho import parse_otool_output

logger = logging.getLogger(__name__)


@dataclass
class VerificationOutcome:
    """Result of exercising one binary."""

    binary: str
    path: Path
    passed: bool
    returncode: Optional[int] = None
    output: str = ""
    dependencies: List[str] = field(default_factory=list)
    missing_libraries: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        if self.missing_libraries:
            return f"unresolved libraries: {', '.join(self.missing_libraries)}"
        return f"exit code {self.returncode}"


@dataclass
class VerificationReport:
    """Outcomes for every binary of a relocated tree."""

    root: Path
    outcomes: List[VerificationOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(outcome.passed for outcome in self.outcomes)

    @property
    def failed(self) -> List[str]:
        return [outcome.binary for outcome in self.outcomes if not outcome.passed]


def parse_ldd_output(output: str) -> Tuple[List[str], List[str]]:
    """
    Parse ``ldd`` output.

    Returns:
        Tuple of (dependency lines, names of libraries that were not found)

    Example:
        >>> parse_ldd_output("\\tlibusb-1.0.so.0 => not found\\n")
        (['libusb-1.0.so.0 => not found'], ['libusb-1.0.so.0'])
    """
    dependencies = []
    missing = []
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        dependencies.append(line)
        if "=>" in line and line.endswith("not found"):
            missing.append(line.split("=>", 1)[0].strip())
    return dependencies, missing


class Verifier:
    """Exercise relocated binaries and record what happened."""

    def __init__(
        self,
        platform: PlatformDescriptor,
        runner: Optional[CommandRunner] = None,
        timeout: Optional[float] = 30,
        help_flag: str = "--help",
    ):
        """
        Initialize verifier.

        Args:
            platform: Platform the binaries were built for
            runner: Command runner (default: run_command)
            timeout: Timeout for each inspection or invocation
            help_flag: Flag passed to each binary
        """
        self.platform = platform
        self.runner = runner or run_command
        self.timeout = timeout
        self.help_flag = help_flag

    def verify(
        self,
        binaries: Sequence[ProducedBinary],
        prefix: Path,
        quarantine: Optional[Path] = None,
    ) -> VerificationReport:
        """
        Move the install tree to quarantine and check each binary there.

        Args:
            binaries: Binaries produced under prefix
            prefix: Install prefix (moved, not copied)
            quarantine: New location for the tree (default: fresh temp dir)

        Returns:
            VerificationReport with one outcome per binary

        Raises:
            VerificationError: If the tree can't be moved
        """
        prefix = Path(prefix)
        if quarantine is None:
            quarantine = Path(tempfile.mkdtemp(prefix="dfupack-verify-")) / prefix.name

        quarantine = Path(quarantine)
        logger.info(f"Moving {prefix} to {quarantine} for verification...")
        try:
            move_tree(prefix, quarantine)
        except (OSError, FileExistsError) as e:
            raise VerificationError(f"Cannot relocate install tree: {e}") from e

        return self.verify_tree(binaries, quarantine)

    def verify_tree(
        self, binaries: Sequence[ProducedBinary], root: Path
    ) -> VerificationReport:
        """Check each binary as found under root."""
        report = VerificationReport(root=Path(root))
        for binary in binaries:
            outcome = self.check_binary(binary.under(root))
            report.outcomes.append(outcome)
            if outcome.passed:
                logger.info(f"  ✓ {outcome.binary}: {outcome.message}")
            else:
                logger.error(f"  ✗ {outcome.binary}: {outcome.message}")

        if report.success:
            logger.info(f"✓ All {len(report.outcomes)} binaries verified in {root}")
        else:
            logger.error(f"✗ Verification failed for: {', '.join(report.failed)}")
        return report

    def check_binary(self, binary: ProducedBinary) -> VerificationOutcome:
        """Inspect dependencies of and invoke one binary."""
        outcome = VerificationOutcome(
            binary=str(binary.relative), path=binary.path, passed=False
        )

        if not binary.path.is_file():
            outcome.error = f"binary not found at {binary.path}"
            return outcome

        self._inspect_dependencies(outcome)

        try:
            result = self.runner(
                [str(binary.path), self.help_flag], timeout=self.timeout, check=False
            )
        except CommandError as e:
            outcome.error = str(e)
            return outcome

        outcome.returncode = result.returncode
        outcome.output = result.stdout or ""
        if result.returncode != 0:
            outcome.error = f"exited with code {result.returncode}: {tail(outcome.output, 5)}"
            return outcome

        outcome.passed = not outcome.missing_libraries
        return outcome

    def _inspect_dependencies(self, outcome: VerificationOutcome) -> None:
        binary_format = self.platform.binary_format

        if binary_format is BinaryFormat.ELF:
            command = ["ldd", str(outcome.path)]
        elif binary_format is BinaryFormat.MACHO:
            command = ["otool", "-L", str(outcome.path)]
        else:
            logger.debug(f"No dependency listing available on {self.platform.os_name}")
            return

        try:
            result = self.runner(command, timeout=self.timeout)
        except CommandError as e:
            # Listing is diagnostic only (ldd fails on static executables)
            logger.warning(f"Could not list dependencies of {outcome.binary}: {e}")
            return

        output = result.stdout or ""
        logger.info(f"Library dependencies {outcome.binary}:")
        for line in output.strip().splitlines():
            logger.info(f"  {line.strip()}")

        if binary_format is BinaryFormat.ELF:
            outcome.dependencies, outcome.missing_libraries = parse_ldd_output(output)
        else:
            outcome.dependencies = parse_otool_output(output)


def _top_level_names(members: Sequence[str]) -> Set[str]:
    """
    First path component of each member, ignoring a leading './'.

    Example:
        >>> sorted(_top_level_names([".", "./tool-1.0/bin/tool", "tool-1.0/lib"]))
        ['tool-1.0']
    """
    names = set()
    for member in members:
        first = posixpath.normpath(member).split("/", 1)[0]
        if first not in ("", "."):
            names.add(first)
    return names


def verify_archive(
    archive_path: Path,
    binaries: Sequence[str],
    verifier: Verifier,
    destination: Optional[Path] = None,
) -> VerificationReport:
    """
    Extract a packaged archive to a foreign location and verify its binaries.

    Args:
        archive_path: Archive created by the packager
        binaries: Binaries to check, relative to the package root
        verifier: Verifier to run the checks with
        destination: Extraction directory (default: a temporary directory
            removed afterwards)

    Returns:
        VerificationReport for the extracted tree

    Raises:
        VerificationError: If the archive has no single top-level folder
        ExtractError: If the archive cannot be extracted
    """
    archive_path = Path(archive_path)
    top_level = _top_level_names(list_archive(archive_path))
    if len(top_level) != 1:
        raise VerificationError(
            f"{archive_path.name} must contain exactly one top-level folder, "
            f"found: {', '.join(sorted(top_level)) or 'none'}"
        )
    folder = top_level.pop()

    produced = [ProducedBinary(path=Path(b), relative=Path(b)) for b in binaries]

    if destination is not None:
        root = extract(archive_path, folder, destination=destination)
        return verifier.verify_tree(produced, root)

    with tempfile.TemporaryDirectory(prefix="dfupack-verify-") as tmpdir:
        root = extract(archive_path, folder, destination=Path(tmpdir))
        return verifier.verify_tree(produced, root)
