"""
Host tool checks.

Verifies that the external programs the pipeline shells out to are on PATH
before any download or build starts, so a missing patch tool is reported up
front rather than after a twenty minute compile.
"""

import logging
import shutil
from dataclasses import dataclass
from typing import Callable, List, Optional

from dfupack.core.exceptions import PreflightError
from dfupack.core.platform import BinaryFormat, PlatformDescriptor

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Result of a single tool check."""

    name: str
    passed: bool
    message: str
    fix_command: Optional[str] = None
    required: bool = True


@dataclass(frozen=True)
class ToolRequirement:
    """An external program and where to get it."""

    name: str
    purpose: str
    hint: str
    required: bool = True


BUILD_TOOLS = [
    ToolRequirement(
        "make", "building sources", "Install make (build-essential / Xcode CLT)"
    ),
    ToolRequirement("cc", "compiling sources", "Install a C compiler (gcc or clang)"),
    ToolRequirement(
        "pkg-config",
        "locating libusb",
        "Install pkg-config (apt install pkg-config / brew install pkg-config)",
    ),
]

ELF_TOOLS = [
    ToolRequirement(
        "patchelf", "rewriting rpaths", "Install patchelf (apt install patchelf)"
    ),
    ToolRequirement(
        "ldd",
        "listing library dependencies",
        "Install ldd (part of libc-bin)",
        required=False,
    ),
]

MACHO_TOOLS = [
    ToolRequirement(
        "install_name_tool", "rewriting install names", "Run: xcode-select --install"
    ),
    ToolRequirement("otool", "reading install names", "Run: xcode-select --install"),
]


class PreflightChecker:
    """Check the host for the tools a pipeline run needs."""

    def __init__(
        self,
        platform: PlatformDescriptor,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ):
        """
        Initialize checker.

        Args:
            platform: Platform the pipeline builds for
            which: PATH lookup function (default: shutil.which)
        """
        self.platform = platform
        self.which = which or shutil.which

    def requirements(self) -> List[ToolRequirement]:
        """Tools needed to build and relocate for the platform."""
        tools = list(BUILD_TOOLS)
        binary_format = self.platform.binary_format
        if binary_format is BinaryFormat.ELF:
            tools.extend(ELF_TOOLS)
        elif binary_format is BinaryFormat.MACHO:
            tools.extend(MACHO_TOOLS)
        return tools

    def check_tool(self, tool: ToolRequirement) -> CheckResult:
        location = self.which(tool.name)
        if location:
            return CheckResult(
                name=tool.name,
                passed=True,
                message=location,
                required=tool.required,
            )
        return CheckResult(
            name=tool.name,
            passed=False,
            message=f"{tool.name} not found in PATH (needed for {tool.purpose})",
            fix_command=tool.hint,
            required=tool.required,
        )

    def check_platform(self) -> CheckResult:
        binary_format = self.platform.binary_format
        if binary_format is BinaryFormat.UNSUPPORTED:
            return CheckResult(
                name="Platform",
                passed=False,
                message=f"No relocation strategy for {self.platform.os_name}",
            )
        return CheckResult(
            name="Platform",
            passed=True,
            message=f"{self.platform.slug} ({binary_format.value})",
        )

    def run_all_checks(self) -> List[CheckResult]:
        """Run the platform check and one check per required tool."""
        results = [self.check_platform()]
        results.extend(self.check_tool(tool) for tool in self.requirements())
        return results

    def ensure(self) -> List[CheckResult]:
        """
        Run all checks and fail if a required one did not pass.

        Returns:
            All check results (optional tools may have failed)

        Raises:
            PreflightError: Naming every failed required check
        """
        results = self.run_all_checks()
        for result in results:
            if result.passed:
                logger.debug(f"{result.name}: {result.message}")
            elif result.required:
                logger.error(f"{result.name}: {result.message}")
            else:
                logger.warning(f"{result.name}: {result.message}")

        missing = [r.name for r in results if not r.passed and r.required]
        if missing:
            raise PreflightError(missing)

        logger.info(f"All required tools found for {self.platform.slug}")
        return results
