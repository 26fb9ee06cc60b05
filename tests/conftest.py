"""
Pytest configuration and shared fixtures for dfupack tests.
"""

import io
import subprocess
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

import pytest

from dfupack.config.model import BuildTarget, PipelineConfig, VerifyConfig
from dfupack.core.exceptions import CommandError
from dfupack.core.process import tail


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that need compilers and patch tools",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level caches between tests."""
    from dfupack.core import platform

    platform.detect_platform.cache_clear()
    yield
    platform.detect_platform.cache_clear()


# ============================================================================
# Fake command runner
# ============================================================================


@dataclass
class FakeCall:
    """One recorded command invocation."""

    args: List[str]
    cwd: Optional[Path]
    env: Optional[Dict[str, str]]
    timeout: Optional[float]


@dataclass
class _Rule:
    program: str
    prefix: List[str]
    stdout: str
    returncode: int
    action: Optional[Callable]


class FakeRunner:
    """
    Stand-in for run_command that records commands instead of executing them.

    Rules match on the program's file name plus optional leading arguments;
    the most recently added matching rule wins. Unmatched commands succeed
    with empty output.
    """

    def __init__(self):
        self.calls: List[FakeCall] = []
        self._rules: List[_Rule] = []

    def on(
        self,
        program: str,
        *args: str,
        stdout: str = "",
        returncode: int = 0,
        action: Optional[Callable] = None,
    ) -> "FakeRunner":
        """
        Script the result of a command.

        Args:
            program: Program file name (e.g. 'make', 'patchelf')
            args: Leading arguments that must also match
            stdout: Output to return
            returncode: Exit code to return
            action: Called as action(call) before returning; may raise
        """
        self._rules.append(_Rule(program, list(args), stdout, returncode, action))
        return self

    def __call__(
        self,
        command,
        cwd=None,
        env: Optional[Mapping[str, str]] = None,
        timeout=None,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        args = [str(part) for part in command]
        call = FakeCall(
            args=args,
            cwd=Path(cwd) if cwd else None,
            env=dict(env) if env is not None else None,
            timeout=timeout,
        )
        self.calls.append(call)

        stdout, returncode = "", 0
        for rule in reversed(self._rules):
            if Path(args[0]).name == rule.program and args[1 : 1 + len(rule.prefix)] == rule.prefix:
                if rule.action is not None:
                    rule.action(call)
                stdout, returncode = rule.stdout, rule.returncode
                break

        if check and returncode != 0:
            raise CommandError(args, returncode=returncode, output=stdout, reason=tail(stdout))
        return subprocess.CompletedProcess(args, returncode, stdout=stdout)

    def commands(self, program: Optional[str] = None) -> List[List[str]]:
        """Recorded argument lists, optionally only for one program."""
        return [
            call.args
            for call in self.calls
            if program is None or Path(call.args[0]).name == program
        ]


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Command runner that records and scripts external commands."""
    return FakeRunner()


# ============================================================================
# Archives and configuration
# ============================================================================


def make_tarball(path: Path, files: Dict[str, str], mode: str = "w:gz") -> Path:
    """Write a tar archive holding the given {member name: text} files."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, mode) as tar:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture
def tarball() -> Callable[..., Path]:
    """Factory writing small tar archives."""
    return make_tarball


@pytest.fixture
def dependency_target() -> BuildTarget:
    return BuildTarget(
        name="libusb",
        version="1.0.22",
        url="https://example.com/libusb-1.0.22.tar.bz2",
        archive="libusb-1.0.22.tar.bz2",
        folder="libusb-1.0.22",
    )


@pytest.fixture
def tool_target() -> BuildTarget:
    return BuildTarget(
        name="tool",
        version="1.0.0",
        url="https://example.com/tool-1.0.0.tar.gz",
        archive="tool-1.0.0.tar.gz",
        folder="tool-1.0.0",
        install_goal="install-exec",
    )


@pytest.fixture
def pipeline_config(tmp_path, dependency_target, tool_target) -> PipelineConfig:
    """Configuration building 'tool' 1.0.0 for Linux x86_64 inside tmp_path."""
    return PipelineConfig(
        dependency=dependency_target,
        target=tool_target,
        binaries=("bin/tool",),
        install_base=tmp_path / "base",
        work_dir=tmp_path / "work",
        output_dir=tmp_path / "out",
        package_name="tool",
        platform_os="Linux",
        platform_arch="x86_64",
        verify=VerifyConfig(quarantine=tmp_path / "quarantine" / "tool"),
    )
