"""
Shared autotools build steps.

Both upstream projects ship a generated ``configure`` script, so building is
the classic ``./configure --prefix=... && make && make <install goal>``
sequence, run inside the extracted source folder. Source preparation
(download then extract) also lives here.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from dfupack.config.model import BuildTarget
from dfupack.core.download import fetch
from dfupack.core.exceptions import (
    CommandError,
    CompileFailed,
    ConfigureFailed,
    InstallFailed,
)
from dfupack.core.filesystem import extract
from dfupack.core.process import CommandRunner, run_command

logger = logging.getLogger(__name__)

PKG_CONFIG_PATH = "PKG_CONFIG_PATH"


@dataclass(frozen=True)
class DiscoveryMetadata:
    """
    Where the dependency's pkg-config files live.

    Attributes:
        pkg_config_dir: '<prefix>/lib/pkgconfig'
        inherited: PKG_CONFIG_PATH value present before the build ('' if unset)
    """

    pkg_config_dir: Path
    inherited: str = ""

    @property
    def search_path(self) -> str:
        """
        PKG_CONFIG_PATH value with the dependency's directory first.

        Example:
            >>> DiscoveryMetadata(Path('/tmp/p/lib/pkgconfig'), '/usr/lib/pkgconfig').search_path
            '/tmp/p/lib/pkgconfig:/usr/lib/pkgconfig'
        """
        if self.inherited:
            return f"{self.pkg_config_dir}{os.pathsep}{self.inherited}"
        return str(self.pkg_config_dir)

    def environ(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Build a child-process environment carrying the search path.

        Args:
            base: Environment to start from (default: os.environ)

        Returns:
            New environment dictionary; base is not modified
        """
        env = dict(os.environ if base is None else base)
        env[PKG_CONFIG_PATH] = self.search_path
        return env

    @classmethod
    def for_prefix(
        cls, prefix: Path, environ: Optional[Mapping[str, str]] = None
    ) -> "DiscoveryMetadata":
        env = os.environ if environ is None else environ
        return cls(
            pkg_config_dir=Path(prefix) / "lib" / "pkgconfig",
            inherited=env.get(PKG_CONFIG_PATH, ""),
        )


@dataclass(frozen=True)
class ProducedBinary:
    """
    An executable installed under the prefix.

    Attributes:
        path: Absolute path of the binary
        relative: Path relative to the prefix (e.g. 'bin/dfu-util')
    """

    path: Path
    relative: Path

    @property
    def name(self) -> str:
        return self.path.name

    def under(self, root: Path) -> "ProducedBinary":
        """Same binary after the tree has been moved to root."""
        return ProducedBinary(path=Path(root) / self.relative, relative=self.relative)


class AutotoolsBuilder:
    """Download, extract, configure, compile and install one BuildTarget."""

    def __init__(
        self,
        work_dir: Path,
        runner: Optional[CommandRunner] = None,
        command_timeout: Optional[float] = None,
        download_timeout: float = 60,
        download_retries: int = 1,
        make_program: str = "make",
    ):
        """
        Initialize builder.

        Args:
            work_dir: Directory receiving archives and extracted sources
            runner: Command runner (default: run_command)
            command_timeout: Timeout for each configure/make invocation
            download_timeout: Timeout for source downloads
            download_retries: Download attempts before giving up
            make_program: make executable to invoke
        """
        self.work_dir = Path(work_dir)
        self.runner = runner or run_command
        self.command_timeout = command_timeout
        self.download_timeout = download_timeout
        self.download_retries = download_retries
        self.make_program = make_program

    def prepare_source(self, target: BuildTarget) -> Path:
        """
        Fetch and extract a target's source archive.

        Both steps are idempotent: an existing archive is not downloaded
        again and an existing folder is not extracted again.

        Returns:
            Path to the extracted source folder
        """
        archive = fetch(
            target.url,
            self.work_dir / target.archive,
            expected_sha256=target.sha256,
            progress_callback=lambda progress: logger.debug(f"  {progress}"),
            timeout=self.download_timeout,
            max_retries=self.download_retries,
        )
        return extract(
            archive,
            target.folder,
            archive_format=target.archive_format,
            destination=self.work_dir,
        )

    def configure(
        self,
        target: BuildTarget,
        source_dir: Path,
        prefix: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Run ./configure --prefix=<prefix>."""
        logger.info(f"Configuring {target.label} with --prefix={prefix}...")
        try:
            self.runner(
                ["./configure", f"--prefix={prefix}"],
                cwd=source_dir,
                env=env,
                timeout=self.command_timeout,
            )
        except CommandError as e:
            raise ConfigureFailed(target.label, str(e)) from e

    def compile(
        self,
        target: BuildTarget,
        source_dir: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Run make."""
        logger.info(f"Building {target.label}...")
        try:
            self.runner(
                [self.make_program],
                cwd=source_dir,
                env=env,
                timeout=self.command_timeout,
            )
        except CommandError as e:
            raise CompileFailed(target.label, str(e)) from e

    def install(
        self,
        target: BuildTarget,
        source_dir: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Run make <install goal>."""
        logger.info(f"Installing {target.label} (make {target.install_goal})...")
        try:
            self.runner(
                [self.make_program, target.install_goal],
                cwd=source_dir,
                env=env,
                timeout=self.command_timeout,
            )
        except CommandError as e:
            raise InstallFailed(target.label, str(e)) from e

    def build(
        self,
        target: BuildTarget,
        prefix: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> Path:
        """
        Run the complete fetch, extract, configure, compile, install sequence.

        Returns:
            Path to the extracted source folder

        Raises:
            FetchError, ExtractError, BuildError: On the first failing step
        """
        source_dir = self.prepare_source(target)
        self.configure(target, source_dir, prefix, env=env)
        self.compile(target, source_dir, env=env)
        self.install(target, source_dir, env=env)
        return source_dir
