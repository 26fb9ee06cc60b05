"""
Configuration data model for dfupack.

BuildTarget describes one upstream source package; PipelineConfig holds
everything a pipeline run needs. Both are immutable once loaded.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dfupack.core.filesystem import ArchiveFormat
from dfupack.core.platform import PlatformDescriptor, resolve_platform


# Defaults reproduce the upstream releases the package was built from.
# {name} and {version} are expanded when the configuration is loaded.
DEFAULT_DEPENDENCY = {
    "name": "libusb",
    "version": "1.0.22",
    "url": "https://github.com/libusb/libusb/releases/download/v{version}/{name}-{version}.tar.bz2",
    "archive": "{name}-{version}.tar.bz2",
    "folder": "{name}-{version}",
    "sha256": None,
    "install_goal": "install",
}

DEFAULT_TARGET = {
    "name": "dfu-util",
    "version": "0.11",
    "url": "https://dfu-util.sourceforge.net/releases/{name}-{version}.tar.gz",
    "archive": "{name}-{version}.tar.gz",
    "folder": "{name}-{version}",
    "sha256": None,
    "install_goal": "install-exec",
    "binaries": ["bin/dfu-util", "bin/dfu-suffix", "bin/dfu-prefix"],
}

DEFAULT_PACKAGE_NAME = "dfuutil"
DEFAULT_MACHO_LIBRARY = "libusb-1.0.0.dylib"
DEFAULT_INSTALL_BASE = Path("/tmp")


@dataclass(frozen=True)
class BuildTarget:
    """
    One upstream source package.

    Attributes:
        name: Project name (e.g. 'libusb')
        version: Release version (e.g. '1.0.22')
        url: Source archive URL
        archive: Local archive file name
        folder: Top-level folder the archive extracts to
        sha256: Optional expected SHA256 of the archive
        install_goal: make goal that installs the build ('install', 'install-exec')
    """

    name: str
    version: str
    url: str
    archive: str
    folder: str
    sha256: Optional[str] = None
    install_goal: str = "install"

    @property
    def archive_format(self) -> ArchiveFormat:
        """Compression format of the source archive."""
        return ArchiveFormat.from_filename(self.archive)

    @property
    def label(self) -> str:
        return f"{self.name} {self.version}"

    @classmethod
    def from_templates(
        cls,
        name: str,
        version: str,
        url: str,
        archive: str,
        folder: str,
        sha256: Optional[str] = None,
        install_goal: str = "install",
    ) -> "BuildTarget":
        """
        Create a BuildTarget, expanding {name} and {version} placeholders.

        Example:
            >>> t = BuildTarget.from_templates(
            ...     'libusb', '1.0.22', 'https://x/{name}-{version}.tar.bz2',
            ...     '{name}-{version}.tar.bz2', '{name}-{version}')
            >>> t.url
            'https://x/libusb-1.0.22.tar.bz2'
        """
        values = {"name": name, "version": version}
        return cls(
            name=name,
            version=version,
            url=url.format(**values),
            archive=archive.format(**values),
            folder=folder.format(**values),
            sha256=sha256,
            install_goal=install_goal,
        )


@dataclass(frozen=True)
class VerifyConfig:
    """Verification stage settings."""

    enabled: bool = True
    strict: bool = False
    quarantine: Optional[Path] = None
    help_flag: str = "--help"


@dataclass(frozen=True)
class PipelineConfig:
    """Complete configuration of a pipeline run."""

    dependency: BuildTarget
    target: BuildTarget
    binaries: Tuple[str, ...]
    install_base: Path = DEFAULT_INSTALL_BASE
    work_dir: Path = Path(".")
    output_dir: Path = Path(".")
    package_name: str = DEFAULT_PACKAGE_NAME
    platform_os: Optional[str] = None
    platform_arch: Optional[str] = None
    macho_library: str = DEFAULT_MACHO_LIBRARY
    command_timeout: Optional[float] = 1800
    download_timeout: float = 60
    download_retries: int = 1
    lock_timeout: float = 0
    preflight: bool = False
    verify: VerifyConfig = field(default_factory=VerifyConfig)

    def platform(self) -> PlatformDescriptor:
        """Platform to build for (host values with overrides applied)."""
        return resolve_platform(self.platform_os, self.platform_arch)

    def install_prefix(self, platform: PlatformDescriptor) -> Path:
        return install_prefix(self.install_base, self.target, platform)

    def archive_path(self, platform: PlatformDescriptor) -> Path:
        return self.output_dir / archive_name(self.package_name, self.target, platform)


def install_prefix(
    install_base: Path, target: BuildTarget, platform: PlatformDescriptor
) -> Path:
    """
    Compute the install prefix for a target on a platform.

    The prefix encodes tool, version, OS and architecture so builds for
    different platforms never share a directory.

    Example:
        >>> install_prefix(Path('/tmp'), dfu_util_0_11, PlatformDescriptor('Linux', 'x86_64'))
        PosixPath('/tmp/dfu-util-0.11-Linux-x86_64')
    """
    return Path(install_base) / f"{target.name}-{target.version}-{platform.slug}"


def archive_name(
    package_name: str, target: BuildTarget, platform: PlatformDescriptor
) -> str:
    """
    Get the file name of the distributable archive.

    Example:
        >>> archive_name('dfuutil', dfu_util_0_11, PlatformDescriptor('Darwin', 'arm64'))
        'tool-dfuutil-0.11-Darwin-arm64.tar.gz'
    """
    return f"tool-{package_name}-{target.version}-{platform.slug}.tar.gz"
