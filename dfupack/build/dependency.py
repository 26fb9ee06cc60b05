"""
Dependency library builder.

Builds the prerequisite library (libusb) into the install prefix. A prefix
that already contains ``lib/pkgconfig`` is treated as built: the expensive
configure and compile steps are skipped and only the discovery metadata is
returned.
"""

import logging
from pathlib import Path
from typing import Mapping, Optional

from dfupack.build.base import AutotoolsBuilder, DiscoveryMetadata
from dfupack.config.model import BuildTarget

logger = logging.getLogger(__name__)


class DependencyBuilder:
    """Build the dependency library into a prefix, once."""

    def __init__(
        self,
        builder: AutotoolsBuilder,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize dependency builder.

        Args:
            builder: Autotools builder performing the steps
            environ: Environment the discovery metadata extends (default: os.environ)
        """
        self.builder = builder
        self.environ = environ

    def is_built(self, prefix: Path) -> bool:
        """Check whether the prefix already holds the dependency's pkg-config files."""
        return (Path(prefix) / "lib" / "pkgconfig").is_dir()

    def build(self, target: BuildTarget, prefix: Path) -> DiscoveryMetadata:
        """
        Ensure the dependency is installed in prefix.

        Args:
            target: Dependency to build
            prefix: Install prefix

        Returns:
            DiscoveryMetadata pointing at the prefix's pkg-config directory

        Raises:
            FetchError, ExtractError, BuildError: If a build step fails
        """
        prefix = Path(prefix)
        logger.info(f"Checking if {target.name} is already built in {prefix}...")

        if self.is_built(prefix):
            logger.info(f"{target.name} is already installed in {prefix}. Skipping build.")
        else:
            logger.info(f"Downloading and building {target.label}...")
            self.builder.build(target, prefix)
            logger.info(f"{target.name} successfully built and installed to {prefix}")

        discovery = DiscoveryMetadata.for_prefix(prefix, self.environ)
        logger.info(f"PKG_CONFIG_PATH for dependent builds: {discovery.search_path}")
        return discovery
