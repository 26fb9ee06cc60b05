"""
Primary tool builder.

Builds dfu-util against the prefix populated by the DependencyBuilder.
Unlike the dependency there is no cache check: every run rebuilds the tool.
"""

import logging
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from dfupack.build.base import AutotoolsBuilder, DiscoveryMetadata, ProducedBinary
from dfupack.config.model import BuildTarget
from dfupack.core.exceptions import InstallFailed

logger = logging.getLogger(__name__)


class TargetBuilder:
    """Build the primary tool and report the binaries it installed."""

    def __init__(
        self,
        builder: AutotoolsBuilder,
        binaries: Sequence[str],
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize target builder.

        Args:
            builder: Autotools builder performing the steps
            binaries: Expected binaries, relative to the prefix
            environ: Environment the build runs in (default: os.environ)
        """
        self.builder = builder
        self.binaries = [Path(b) for b in binaries]
        self.environ = environ

    def build(
        self, target: BuildTarget, prefix: Path, discovery: DiscoveryMetadata
    ) -> List[ProducedBinary]:
        """
        Build and install the target into prefix.

        Args:
            target: Tool to build
            prefix: Install prefix (already holding the dependency)
            discovery: Dependency search path, exported to configure and make

        Returns:
            Installed binaries, in configuration order

        Raises:
            FetchError, ExtractError, BuildError: If a build step fails
            InstallFailed: If an expected binary is missing after install
        """
        prefix = Path(prefix)
        logger.info(f"Building {target.label} against {discovery.pkg_config_dir}")

        self.builder.build(target, prefix, env=discovery.environ(self.environ))

        produced = [
            ProducedBinary(path=prefix / relative, relative=relative)
            for relative in self.binaries
        ]
        missing = [str(b.relative) for b in produced if not b.path.is_file()]
        if missing:
            raise InstallFailed(
                target.label, f"expected binaries not installed: {', '.join(missing)}"
            )

        for binary in produced:
            logger.debug(f"Installed {binary.path}")
        return produced
