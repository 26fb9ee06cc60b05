"""
Source builds for dfupack.

Provides the autotools build steps, the dependency library builder (with
prefix caching) and the primary tool builder.
"""

from dfupack.build.base import (
    AutotoolsBuilder,
    DiscoveryMetadata,
    ProducedBinary,
)
from dfupack.build.dependency import DependencyBuilder
from dfupack.build.target import TargetBuilder

__all__ = [
    "AutotoolsBuilder",
    "DiscoveryMetadata",
    "ProducedBinary",
    "DependencyBuilder",
    "TargetBuilder",
]
