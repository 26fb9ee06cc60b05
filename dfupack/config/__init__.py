"""
Configuration for dfupack.

Typed configuration objects and the layered YAML/CLI loader.
"""

from dfupack.config.model import (
    BuildTarget,
    PipelineConfig,
    VerifyConfig,
    archive_name,
    install_prefix,
)
from dfupack.config.parser import (
    DEFAULT_CONFIG_NAME,
    build_config,
    default_settings,
    load_config,
    load_yaml_file,
    merge_settings,
)

__all__ = [
    "BuildTarget",
    "PipelineConfig",
    "VerifyConfig",
    "archive_name",
    "install_prefix",
    "DEFAULT_CONFIG_NAME",
    "build_config",
    "default_settings",
    "load_config",
    "load_yaml_file",
    "merge_settings",
]
