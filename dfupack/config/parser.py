"""YAML configuration loader for dfupack.

Configuration is layered: built-in defaults, then an optional YAML file
(``dfupack.yaml``), then command-line overrides. Each layer is a plain nested
dictionary; the merged result is validated and turned into a PipelineConfig.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dfupack.config.model import (
    DEFAULT_DEPENDENCY,
    DEFAULT_INSTALL_BASE,
    DEFAULT_MACHO_LIBRARY,
    DEFAULT_PACKAGE_NAME,
    DEFAULT_TARGET,
    BuildTarget,
    PipelineConfig,
    VerifyConfig,
)
from dfupack.core.exceptions import ConfigError
from dfupack.core.filesystem import ArchiveFormat, absolute_path
from dfupack.core.platform import validate_platform_name

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "dfupack.yaml"

KNOWN_KEYS = {
    "install_base",
    "work_dir",
    "output_dir",
    "package_name",
    "platform",
    "dependency",
    "target",
    "macho_library",
    "command_timeout",
    "download_timeout",
    "download_retries",
    "lock_timeout",
    "preflight",
    "verify",
}


def default_settings() -> Dict[str, Any]:
    """Get the built-in configuration layer."""
    return {
        "install_base": str(DEFAULT_INSTALL_BASE),
        "work_dir": ".",
        "output_dir": None,
        "package_name": DEFAULT_PACKAGE_NAME,
        "platform": {"os": None, "arch": None},
        "dependency": copy.deepcopy(DEFAULT_DEPENDENCY),
        "target": copy.deepcopy(DEFAULT_TARGET),
        "macho_library": DEFAULT_MACHO_LIBRARY,
        "command_timeout": 1800,
        "download_timeout": 60,
        "download_retries": 1,
        "lock_timeout": 0,
        "preflight": False,
        "verify": {
            "enabled": True,
            "strict": False,
            "quarantine": None,
            "help_flag": "--help",
        },
    }


def load_yaml_file(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If the file is required but missing, is not valid YAML,
            or is not a mapping
    """
    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {config_file} must be a mapping")

    return data


def merge_settings(base: Dict[str, Any], layer: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a configuration layer onto a base, recursing into mappings.

    None values in the layer leave the base value untouched, so unset CLI
    options never clobber file settings.

    Returns:
        New merged dictionary (inputs are not modified)
    """
    merged = copy.deepcopy(base)
    for key, value in layer.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(
    config_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    required: bool = False,
) -> PipelineConfig:
    """
    Load pipeline configuration from defaults, a YAML file and overrides.

    Args:
        config_file: YAML file to load (skipped if None)
        overrides: Highest-precedence layer (usually from the CLI)
        required: Whether config_file must exist

    Returns:
        Validated PipelineConfig

    Raises:
        ConfigError: If any layer is invalid
    """
    settings = default_settings()

    if config_file is not None:
        file_layer = load_yaml_file(Path(config_file), required=required)
        for key in sorted(set(file_layer) - KNOWN_KEYS):
            logger.warning(f"Ignoring unknown configuration key: {key}")
        settings = merge_settings(
            settings, {k: v for k, v in file_layer.items() if k in KNOWN_KEYS}
        )

    if overrides:
        settings = merge_settings(settings, overrides)

    return build_config(settings)


def build_config(settings: Dict[str, Any]) -> PipelineConfig:
    """
    Validate merged settings and build a PipelineConfig.

    Raises:
        ConfigError: If a value has the wrong type or is out of range
    """
    dependency_raw = _section(settings, "dependency")
    target_raw = _section(settings, "target")
    platform_raw = _section(settings, "platform")
    verify_raw = _section(settings, "verify")

    binaries = target_raw.get("binaries")
    if not isinstance(binaries, list) or not binaries:
        raise ConfigError("target.binaries must be a non-empty list")
    for binary in binaries:
        if not isinstance(binary, str) or Path(binary).is_absolute():
            raise ConfigError(
                f"target.binaries entries must be paths relative to the prefix: {binary!r}"
            )

    work_dir = absolute_path(_string(settings, "work_dir"))
    output_dir = _optional_string(settings, "output_dir")
    quarantine = _optional_string(verify_raw, "quarantine", "verify")

    return PipelineConfig(
        dependency=_build_target(dependency_raw, "dependency"),
        target=_build_target(target_raw, "target"),
        binaries=tuple(binaries),
        install_base=absolute_path(_string(settings, "install_base")),
        work_dir=work_dir,
        output_dir=absolute_path(output_dir) if output_dir else work_dir,
        package_name=_string(settings, "package_name"),
        platform_os=_platform_name(platform_raw, "os"),
        platform_arch=_platform_name(platform_raw, "arch"),
        macho_library=_string(settings, "macho_library"),
        command_timeout=_timeout(settings, "command_timeout"),
        download_timeout=_number(settings, "download_timeout", minimum=0),
        download_retries=int(_number(settings, "download_retries", minimum=1)),
        lock_timeout=_number(settings, "lock_timeout", minimum=0),
        preflight=_bool(settings, "preflight"),
        verify=VerifyConfig(
            enabled=_bool(verify_raw, "enabled", "verify"),
            strict=_bool(verify_raw, "strict", "verify"),
            quarantine=absolute_path(quarantine) if quarantine else None,
            help_flag=_string(verify_raw, "help_flag", "verify"),
        ),
    )


def _build_target(raw: Dict[str, Any], section: str) -> BuildTarget:
    version = raw.get("version")
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        logger.warning(
            f"{section}.version is a number ({version}); quote it in YAML to keep it exact"
        )
        raw = dict(raw, version=str(version))

    try:
        target = BuildTarget.from_templates(
            name=_string(raw, "name", section),
            version=_string(raw, "version", section),
            url=_string(raw, "url", section),
            archive=_string(raw, "archive", section),
            folder=_string(raw, "folder", section),
            sha256=_optional_string(raw, "sha256", section),
            install_goal=_string(raw, "install_goal", section),
        )
    except (KeyError, IndexError) as e:
        raise ConfigError(f"Unknown placeholder in {section} settings: {e}") from e

    try:
        ArchiveFormat.from_filename(target.archive)
    except ValueError as e:
        raise ConfigError(f"{section}.archive: {e}") from e

    return target


def _key(section: Optional[str], key: str) -> str:
    return f"{section}.{key}" if section else key


def _section(settings: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = settings.get(key)
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _string(raw: Dict[str, Any], key: str, section: Optional[str] = None) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{_key(section, key)}' must be a non-empty string")
    return value


def _optional_string(
    raw: Dict[str, Any], key: str, section: Optional[str] = None
) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"'{_key(section, key)}' must be a string")
    return value or None


def _platform_name(raw: Dict[str, Any], key: str) -> Optional[str]:
    value = _optional_string(raw, key, "platform")
    if value is None:
        return None
    try:
        return validate_platform_name(value, f"'platform.{key}'")
    except ValueError as e:
        raise ConfigError(str(e)) from e


def _bool(raw: Dict[str, Any], key: str, section: Optional[str] = None) -> bool:
    value = raw.get(key)
    if not isinstance(value, bool):
        raise ConfigError(f"'{_key(section, key)}' must be true or false")
    return value


def _number(raw: Dict[str, Any], key: str, minimum: float = 0) -> float:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number")
    if value < minimum:
        raise ConfigError(f"'{key}' must be >= {minimum}")
    return value


def _timeout(raw: Dict[str, Any], key: str) -> Optional[float]:
    """Timeouts accept 0 to mean 'no limit'."""
    value = _number(raw, key, minimum=0)
    return value or None
