"""
Shared utilities for CLI commands.

Provides configuration loading from parsed arguments and consistent
console output across commands.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dfupack.config import DEFAULT_CONFIG_NAME, PipelineConfig, load_config

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Management
# ============================================================================


def resolve_config_file(args) -> Optional[Path]:
    """
    Get the configuration file a command should read.

    An explicit --config path is returned as-is; otherwise ./dfupack.yaml is
    used when it exists.

    Returns:
        Path to the configuration file, or None to use defaults only
    """
    config_file = getattr(args, "config", None)
    if config_file:
        return Path(config_file)

    default_config = Path.cwd() / DEFAULT_CONFIG_NAME
    if default_config.exists():
        return default_config

    logger.debug("No config file found, using defaults")
    return None


def platform_overrides(args) -> Dict[str, Any]:
    """Configuration layer for the --os/--arch options."""
    return {
        "platform": {
            "os": getattr(args, "os", None),
            "arch": getattr(args, "arch", None),
        }
    }


def load_config_from_args(
    args, overrides: Optional[Dict[str, Any]] = None
) -> PipelineConfig:
    """
    Load configuration for a command.

    Args:
        args: Parsed arguments (reads --config)
        overrides: Configuration layer built from command options

    Returns:
        Validated PipelineConfig

    Raises:
        ConfigError: If the configuration is invalid, or --config names a
            missing file
    """
    explicit = bool(getattr(args, "config", None))
    return load_config(
        resolve_config_file(args), overrides=overrides, required=explicit
    )


def optional_str(value) -> Optional[str]:
    """Convert an optional path-like CLI value to str for the config layer."""
    return None if value is None else str(value)


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def format_success_message(
    title: str,
    details: Dict[str, Any],
    next_steps: Optional[list] = None,
    width: int = 70,
) -> str:
    """
    Format a standardized success message.

    Args:
        title: Success message title
        details: Key-value pairs to display
        next_steps: Optional list of next step instructions
        width: Width of message box

    Returns:
        Formatted message string
    """
    lines = []
    lines.append("=" * width)
    lines.append(title)
    lines.append("=" * width)
    lines.append("")

    for key, value in details.items():
        lines.append(f"{key}: {value}")

    if next_steps:
        lines.append("")
        lines.append("Next steps:")
        for step in next_steps:
            lines.append(f"  {step}")

    lines.append("")
    return "\n".join(lines)


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message, falling back to ASCII markers if the console can't
    encode the status symbols.
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = (
            message.replace("✅", "[OK]")
            .replace("✓", "[OK]")
            .replace("❌", "[ERROR]")
            .replace("✗", "[ERROR]")
            .replace("⚠️", "WARNING:")
            .replace("💡", "Hint:")
        )
        print(safe_message, file=file)
