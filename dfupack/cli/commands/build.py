"""
Build command implementation.

Runs the complete pipeline: build libusb and dfu-util, relocate, package
and verify.
"""

import logging

from dfupack.cli.utils import (
    format_success_message,
    load_config_from_args,
    optional_str,
    platform_overrides,
    print_error,
    print_warning,
    safe_print,
)
from dfupack.core.exceptions import DfuPackError
from dfupack.pipeline import Pipeline

logger = logging.getLogger(__name__)


def build_overrides(args) -> dict:
    """
    Translate build options into a configuration layer.

    Options left unset are None, which leaves lower layers untouched.
    """
    overrides = {
        "install_base": optional_str(args.install_base),
        "work_dir": optional_str(args.work_dir),
        "output_dir": optional_str(args.output_dir),
        "dependency": {
            "version": args.dependency_version,
            "url": args.dependency_url,
        },
        "target": {
            "version": args.target_version,
            "url": args.target_url,
        },
        "command_timeout": args.timeout,
        "preflight": True if args.preflight else None,
        "verify": {
            "enabled": False if args.skip_verify else None,
            "strict": True if args.strict_verify else None,
            "quarantine": optional_str(args.quarantine),
        },
    }
    overrides.update(platform_overrides(args))
    return overrides


def run(args) -> int:
    """
    Run the build command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if a stage failed)
    """
    try:
        config = load_config_from_args(args, build_overrides(args))
    except DfuPackError as e:
        print_error("Invalid configuration", str(e))
        return 1

    logger.debug(f"Configuration: {config}")
    result = Pipeline(config).run()

    if not result.success:
        print_error(f"Stage '{result.failed_stage}' failed", str(result.error))
        return 1

    details = {
        "Archive": result.archive,
        "Stages": ", ".join(stage.name for stage in result.stages),
        "Duration": f"{result.duration:.1f}s",
    }
    if result.report is not None:
        details["Verified tree"] = result.report.root
        if not result.report.success:
            print_warning(
                f"Verification failed for: {', '.join(result.report.failed)}"
            )
    else:
        details["Prefix"] = result.prefix

    if not args.quiet:
        safe_print(format_success_message("✅ Package built", details))
    return 0
