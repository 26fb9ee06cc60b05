"""
Check command implementation.

Reports which of the external tools the pipeline needs are installed.
"""

import logging

from dfupack.cli.utils import (
    load_config_from_args,
    platform_overrides,
    print_error,
    safe_print,
)
from dfupack.core.exceptions import DfuPackError
from dfupack.preflight import PreflightChecker

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the check command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 if all required tools are present, 1 otherwise)
    """
    quiet = args.quiet

    try:
        config = load_config_from_args(args, platform_overrides(args))
    except DfuPackError as e:
        print_error("Invalid configuration", str(e))
        return 1

    platform = config.platform()
    if not quiet:
        safe_print(f"Checking host tools for {platform.slug}...\n")

    results = PreflightChecker(platform).run_all_checks()

    failed = 0
    warnings = 0
    for result in results:
        if result.passed:
            if not quiet:
                safe_print(f"✅ {result.name}: {result.message}")
            continue

        if result.required:
            failed += 1
            safe_print(f"❌ {result.name}: {result.message}")
        else:
            warnings += 1
            if not quiet:
                safe_print(f"⚠️  {result.name}: {result.message}")

        if result.fix_command and not quiet:
            safe_print(f"   💡 Fix: {result.fix_command}")

    if not quiet:
        passed = len(results) - failed - warnings
        safe_print(f"\nSummary: {passed} passed, {failed} failed, {warnings} warnings")

    if failed:
        logger.error(f"Host check failed: {failed} required tool(s) missing")
        return 1
    return 0
