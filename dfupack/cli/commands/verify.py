"""
Verify command implementation.

Extracts a package archive into a temporary directory and exercises its
binaries from there.
"""

import logging

from dfupack.cli.utils import (
    load_config_from_args,
    platform_overrides,
    print_error,
    safe_print,
)
from dfupack.core.exceptions import DfuPackError
from dfupack.verifier import Verifier, verify_archive

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the verify command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 if every binary passed, 1 otherwise)
    """
    if not args.archive.is_file():
        print_error(f"Archive not found: {args.archive}")
        return 1

    try:
        config = load_config_from_args(args, platform_overrides(args))
    except DfuPackError as e:
        print_error("Invalid configuration", str(e))
        return 1

    binaries = args.binary or list(config.binaries)
    verifier = Verifier(
        config.platform(),
        timeout=config.command_timeout,
        help_flag=config.verify.help_flag,
    )

    try:
        report = verify_archive(args.archive, binaries, verifier)
    except DfuPackError as e:
        print_error(f"Cannot verify {args.archive}", str(e))
        return 1

    for outcome in report.outcomes:
        marker = "✅" if outcome.passed else "❌"
        if not outcome.passed or not args.quiet:
            safe_print(f"{marker} {outcome.binary}: {outcome.message}")

    if report.success:
        if not args.quiet:
            safe_print(f"\n✅ {args.archive.name} is relocatable")
        return 0

    print_error(f"Verification failed for: {', '.join(report.failed)}")
    return 1
