"""
dfupack CLI argument parser.

This module implements the command-line interface for dfupack using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dfupack import __version__

logger = logging.getLogger(__name__)


class CLI:
    """dfupack command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="dfupack",
            description="dfupack - Build relocatable dfu-util packages",
            epilog='Use "dfupack COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"dfupack {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./dfupack.yaml if present)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_build_command(subparsers)
        self._add_check_command(subparsers)
        self._add_verify_command(subparsers)

        return parser

    def _add_platform_arguments(self, parser):
        parser.add_argument(
            "--os",
            metavar="NAME",
            help="Target OS name as printed by 'uname -s' (default: host)",
        )
        parser.add_argument(
            "--arch",
            metavar="ARCH",
            help="Target architecture as printed by 'uname -m' (default: host)",
        )

    def _add_build_command(self, subparsers):
        """Add 'build' subcommand."""
        parser = subparsers.add_parser(
            "build",
            help="Build, relocate and package dfu-util",
            description=(
                "Build libusb and dfu-util into a platform-specific prefix, make the "
                "binaries relocatable and pack them into a .tar.gz archive"
            ),
        )
        parser.add_argument(
            "--dependency-version",
            metavar="VERSION",
            help="libusb version to build (default: 1.0.22)",
        )
        parser.add_argument(
            "--dependency-url",
            metavar="URL",
            help="libusb source archive URL",
        )
        parser.add_argument(
            "--target-version",
            metavar="VERSION",
            help="dfu-util version to build (default: 0.11)",
        )
        parser.add_argument(
            "--target-url",
            metavar="URL",
            help="dfu-util source archive URL",
        )
        parser.add_argument(
            "--install-base",
            metavar="DIR",
            help="Directory receiving the install prefix (default: /tmp)",
        )
        parser.add_argument(
            "--work-dir",
            metavar="DIR",
            help="Directory for downloads and extracted sources (default: .)",
        )
        parser.add_argument(
            "--output-dir",
            metavar="DIR",
            help="Directory for the package archive (default: work directory)",
        )
        self._add_platform_arguments(parser)
        parser.add_argument(
            "--skip-verify",
            action="store_true",
            help="Do not verify the relocated binaries",
        )
        parser.add_argument(
            "--strict-verify",
            action="store_true",
            help="Fail the build if verification fails",
        )
        parser.add_argument(
            "--quarantine",
            metavar="DIR",
            help="Location the install tree is moved to for verification "
            "(default: new temporary directory)",
        )
        parser.add_argument(
            "--preflight",
            action="store_true",
            help="Check for required host tools before building",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            metavar="SECONDS",
            help="Timeout for each external command, 0 for none (default: 1800)",
        )

    def _add_check_command(self, subparsers):
        """Add 'check' subcommand."""
        parser = subparsers.add_parser(
            "check",
            help="Check for required host tools",
            description="Check that the tools needed to build and relocate are installed",
        )
        self._add_platform_arguments(parser)

    def _add_verify_command(self, subparsers):
        """Add 'verify' subcommand."""
        parser = subparsers.add_parser(
            "verify",
            help="Verify a packaged archive",
            description=(
                "Extract a package archive to a temporary directory and run each "
                "binary from there"
            ),
        )
        parser.add_argument("archive", type=Path, help="Package archive (.tar.gz)")
        parser.add_argument(
            "--binary",
            action="append",
            metavar="PATH",
            help="Binary to check, relative to the package root "
            "(can be used multiple times; default: configured binaries)",
        )
        self._add_platform_arguments(parser)

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "build": "dfupack.cli.commands.build",
            "check": "dfupack.cli.commands.check",
            "verify": "dfupack.cli.commands.verify",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
