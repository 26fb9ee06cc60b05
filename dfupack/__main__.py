"""
Entry point for running dfupack as a module.

Usage: python -m dfupack [command] [options]
"""

from dfupack.cli.parser import main

if __name__ == "__main__":
    main()
