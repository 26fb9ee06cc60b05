"""
Entry point for running the dfupack CLI as a module.

Usage: python -m dfupack.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
