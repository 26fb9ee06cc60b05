"""
dfupack - relocatable dfu-util package builder.

Builds libusb and dfu-util from source into a versioned, platform-specific
prefix, rewrites the binaries' library search paths so the tree works from
any location, and packs it into a distributable archive.
"""

__version__ = "0.1.0"
