"""
Package depot.

This package handles:
1. Resolving each package's recipient
2. Reading sources from local files or URLs
3. Unpacking archives or placing raw files onto recipients
"""

from .depot import Depot
from .unpacker import ArchiveUnpacker

__all__ = ["Depot", "ArchiveUnpacker"]
