"""
Recipient resolution.

This package handles:
1. Finding Cargo's deps directory from OUT_DIR
2. Indexing placeholder library files by normalized crate name
3. Resolving duplicate library files by modification time
4. Tracking which library files Cargo has been told to watch
"""

from .recipients import (
    Address,
    Recipients,
    Resolution,
    WatchEvent,
    WatchState,
    normalize_name,
)

__all__ = [
    "Address",
    "Recipients",
    "Resolution",
    "WatchEvent",
    "WatchState",
    "normalize_name",
]
