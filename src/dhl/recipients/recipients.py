"""
Recipient resolution.

Indexes the placeholder library files Cargo already produced in the deps
directory and resolves crate names to the exact file each delivery must
replace.
"""

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from dhl.dhl_config import DhlConfig
from dhl.dhl_exceptions import DepsDirError, InvalidOutDir
from dhl.dhl_logger import DhlLogger
from dhl.dhl_utils import Announcer

LIBRARY_PREFIX = "lib"
LIBRARY_EXTENSION = ".rlib"
HASH_SEPARATOR = "-"
DEPS_DIR_NAME = "deps"


def normalize_name(name: str) -> str:
    """Crate names resolve the same with hyphens or underscores."""
    return name.replace("-", "_")


class WatchState:
    """Enumeration of watch states of a library file."""

    UNWATCHED = "unwatched"
    WATCHED = "watched"


@dataclass(frozen=True)
class WatchEvent:
    """A library file was resolved for the first time and should be watched."""

    name: str
    path: Path


@dataclass(frozen=True)
class Resolution:
    destination: Path
    event: Optional[WatchEvent] = None


class Address:
    """
    The info Recipients stores on each library file.
    """

    def __init__(self, file_name: str, last_modified: Optional[int]):
        """
        Initialize an address.

        Args:
            file_name: Name of the library file inside the deps directory
            last_modified: Modification time in nanoseconds, None if unknown
        """
        self.file_name = file_name
        self.last_modified = last_modified
        self.state = WatchState.UNWATCHED
        self._lock = threading.Lock()

    @classmethod
    def from_entry(cls, entry: os.DirEntry) -> "Address":
        try:
            last_modified = entry.stat().st_mtime_ns
        except OSError:
            last_modified = None
        return cls(entry.name, last_modified)

    def supersedes(self, other: "Address") -> bool:
        """
        Whether this address replaces `other` for the same name.

        An unknown modification time on either side counts as newer.
        """
        if self.last_modified is None or other.last_modified is None:
            return True
        return self.last_modified > other.last_modified

    def watch(self) -> bool:
        """
        Marks the library file as watched, returns True if this was the first
        watch.
        """
        with self._lock:
            if self.state == WatchState.WATCHED:
                return False
            self.state = WatchState.WATCHED
            return True

    def is_watched(self) -> bool:
        return self.state == WatchState.WATCHED

    def __repr__(self) -> str:
        return f"Address(file={self.file_name}, state={self.state})"


class Recipients:
    """
    Resolves crate names to the placeholder library files they replace.

    The deps directory is scanned once on construction; files created later
    are only seen by a new Recipients.
    """

    def __init__(
        self,
        deps_dir: Path,
        relative_deps_dir: Optional[Path],
        addresses: Dict[str, Address],
        announcer: Optional[Announcer] = None,
        logger: Optional[DhlLogger] = None,
    ):
        self.deps_dir = deps_dir
        self.relative_deps_dir = relative_deps_dir
        self.addresses = addresses
        self.announcer = announcer or Announcer()
        self.logger = logger or DhlLogger()

    @classmethod
    def from_config(
        cls,
        config: DhlConfig,
        announcer: Optional[Announcer] = None,
        logger: Optional[DhlLogger] = None,
    ) -> "Recipients":
        return cls.with_env(
            config.require("out_dir"),
            config.require("manifest_dir"),
            announcer=announcer,
            logger=logger,
        )

    @classmethod
    def with_env(
        cls,
        out_dir: Union[str, os.PathLike],
        manifest_dir: Union[str, os.PathLike],
        announcer: Optional[Announcer] = None,
        logger: Optional[DhlLogger] = None,
    ) -> "Recipients":
        """
        Build Recipients from the build script's OUT_DIR and the crate root.
        """
        deps_dir = cls.get_deps_dir(out_dir)
        return cls.with_paths(deps_dir, manifest_dir, announcer=announcer, logger=logger)

    @staticmethod
    def get_deps_dir(out_dir: Union[str, os.PathLike]) -> Path:
        """
        Find the deps directory from a build script's OUT_DIR.

        OUT_DIR is `<target>/<profile>/build/<pkg>-<hash>/out`, so the deps
        directory is its third ancestor joined with `deps`.

        Raises:
            InvalidOutDir: If OUT_DIR has fewer than three ancestors
        """
        parents = Path(out_dir).parents
        if len(parents) < 3:
            raise InvalidOutDir(str(out_dir))
        return parents[2] / DEPS_DIR_NAME

    @staticmethod
    def parse_library_name(file_name: str) -> Optional[str]:
        """
        Extract NAME from `lib<NAME>-<HASH>.rlib`, or None for other files.
        """
        try:
            file_name.encode("utf-8")
        except UnicodeEncodeError:
            return None
        if not file_name.startswith(LIBRARY_PREFIX):
            return None
        if not file_name.endswith(LIBRARY_EXTENSION):
            return None
        stem = file_name[len(LIBRARY_PREFIX):]
        if HASH_SEPARATOR not in stem:
            return None
        return stem.split(HASH_SEPARATOR, 1)[0]

    @classmethod
    def with_paths(
        cls,
        deps_dir: Union[str, os.PathLike],
        manifest_dir: Union[str, os.PathLike],
        announcer: Optional[Announcer] = None,
        logger: Optional[DhlLogger] = None,
    ) -> "Recipients":
        """
        Scan `deps_dir` and index its library files by normalized name.

        Args:
            deps_dir: Directory holding Cargo's compiled dependencies
            manifest_dir: Root of the crate running the build script
            announcer: Receives duplicate-entry warnings and watch directives
            logger: Logger for diagnostics

        Returns:
            The populated Recipients

        Raises:
            DepsDirError: If the deps directory cannot be listed
        """
        deps_dir = Path(deps_dir)
        announcer = announcer or Announcer()
        logger = logger or DhlLogger()

        try:
            relative_deps_dir: Optional[Path] = deps_dir.relative_to(manifest_dir)
        except ValueError:
            relative_deps_dir = None

        try:
            with os.scandir(deps_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise DepsDirError(str(deps_dir)) from e

        addresses: Dict[str, Address] = {}
        for entry in entries:
            name = cls.parse_library_name(entry.name)
            if name is None:
                continue
            if entry.is_dir():
                continue

            address = Address.from_entry(entry)
            existing = addresses.get(name)
            if existing is None:
                addresses[name] = address
            elif address.supersedes(existing):
                message = (
                    f"duplicate entry for {name}: '{existing.file_name}' "
                    f"replaced with '{address.file_name}'"
                )
                announcer.warning(message)
                logger.log(message, logging.WARNING)
                addresses[name] = address
            else:
                message = f"duplicate entry for {name}: '{address.file_name}' ignored"
                announcer.warning(message)
                logger.log(message, logging.WARNING)

        logger.log(
            f"Found {len(addresses)} library files in {deps_dir}",
            logging.DEBUG,
        )
        return cls(deps_dir, relative_deps_dir, addresses, announcer, logger)

    def resolve(self, name: str) -> Optional[Resolution]:
        """
        Resolve a crate name without announcing anything.

        Args:
            name: Crate name, with hyphens or underscores

        Returns:
            The destination and, on the first resolution of its library file,
            the watch event to announce. None if no library file matches.
        """
        address = self.addresses.get(normalize_name(name))
        if address is None:
            return None

        destination = self.deps_dir / address.file_name
        event = None
        if address.watch():
            if self.relative_deps_dir is not None:
                watch_path = self.relative_deps_dir / address.file_name
            else:
                watch_path = destination
            event = WatchEvent(name=normalize_name(name), path=watch_path)
        return Resolution(destination=destination, event=event)

    def get(self, name: str) -> Optional[Path]:
        """
        Resolve a crate name to its recipient, making sure Cargo watches the
        library file for changes.
        """
        resolution = self.resolve(name)
        if resolution is None:
            return None
        if resolution.event is not None:
            self.announcer.rerun_if_changed(resolution.event.path)
        return resolution.destination

    def names(self) -> List[str]:
        return sorted(self.addresses)

    def __contains__(self, name: str) -> bool:
        return normalize_name(name) in self.addresses

    def __len__(self) -> int:
        return len(self.addresses)
