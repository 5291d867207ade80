"""
This file contains various utility functions like I/O operations, build-script
output and toolchain queries.
"""

import io
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Mapping, Optional, TextIO, Union

PathLike = Union[str, os.PathLike]


class Announcer:
    """
    Writes `cargo:` directives for the host build system.

    Cargo reads these from a build script's stdout; anything else printed
    there is ignored.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def announce(self, key: str, value: str) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        print(f"cargo:{key}={value}", file=stream, flush=True)

    def rerun_if_changed(self, path: PathLike) -> None:
        self.announce("rerun-if-changed", str(path))

    def warning(self, message: str) -> None:
        self.announce("warning", message)


class IteratorReader(io.RawIOBase):
    """
    Read-only file object over an iterator of byte chunks.

    Lets streamed response bodies be fed to readers that expect `read()`.
    """

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    @classmethod
    def buffered(cls, chunks: Iterable[bytes]) -> io.BufferedReader:
        return io.BufferedReader(cls(chunks))


class FileUtils:
    """
    Utility functions for placing files at a destination
    """

    @staticmethod
    def remove_existing(path: Path) -> None:
        """
        Remove a file or link at `path` so it can be replaced rather than
        written through.
        """
        if path.is_symlink() or path.is_file():
            path.unlink()

    @staticmethod
    def write_stream(source: BinaryIO, destination: Path) -> None:
        FileUtils.remove_existing(destination)
        with open(destination, "wb") as f:
            shutil.copyfileobj(source, f)

    @staticmethod
    def write_chunks(chunks: Iterable[bytes], destination: Path) -> None:
        FileUtils.remove_existing(destination)
        with open(destination, "wb") as f:
            for chunk in chunks:
                f.write(chunk)

    @staticmethod
    def copy_file(source: Path, destination: Path) -> None:
        with open(source, "rb") as src:
            FileUtils.write_stream(src, destination)

    @staticmethod
    def symlink_file(source: Path, destination: Path) -> None:
        os.stat(source)
        FileUtils.remove_existing(destination)
        os.symlink(os.path.abspath(source), destination)

    @staticmethod
    def hardlink_file(source: Path, destination: Path) -> None:
        os.stat(source)
        FileUtils.remove_existing(destination)
        os.link(source, destination)


class RustcUtils:
    """
    Queries about the Rust toolchain running the build.
    """

    @staticmethod
    def short_version(environ: Optional[Mapping[str, str]] = None) -> str:
        """
        Return the first line of `rustc --version`, e.g.
        `rustc 1.70.0 (90c541806 2023-05-31)`.

        Uses the compiler Cargo exposes through `RUSTC` when set.
        """
        if environ is None:
            environ = os.environ
        rustc = environ.get("RUSTC", "rustc")
        result = subprocess.run(
            [rustc, "--version"], capture_output=True, text=True, check=True
        )
        return result.stdout.strip().splitlines()[0]
