"""
Archive unpacker.

Decodes a gzip-compressed tar stream and redistributes its members into the
deps directory: the export member replaces the placeholder library file, every
other member lands next to it under its own file name.
"""

import gzip
import logging
import tarfile
import zlib
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List, Optional

from dhl.dhl_config import DEFAULT_EXPORT_NAME
from dhl.dhl_exceptions import GzipError, TarEntryTypeError, TarError, TarFileNameError
from dhl.dhl_logger import DhlLogger
from dhl.dhl_utils import FileUtils

_DECODE_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)


class ArchiveUnpacker:
    """
    Unpacks a .tar.gz stream onto a recipient.
    """

    def __init__(
        self,
        export_name: str = DEFAULT_EXPORT_NAME,
        logger: Optional[DhlLogger] = None,
    ):
        """
        Initialize the unpacker.

        Args:
            export_name: File name of the member that replaces the placeholder
            logger: Logger for progress messages
        """
        self.export_name = export_name
        self.logger = logger or DhlLogger()

    def unpack(self, crate_name: str, stream: BinaryIO, destination: Path) -> List[Path]:
        """
        Unpack an archive stream for one crate.

        Args:
            crate_name: Crate the archive belongs to, used in errors
            stream: Readable binary stream of the .tar.gz
            destination: The placeholder library file the export member replaces

        Returns:
            The paths written, in archive order

        Raises:
            GzipError: If the stream is not gzip data
            TarError: If the tar container is malformed or a member fails to extract
            TarFileNameError: If a member path has no file name
            TarEntryTypeError: If a member is neither a file nor a directory
        """
        try:
            decoder = gzip.GzipFile(fileobj=stream, mode="rb")
            head = decoder.peek(1)
        except (OSError, EOFError, zlib.error) as e:
            raise GzipError(crate_name, str(e)) from e
        if not head:
            raise GzipError(crate_name, "empty stream")

        try:
            archive = tarfile.open(fileobj=decoder, mode="r|")
        except _DECODE_ERRORS as e:
            raise TarError(crate_name, str(e)) from e

        written: List[Path] = []
        with archive:
            members = iter(archive)
            while True:
                try:
                    member = next(members)
                except StopIteration:
                    break
                except _DECODE_ERRORS as e:
                    raise TarError(crate_name, str(e)) from e

                target = self.target_for(crate_name, member.name, destination)
                self._extract(crate_name, archive, member, target)
                written.append(target)

        return written

    def target_for(self, crate_name: str, member_name: str, destination: Path) -> Path:
        """
        Where an archive member lands.

        Nested directories inside the archive are flattened away.
        """
        file_name = PurePosixPath(member_name).name
        if file_name in ("", ".", ".."):
            raise TarFileNameError(crate_name, member_name)
        if file_name == self.export_name:
            return destination
        return destination.with_name(file_name)

    def _extract(
        self,
        crate_name: str,
        archive: tarfile.TarFile,
        member: tarfile.TarInfo,
        target: Path,
    ) -> None:
        if not (member.isfile() or member.isdir()):
            raise TarEntryTypeError(crate_name, member.name)

        self.logger.log(
            f"Extracting '{member.name}' of {crate_name} to {target}",
            logging.DEBUG,
        )
        try:
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                return
            source = archive.extractfile(member)
            FileUtils.write_stream(source, target)
        except _DECODE_ERRORS as e:
            raise TarError(crate_name, str(e)) from e
