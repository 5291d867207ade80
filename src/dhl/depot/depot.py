"""
Depot implementation.

Delivers each declared package onto its recipient, from a local file or a URL,
either by unpacking an archive or by placing the source as is.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import httpx

from dhl.dhl_config import DeliveryMode, DhlConfig
from dhl.dhl_exceptions import (
    FileTransferError,
    HttpTransferError,
    MissingLibraryFile,
    NetworkDisabledError,
    SharedClientError,
)
from dhl.dhl_logger import DhlLogger
from dhl.dhl_utils import FileUtils, IteratorReader
from dhl.depot.unpacker import ArchiveUnpacker
from dhl.package_models import FileSource, LinkMode, Package, Packages, UrlSource
from dhl.recipients import Recipients

ClientFactory = Callable[[], httpx.Client]


class Depot:
    """
    Delivers packages to recipients.

    Deliveries run one package at a time and stop at the first failure.
    Packages delivered before the failure stay delivered.
    """

    def __init__(
        self,
        config: Optional[DhlConfig] = None,
        logger: Optional[DhlLogger] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Initialize the depot.

        Args:
            config: Delivery mode, network capability and export member name
            logger: Logger for progress and error messages
            client_factory: Builds the HTTP client used for URL sources; it is
                called at most once per Depot
        """
        self.config = config or DhlConfig()
        self.logger = logger or DhlLogger()
        self.client_factory = client_factory or httpx.Client
        self.unpacker = ArchiveUnpacker(self.config.export_name, self.logger)
        self._http_client: Optional[httpx.Client] = None
        self._http_client_error: Optional[Exception] = None

    def __enter__(self) -> "Depot":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def deliver(self, recipients: Recipients, packages: Packages) -> None:
        """
        Deliver every package onto its recipient.

        Args:
            recipients: Resolves crate names to placeholder library files
            packages: The packages to deliver; they are consumed

        Raises:
            MissingLibraryFile: If a crate has no placeholder library file
            TransferError: If reading a source or writing a recipient fails
            ArchiveError: If an archive cannot be decoded
            SharedClientError: If the HTTP client could not be constructed
        """
        self.logger.log(
            f"Delivering {len(packages)} packages ({self.config.delivery_mode.value}): "
            f"{', '.join(packages.names())}",
            logging.INFO,
        )
        for crate_name, package in packages.drain():
            destination = recipients.get(crate_name)
            if destination is None:
                self.logger.log(
                    f"No library file to deliver {crate_name} onto in {recipients.deps_dir}",
                    logging.ERROR,
                )
                raise MissingLibraryFile(crate_name)

            self.deliver_package(crate_name, package, destination)

    def deliver_package(self, crate_name: str, package: Package, destination: Path) -> None:
        """
        Deliver a single package onto an already resolved destination.
        """
        source = package.source
        self.logger.log(
            f"Delivering {crate_name} from {source} to {destination}",
            logging.INFO,
        )

        if isinstance(source, FileSource):
            if self.config.delivery_mode == DeliveryMode.RAW:
                self._place_file(crate_name, source, destination)
            else:
                self._unpack_file(crate_name, source, destination)
        elif isinstance(source, UrlSource):
            self._deliver_url(crate_name, source, destination)
        else:
            raise TypeError(f"Unknown package source {source!r}")

    def _unpack_file(self, crate_name: str, source: FileSource, destination: Path) -> None:
        try:
            stream = open(source.path, "rb")
        except OSError as e:
            raise FileTransferError(
                crate_name, str(source.path), str(destination), str(e)
            ) from e
        with stream:
            self.unpacker.unpack(crate_name, stream, destination)

    def _place_file(self, crate_name: str, source: FileSource, destination: Path) -> None:
        try:
            if source.link == LinkMode.SOFT:
                FileUtils.symlink_file(source.path, destination)
            elif source.link == LinkMode.HARD:
                FileUtils.hardlink_file(source.path, destination)
            else:
                FileUtils.copy_file(source.path, destination)
        except OSError as e:
            raise FileTransferError(
                crate_name, str(source.path), str(destination), str(e)
            ) from e

    def _deliver_url(self, crate_name: str, source: UrlSource, destination: Path) -> None:
        client = self.http_client(crate_name, source, destination)
        try:
            with client.stream("GET", source.url) as response:
                response.raise_for_status()
                if self.config.delivery_mode == DeliveryMode.RAW:
                    FileUtils.write_chunks(response.iter_bytes(), destination)
                else:
                    self.unpacker.unpack(
                        crate_name,
                        IteratorReader.buffered(response.iter_bytes()),
                        destination,
                    )
        except (httpx.HTTPError, OSError) as e:
            raise HttpTransferError(
                crate_name, source.url, str(destination), str(e)
            ) from e

    def http_client(
        self, crate_name: str, source: UrlSource, destination: Path
    ) -> httpx.Client:
        """
        The HTTP client shared by all URL deliveries of this Depot.

        The client is constructed on first use. If construction fails, the
        failure is kept and every URL delivery raises a SharedClientError
        chained to it.
        """
        if not self.config.allow_network:
            raise NetworkDisabledError(crate_name, source.url, str(destination))

        if self._http_client is None and self._http_client_error is None:
            try:
                self._http_client = self.client_factory()
            except Exception as e:
                self.logger.log(f"Failed to create HTTP client: {e}", logging.ERROR)
                self._http_client_error = e

        if self._http_client_error is not None:
            raise SharedClientError(
                crate_name, self._http_client_error
            ) from self._http_client_error
        return self._http_client
