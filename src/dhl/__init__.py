"""
dhl delivers prebuilt Rust libraries into Cargo's deps directory.

Call ``simply_deliver()`` from a build script: it reads the crate's
Cargo.toml, finds the placeholder library files Cargo produced, and replaces
each one with the declared archive, file or URL.
"""

from typing import Optional

from dhl.depot import ArchiveUnpacker, Depot
from dhl.dhl_config import DeliveryMode, DhlConfig
from dhl.dhl_exceptions import DhlException
from dhl.dhl_logger import DhlLogger
from dhl.dhl_utils import Announcer
from dhl.manifest import Manifest
from dhl.package_models import FileSource, LinkMode, Package, Packages, UrlSource
from dhl.recipients import Recipients

__all__ = [
    "Announcer",
    "ArchiveUnpacker",
    "DeliveryMode",
    "Depot",
    "DhlConfig",
    "DhlException",
    "DhlLogger",
    "FileSource",
    "LinkMode",
    "Manifest",
    "Package",
    "Packages",
    "Recipients",
    "UrlSource",
    "simply_deliver",
]


def simply_deliver(
    config: Optional[DhlConfig] = None,
    logger: Optional[DhlLogger] = None,
    announcer: Optional[Announcer] = None,
) -> None:
    """
    Deliver every package declared in the crate's Cargo.toml.

    Args:
        config: Defaults to DhlConfig.from_env()
        logger: Logger for progress and error messages
        announcer: Receives the `cargo:` directives, defaults to stdout
    """
    config = config or DhlConfig.from_env()
    logger = logger or DhlLogger()

    with Depot(config, logger) as depot:
        manifest = Manifest.produce(config, logger)
        recipients = Recipients.from_config(config, announcer=announcer, logger=logger)
        packages = manifest.inspect()
        depot.deliver(recipients, packages)
