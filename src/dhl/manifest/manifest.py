"""
Manifest loading and inspection.

Reads the ``[package.metadata.dhl]`` section of the crate's Cargo.toml and
turns every declared package into a file or URL source the Depot can deliver.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dhl.dhl_config import DhlConfig
from dhl.dhl_exceptions import (
    ManifestCreationError,
    ManifestInspectionError,
    TemplateRenderError,
    UrlParseError,
)
from dhl.dhl_logger import DhlLogger
from dhl.manifest.template import TemplateEngine, UnknownSubstitution
from dhl.package_models import (
    CargoToml,
    FileSource,
    Package,
    Packages,
    PackageSource,
    TomlDhlPackage,
    TomlDhlSubstitution,
    UninspectedPackage,
    UrlSource,
)

MANIFEST_FILE_NAME = "Cargo.toml"
FILE_SCHEME = "file://"
SCHEME_SEPARATOR = "://"

DEFAULT_SUBSTITUTIONS = {
    "target": TomlDhlSubstitution(value="TARGET", env=True),
    "profile": TomlDhlSubstitution(value="PROFILE", env=True),
}


class Manifest:
    """
    The packages a crate declares for delivery.
    """

    def __init__(
        self,
        packages: Dict[str, UninspectedPackage],
        substitutions: Dict[str, TomlDhlSubstitution],
        manifest_dir: Path,
        config: Optional[DhlConfig] = None,
        logger: Optional[DhlLogger] = None,
    ):
        self.packages = packages
        self.substitutions = substitutions
        self.manifest_dir = manifest_dir
        self.config = config or DhlConfig()
        self.logger = logger or DhlLogger()

    @classmethod
    def produce(cls, config: DhlConfig, logger: Optional[DhlLogger] = None) -> "Manifest":
        """
        Load the Cargo.toml at the configured manifest directory.
        """
        manifest_dir = Path(config.require("manifest_dir"))
        return cls.produce_from_file(
            manifest_dir, manifest_dir / MANIFEST_FILE_NAME, config, logger
        )

    @classmethod
    def produce_from_file(
        cls,
        manifest_dir: Path,
        manifest_file: Path,
        config: Optional[DhlConfig] = None,
        logger: Optional[DhlLogger] = None,
    ) -> "Manifest":
        try:
            contents = Path(manifest_file).read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestCreationError(str(manifest_file), f"I/O error: {e}") from e
        return cls.produce_from_string(
            manifest_dir, contents, config, logger, manifest_file=str(manifest_file)
        )

    @classmethod
    def produce_from_string(
        cls,
        manifest_dir: Path,
        contents: str,
        config: Optional[DhlConfig] = None,
        logger: Optional[DhlLogger] = None,
        manifest_file: str = MANIFEST_FILE_NAME,
    ) -> "Manifest":
        try:
            document = tomllib.loads(contents)
        except tomllib.TOMLDecodeError as e:
            raise ManifestCreationError(manifest_file, f"TOML error: {e}") from e
        try:
            toml = CargoToml.model_validate(document)
        except ValidationError as e:
            raise ManifestCreationError(manifest_file, f"TOML error: {e}") from e
        return cls.produce_from_toml(manifest_dir, toml, config, logger)

    @classmethod
    def produce_from_toml(
        cls,
        manifest_dir: Path,
        toml: CargoToml,
        config: Optional[DhlConfig] = None,
        logger: Optional[DhlLogger] = None,
    ) -> "Manifest":
        dhl = toml.package.metadata.dhl

        packages = {}
        for crate_name, declared in dhl.packages.items():
            if isinstance(declared, TomlDhlPackage):
                source, link = declared.source, declared.link
            else:
                source, link = declared, None
            packages[crate_name] = UninspectedPackage(
                version=toml.dependency_version(crate_name),
                source=source,
                link=link,
            )

        if dhl.substitutions is None:
            substitutions = dict(DEFAULT_SUBSTITUTIONS)
        else:
            substitutions = {
                name: value
                if isinstance(value, TomlDhlSubstitution)
                else TomlDhlSubstitution(value=value)
                for name, value in dhl.substitutions.items()
            }

        return cls(packages, substitutions, Path(manifest_dir), config, logger)

    def inspect(self, environ: Optional[Mapping[str, str]] = None) -> Packages:
        """
        Render every package source and classify it as a file or URL.

        Args:
            environ: Environment for `env` substitutions, defaults to os.environ

        Returns:
            The packages to deliver

        Raises:
            TemplateGenerationError: If substitution values cannot be resolved
            TemplateRenderError: If a source names an unknown substitution
            UrlParseError: If a URL source is malformed
        """
        template = None
        if self.config.enable_templates:
            template = TemplateEngine(
                self.substitutions,
                environ=environ,
                rustc_version=self.config.rustc_version,
            )

        packages = {}
        for crate_name, package in sorted(self.packages.items()):
            source = package.source
            if template is not None:
                try:
                    source = template.render(source, package.version)
                except UnknownSubstitution as e:
                    raise TemplateRenderError(crate_name, package.source, e.name) from e

            packages[crate_name] = Package(
                version=package.version,
                source=self.inspect_source(crate_name, package, source),
            )
            self.logger.log(
                f"Inspected {crate_name}: {packages[crate_name].source}",
                logging.DEBUG,
            )
        return Packages(packages=packages)

    def inspect_source(
        self, crate_name: str, package: UninspectedPackage, source: str
    ) -> PackageSource:
        """
        Classify a rendered source.

        Paths start at the manifest dir; absolute paths just replace it.
        """
        if source.startswith(FILE_SCHEME):
            return FileSource(
                path=self.manifest_dir / source[len(FILE_SCHEME):], link=package.link
            )
        if SCHEME_SEPARATOR in source and self.config.allow_network:
            if package.link is not None:
                raise ManifestInspectionError(
                    crate_name, source, "link modes only apply to file sources"
                )
            try:
                url = httpx.URL(source)
            except httpx.InvalidURL as e:
                raise UrlParseError(crate_name, source, str(e)) from e
            if not url.scheme or not url.host:
                raise UrlParseError(crate_name, source, "missing scheme or host")
            return UrlSource(url=str(url))
        return FileSource(path=self.manifest_dir / source, link=package.link)
