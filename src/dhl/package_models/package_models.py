"""
Pydantic data models for the packages declared in a crate's Cargo.toml.

Two groups of models live here:

1. The raw TOML layout of ``[package.metadata.dhl]`` and ``[dependencies]``,
   validated straight from the parsed document.
2. The inspected ``Package``/``Packages`` records that the Depot consumes,
   with every source already classified as a file or a URL.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from dhl.dhl_exceptions import PackagesConsumedError


class LinkMode(str, Enum):
    """How a raw file source is linked onto its recipient."""

    SOFT = "soft"
    HARD = "hard"


# ============================================================================
# Cargo.toml layout
# ============================================================================


class TomlDependency(BaseModel):
    """
    A table entry under ``[dependencies]``.

    Only the version is used; everything else Cargo understands is kept as
    extra data.
    """

    version: Optional[str] = None
    path: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class TomlDhlPackage(BaseModel):
    """A package declared as a table: ``{ source = "...", link = "soft" }``."""

    source: str
    link: Optional[LinkMode] = None

    model_config = ConfigDict(extra="forbid")


class TomlDhlSubstitution(BaseModel):
    """
    A substitution declared as a table.

    With ``env = true`` the value names an environment variable to read.
    """

    value: str
    env: bool = False

    model_config = ConfigDict(extra="forbid")


class TomlDhl(BaseModel):
    packages: Dict[str, Union[str, TomlDhlPackage]] = Field(default_factory=dict)
    substitutions: Optional[Dict[str, Union[str, TomlDhlSubstitution]]] = None


class TomlPackageMetadata(BaseModel):
    dhl: TomlDhl

    model_config = ConfigDict(extra="allow")


class TomlPackage(BaseModel):
    metadata: TomlPackageMetadata

    model_config = ConfigDict(extra="allow")


class CargoToml(BaseModel):
    """
    The parts of Cargo.toml dhl reads.

    Structure:
    {
      "package": {"metadata": {"dhl": {"packages": {...}, "substitutions": {...}}}},
      "dependencies": {"name": "1.0" | {"version": "1.0", ...}}
    }
    """

    package: TomlPackage
    dependencies: Dict[str, Union[str, TomlDependency]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    def dependency_version(self, crate_name: str) -> Optional[str]:
        """
        Version declared for a crate in ``[dependencies]``.

        Only the table form carries a version here; a bare version string is
        the registry requirement of a crate dhl does not manage.
        """
        dependency = self.dependencies.get(crate_name)
        if isinstance(dependency, TomlDependency):
            return dependency.version
        return None


# ============================================================================
# Inspected packages
# ============================================================================


class UninspectedPackage(BaseModel):
    """A package as declared, before templates are rendered."""

    version: Optional[str] = None
    source: str
    link: Optional[LinkMode] = None

    model_config = ConfigDict(frozen=True)


class FileSource(BaseModel):
    """A source on the local filesystem."""

    kind: Literal["file"] = "file"
    path: Path
    link: Optional[LinkMode] = None

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return str(self.path)


class UrlSource(BaseModel):
    """A source fetched with a single HTTP GET."""

    kind: Literal["url"] = "url"
    url: str

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.url


PackageSource = Union[FileSource, UrlSource]


class Package(BaseModel):
    version: Optional[str] = None
    source: PackageSource = Field(..., discriminator="kind")

    model_config = ConfigDict(frozen=True)


class Packages(BaseModel):
    """
    The packages to deliver, keyed by crate name.

    A Packages collection is consumed by exactly one delivery.
    """

    packages: Dict[str, Package] = Field(default_factory=dict)
    _drained: bool = PrivateAttr(default=False)

    def __len__(self) -> int:
        return len(self.packages)

    def names(self) -> List[str]:
        return sorted(self.packages)

    @property
    def drained(self) -> bool:
        return self._drained

    def drain(self) -> Iterator[Tuple[str, Package]]:
        """
        Hand out every package once.

        Raises:
            PackagesConsumedError: If the packages were already drained
        """
        if self._drained:
            raise PackagesConsumedError()
        self._drained = True
        return iter(list(self.packages.items()))
