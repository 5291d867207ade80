"""
Package models for dhl.

This package provides Pydantic data models for the ``[package.metadata.dhl]``
section of Cargo.toml and for the inspected packages handed to the Depot.
"""

from .package_models import (
    CargoToml,
    FileSource,
    LinkMode,
    Package,
    Packages,
    PackageSource,
    TomlDependency,
    TomlDhl,
    TomlDhlPackage,
    TomlDhlSubstitution,
    UninspectedPackage,
    UrlSource,
)

__all__ = [
    # Cargo.toml
    "CargoToml",
    "TomlDependency",
    "TomlDhl",
    "TomlDhlPackage",
    "TomlDhlSubstitution",
    # Packages
    "UninspectedPackage",
    "LinkMode",
    "FileSource",
    "UrlSource",
    "PackageSource",
    "Package",
    "Packages",
]
