"""
Configuration parameters for dhl.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from dhl.dhl_exceptions import InvalidDeliveryMode, MissingConfigField

DEFAULT_EXPORT_NAME = "export.rlib"

_FALSE_VALUES = ("0", "false", "no", "off", "")


class DeliveryMode(str, Enum):
    """
    How a package source is placed onto its recipient.
    """

    UNPACK = "unpack"
    """Decode a .tar.gz and redistribute its members next to the placeholder."""
    RAW = "raw"
    """Copy or link the source file as is; URLs are written verbatim."""


def _flag(value: str) -> bool:
    return value.strip().lower() not in _FALSE_VALUES


@dataclass
class DhlConfig:
    """
    Configuration parameters
    """

    out_dir: Optional[str] = None
    manifest_dir: Optional[str] = None
    delivery_mode: DeliveryMode = DeliveryMode.UNPACK
    allow_network: bool = True
    enable_templates: bool = True
    rustc_version: bool = False
    export_name: str = DEFAULT_EXPORT_NAME

    def __post_init__(self):
        if not isinstance(self.delivery_mode, DeliveryMode):
            try:
                self.delivery_mode = DeliveryMode(str(self.delivery_mode).lower())
            except ValueError:
                raise InvalidDeliveryMode(str(self.delivery_mode)) from None

    @classmethod
    def from_dict(cls, env: dict):
        """
        Create a DhlConfig instance from a dictionary, ignoring unknown keys.
        """
        import inspect

        return cls(
            **{k: v for k, v in env.items() if k in inspect.signature(cls).parameters}
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DhlConfig":
        """
        Create a DhlConfig from the variables Cargo sets for build scripts.

        Args:
            environ: Environment mapping, defaults to os.environ

        Returns:
            The populated configuration

        Raises:
            MissingConfigField: If OUT_DIR or CARGO_MANIFEST_DIR is undefined
        """
        if environ is None:
            environ = os.environ

        out_dir = environ.get("OUT_DIR")
        if out_dir is None:
            raise MissingConfigField("out_dir", "OUT_DIR")
        manifest_dir = environ.get("CARGO_MANIFEST_DIR")
        if manifest_dir is None:
            raise MissingConfigField("manifest_dir", "CARGO_MANIFEST_DIR")

        values = {"out_dir": out_dir, "manifest_dir": manifest_dir}
        if "DHL_DELIVERY_MODE" in environ:
            values["delivery_mode"] = environ["DHL_DELIVERY_MODE"]
        if "DHL_ALLOW_NETWORK" in environ:
            values["allow_network"] = _flag(environ["DHL_ALLOW_NETWORK"])
        if "DHL_ENABLE_TEMPLATES" in environ:
            values["enable_templates"] = _flag(environ["DHL_ENABLE_TEMPLATES"])
        if "DHL_RUSTC_VERSION" in environ:
            values["rustc_version"] = _flag(environ["DHL_RUSTC_VERSION"])
        return cls(**values)

    def require(self, field_name: str) -> str:
        """
        Return a path field, failing with the field's name when it is unset.
        """
        value = getattr(self, field_name)
        if value is None or value == "":
            raise MissingConfigField(field_name)
        return value
