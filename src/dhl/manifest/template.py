"""
Template rendering for package sources.

Sources may reference substitutions as ``{{name}}``. ``{{version}}`` is the
package's declared version unless a substitution named ``version`` exists.
"""

import os
import re
import subprocess
from typing import Dict, Mapping, Optional

from dhl.dhl_exceptions import TemplateGenerationError
from dhl.dhl_utils import RustcUtils
from dhl.package_models import TomlDhlSubstitution

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_\-]*)\s*\}\}")


class UnknownSubstitution(KeyError):
    """Raised by TemplateEngine.render for a name with no value."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name


class TemplateEngine:
    def __init__(
        self,
        substitutions: Mapping[str, TomlDhlSubstitution],
        environ: Optional[Mapping[str, str]] = None,
        rustc_version: bool = False,
    ):
        """
        Resolve all substitution values up front.

        Args:
            substitutions: Declared substitutions; `env` ones name a variable
            environ: Environment mapping, defaults to os.environ
            rustc_version: Also provide `rustc_short_version`

        Raises:
            TemplateGenerationError: If a variable is undefined or rustc fails
        """
        if environ is None:
            environ = os.environ

        self.substitutions: Dict[str, str] = {}
        if rustc_version:
            try:
                self.substitutions["rustc_short_version"] = RustcUtils.short_version(
                    environ
                )
            except (OSError, subprocess.SubprocessError, IndexError) as e:
                raise TemplateGenerationError(
                    f"Unable to determine rustc version: {e}"
                ) from e

        for name, substitution in substitutions.items():
            if substitution.env:
                value = environ.get(substitution.value)
                if value is None:
                    raise TemplateGenerationError(
                        f"Unable to read environment variable '{substitution.value}' "
                        f"for substitution '{name}'"
                    )
                self.substitutions[name] = value
            else:
                self.substitutions[name] = substitution.value

    def render(self, template: str, version: Optional[str] = None) -> str:
        """
        Render a source template.

        Raises:
            UnknownSubstitution: If the template names an unknown substitution
        """
        data = dict(self.substitutions)
        if version is not None and "version" not in data:
            data["version"] = version

        def replace(match: "re.Match") -> str:
            name = match.group(1)
            if name not in data:
                raise UnknownSubstitution(name)
            return data[name]

        return _PLACEHOLDER.sub(replace, template)
