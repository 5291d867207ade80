"""
Manifest handling.

This package handles:
1. Loading the dhl section of Cargo.toml
2. Rendering source templates with substitutions
3. Classifying sources as local files or URLs
"""

from .manifest import Manifest
from .template import TemplateEngine

__all__ = ["Manifest", "TemplateEngine"]
