"""
Exceptions raised by dhl.

The hierarchy groups failures by the stage that produced them:

1. Configuration (missing settings, unusable output/deps directories)
2. Manifest creation and inspection (Cargo.toml, templates, URLs)
3. Resolution (a declared crate has no placeholder library file)
4. Transfer (I/O or network failures while moving bytes)
5. Archive decoding (gzip/tar failures and malformed entries)

Every error raised while delivering a package carries the crate name it
belongs to, and the underlying exception is chained as ``__cause__``.
"""

from typing import Optional


class DhlException(Exception):
    """
    Base exception for all dhl errors.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PackagesConsumedError(DhlException):
    """Raised when a Packages collection is delivered a second time."""

    def __init__(self):
        super().__init__("Packages have already been delivered")


# ============================================================================
# Configuration
# ============================================================================


class ConfigurationError(DhlException):
    """A required path or setting is missing or structurally invalid."""


class MissingConfigField(ConfigurationError):
    def __init__(self, field_name: str, variable: Optional[str] = None):
        self.field_name = field_name
        self.variable = variable
        if variable:
            message = f"Undefined environment variable '{variable}' for '{field_name}'"
        else:
            message = f"Missing required configuration field '{field_name}'"
        super().__init__(message)


class InvalidOutDir(ConfigurationError):
    def __init__(self, out_dir: str):
        self.out_dir = out_dir
        super().__init__(f"Could not find deps from using '{out_dir}'")


class DepsDirError(ConfigurationError):
    def __init__(self, deps_dir: str):
        self.deps_dir = deps_dir
        super().__init__(f"Could not read deps directory '{deps_dir}'")


class InvalidDeliveryMode(ConfigurationError):
    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"Unknown delivery mode '{mode}'")


# ============================================================================
# Manifest
# ============================================================================


class ManifestError(DhlException):
    """Base class for manifest failures."""


class ManifestCreationError(ManifestError):
    """Cargo.toml could not be read or does not have the expected layout."""

    def __init__(self, manifest_file: str, reason: str):
        self.manifest_file = manifest_file
        self.reason = reason
        super().__init__(f"Failed to create manifest from '{manifest_file}': {reason}")


class ManifestInspectionError(ManifestError):
    """A declared package could not be turned into a deliverable source."""

    def __init__(self, crate_name: str, source: str, reason: str):
        self.crate_name = crate_name
        self.source = source
        self.reason = reason
        super().__init__(
            f"crate '{crate_name}' failed to inspect source '{source}': {reason}"
        )


class TemplateGenerationError(ManifestError):
    """Substitution values could not be resolved before rendering."""


class TemplateRenderError(ManifestInspectionError):
    def __init__(self, crate_name: str, source: str, name: str):
        self.name = name
        super().__init__(crate_name, source, f"unknown substitution '{name}'")


class UrlParseError(ManifestInspectionError):
    def __init__(self, crate_name: str, source: str, reason: str):
        super().__init__(crate_name, source, f"url failed to parse: {reason}")


# ============================================================================
# Delivery
# ============================================================================


class DepotError(DhlException):
    """Base class for errors raised while delivering a single crate."""

    def __init__(self, crate_name: str, message: str):
        self.crate_name = crate_name
        super().__init__(message)


class ResolutionError(DepotError):
    """A declared crate could not be matched with a placeholder library file."""


class MissingLibraryFile(ResolutionError):
    def __init__(self, crate_name: str):
        super().__init__(
            crate_name, f"No local library file to inject '{crate_name}' onto"
        )


class TransferError(DepotError):
    """Moving bytes from a source to a destination failed."""

    def __init__(self, crate_name: str, source: str, destination: str, message: str):
        self.source = source
        self.destination = destination
        super().__init__(crate_name, message)


class FileTransferError(TransferError):
    def __init__(self, crate_name: str, source: str, destination: str, reason: str):
        super().__init__(
            crate_name,
            source,
            destination,
            f"File Depot failed to acquire '{crate_name}' from '{source}' "
            f"into '{destination}': {reason}",
        )


class HttpTransferError(TransferError):
    def __init__(self, crate_name: str, source: str, destination: str, reason: str):
        super().__init__(
            crate_name,
            source,
            destination,
            f"Url Depot failed to acquire '{crate_name}' from '{source}' "
            f"into '{destination}': {reason}",
        )


class NetworkDisabledError(TransferError):
    def __init__(self, crate_name: str, source: str, destination: str):
        super().__init__(
            crate_name,
            source,
            destination,
            f"Network sources are disabled, cannot fetch '{crate_name}' from '{source}'",
        )


class SharedClientError(DepotError):
    """
    The HTTP client could not be constructed.

    The construction failure happens once per Depot; every later URL delivery
    raises a new SharedClientError chained to that same original exception.
    """

    def __init__(self, crate_name: str, cause: BaseException):
        self.shared_cause = cause
        super().__init__(
            crate_name,
            f"Failed to create HTTP client needed for '{crate_name}': {cause}",
        )


# ============================================================================
# Archives
# ============================================================================


class ArchiveError(DepotError):
    """Base class for compressed archive failures."""


class GzipError(ArchiveError):
    def __init__(self, crate_name: str, reason: str):
        super().__init__(
            crate_name, f"gzip failed to decode '{crate_name}' with error: {reason}"
        )


class TarError(ArchiveError):
    def __init__(self, crate_name: str, reason: str):
        super().__init__(
            crate_name, f"Tar failed to decode '{crate_name}' with error: {reason}"
        )


class TarFileNameError(ArchiveError):
    def __init__(self, crate_name: str, path: str):
        self.path = path
        super().__init__(
            crate_name,
            f"Tar entry for '{crate_name}' did not have a file name in '{path}'",
        )


class TarEntryTypeError(ArchiveError):
    def __init__(self, crate_name: str, path: str):
        self.path = path
        super().__init__(
            crate_name,
            f"Tar entry '{path}' for '{crate_name}' is neither a file nor a directory",
        )
