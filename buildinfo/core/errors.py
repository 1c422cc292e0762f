"""Error types raised by buildinfo."""


class BuildInfoError(Exception):
    """Base class for buildinfo errors."""


class ParseError(BuildInfoError):
    """Malformed input handed over by a collector or a user."""


class PackageIdError(ParseError):
    """A package identity string could not be split into BOM fields."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"invalid package identifier: {package_id}")


class GraphParseError(ParseError):
    """Dependency graph output of a package manager could not be parsed."""


class PatternError(BuildInfoError):
    """An expected-side value is not a valid regular expression."""


class CollectorError(BuildInfoError):
    """A package-manager collector failed to produce its module."""


class TraversalError(BuildInfoError):
    """A dependency callback failed; `dependencies` holds what was kept so far."""

    def __init__(self, message: str, dependencies: list | None = None):
        super().__init__(message)
        self.dependencies = dependencies or []


class CacheError(BuildInfoError):
    """The dependencies cache could not be written."""


class BuildNotFoundError(BuildInfoError):
    """No collected data exists for the requested build."""


class UnsupportedFormatError(BuildInfoError):
    """Unknown output format requested."""
