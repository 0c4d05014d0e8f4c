"""Error taxonomy for fnpack pipeline runs."""

from __future__ import annotations


class FnpackError(RuntimeError):
    """Base class for every error raised by the packaging pipeline."""


class ConfigError(FnpackError):
    """Raised when the project configuration cannot be parsed."""


class PathCacheError(FnpackError):
    """Raised when a build output file exists but cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Unable to read {path}: {reason}")
        self.path = path


class ResolverError(FnpackError):
    """Raised when the module resolver fails outright (not a warning)."""


class PackagingError(FnpackError):
    """Raised when a single function cannot be packaged.

    The orchestrator records these as omissions and keeps going.
    """


class SourcePathError(PackagingError):
    """Raised when a function's original source path cannot be derived."""


class OutputCollisionError(FnpackError):
    """Raised when two outputs claim the same output name."""

    def __init__(self, name: str, existing: str, incoming: str) -> None:
        super().__init__(
            f"Output name collision for '{name}': {existing} conflicts with {incoming}"
        )
        self.name = name


class AssetCollisionError(FnpackError):
    """Raised when two static files map to the same request path."""


class RouteError(FnpackError):
    """Raised when a route rule is structurally invalid."""


__all__ = [
    "AssetCollisionError",
    "ConfigError",
    "FnpackError",
    "OutputCollisionError",
    "PackagingError",
    "PathCacheError",
    "ResolverError",
    "RouteError",
    "SourcePathError",
]
