"""Run-scoped stores shared across pipeline stages."""

from .path_cache import CacheStats, PathCache, normalize_path

__all__ = ["CacheStats", "PathCache", "normalize_path"]
