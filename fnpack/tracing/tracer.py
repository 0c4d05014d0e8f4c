"""Dependency tracing for function entrypoints."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from ..logging import get_logger
from ..models import TraceResult
from ..stores import PathCache, normalize_path
from .base import ModuleResolver, ResolveOptions


class DependencyTracer:
    """Computes an entrypoint's dependency closure through a shared path cache.

    The tracer owns no state of its own: results depend only on the entrypoint,
    the ignore list and what the cache has already resolved in this run.
    """

    def __init__(
        self,
        resolver: ModuleResolver,
        cache: PathCache,
        *,
        ignore: Sequence[str] = (),
    ) -> None:
        self.resolver = resolver
        self.cache = cache
        self.options = ResolveOptions(ignore=tuple(ignore), ts=True, mixed_modules=True)
        self.logger = get_logger("tracer")

    def trace(self, entrypoint: Path) -> TraceResult:
        """Return every file reachable from ``entrypoint`` plus resolver warnings."""
        result = self.resolver.resolve(
            Path(entrypoint), options=self.options, backend=self.cache
        )
        files = _dedupe(result.files)
        module_files = _dedupe(result.module_files)
        self.logger.debug(
            "Traced %s: %d files (%d modules), %d warnings",
            entrypoint,
            len(files),
            len(module_files),
            len(result.warnings),
        )
        return TraceResult(
            files=files,
            module_files=module_files,
            warnings=result.warnings,
        )


def _dedupe(paths: Sequence[str]) -> list[str]:
    seen: dict[str, None] = {}
    for path in paths:
        seen.setdefault(normalize_path(path), None)
    return list(seen)


__all__ = ["DependencyTracer"]
