"""Assembly of deployable units from traced dependency closures."""

from __future__ import annotations

import posixpath
from pathlib import PurePosixPath
from typing import Dict

from .config import FnpackConfig
from .errors import PackagingError, SourcePathError
from .logging import get_logger
from .models import DeployableUnit, FunctionEntry, ProjectFile, TraceResult
from .stores import PathCache, normalize_path

HANDLER_EXPORT = "handler"


def output_name(function_path: str, api_mount: str) -> str:
    """Return the output name for a function file relative to the functions dir.

    ``graphql.js`` becomes ``api/graphql``; ``auth/auth.js`` becomes
    ``api/auth/auth``.
    """
    stem = str(PurePosixPath(normalize_path(function_path)).with_suffix(""))
    mount = api_mount.strip("/")
    return posixpath.join(mount, stem) if mount else stem


def handler_reference(function_path: str, export: str = HANDLER_EXPORT) -> str:
    """Return ``<path without extension>.<export>`` using forward slashes."""
    stem = PurePosixPath(normalize_path(function_path)).with_suffix("")
    return f"{stem}.{export}"


class FunctionPackager:
    """Turns one traced entrypoint into a DeployableUnit."""

    def __init__(self, cache: PathCache) -> None:
        self.cache = cache
        self.logger = get_logger("packaging")

    def check_source(self, entry: FunctionEntry) -> str:
        """Return the entry's original source path or raise SourcePathError."""
        if entry.source_path is None:
            raise SourcePathError(
                f"Cannot derive the original source file for {entry.relative_entrypoint}"
            )
        return entry.source_path

    def package(
        self, entry: FunctionEntry, trace: TraceResult, config: FnpackConfig
    ) -> DeployableUnit:
        source_path = self.check_source(entry)

        files: Dict[str, ProjectFile] = {}
        for path in (*trace.files, *trace.module_files):
            key = normalize_path(path)
            if key in files:
                continue
            files[key] = self._project_file(key, entry)

        entry_key = normalize_path(entry.relative_entrypoint)
        if entry_key not in files:
            files[entry_key] = self._project_file(entry_key, entry)

        limits = config.limits_for(source_path)
        self.logger.debug(
            "Packaged %s with %d files (memory=%d, max_duration=%d)",
            entry.name,
            len(files),
            limits.memory,
            limits.max_duration,
        )
        return DeployableUnit(
            files=files,
            handler=handler_reference(entry.function_path),
            entrypoint=entry_key,
            runtime=config.runtime,
            memory=limits.memory,
            max_duration=limits.max_duration,
            add_helpers=False,
            add_sourcemap_support=False,
        )

    def _project_file(self, key: str, entry: FunctionEntry) -> ProjectFile:
        project_file = self.cache.file(key)
        if project_file is None:
            raise PackagingError(
                f"{entry.name}: traced file {key} is missing from the build output"
            )
        return project_file


__all__ = ["FunctionPackager", "HANDLER_EXPORT", "handler_reference", "output_name"]
