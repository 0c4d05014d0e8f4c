"""Function entrypoint discovery and build-cache listing."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional

from .config import FnpackConfig
from .logging import get_logger
from .models import FunctionEntry
from .packaging import output_name

FUNCTION_SUFFIX = ".js"

# Extensions a function's original source may use, in lookup order.
_SOURCE_SUFFIXES = (".js", ".ts", ".jsx", ".tsx")

_logger = get_logger("discovery")


def discover_functions(config: FnpackConfig) -> List[FunctionEntry]:
    """Return function entries under the functions directory in discovery order.

    Only the top level and one directory level down are scanned. Inside a
    nested directory only ``<dir>/<dir>.js`` and ``<dir>/index.js`` are
    functions; other files there are helpers and reach a unit only through
    tracing.
    """
    functions_dir = config.functions_path
    if not functions_dir.is_dir():
        _logger.info("No functions directory at %s", functions_dir)
        return []

    entries: List[FunctionEntry] = []
    for path in _iter_function_files(functions_dir):
        function_path = path.relative_to(functions_dir).as_posix()
        relative_entrypoint = path.relative_to(config.root).as_posix()
        entries.append(
            FunctionEntry(
                name=output_name(function_path, config.api_mount),
                entrypoint=path,
                relative_entrypoint=relative_entrypoint,
                function_path=function_path,
                source_path=derive_source_path(relative_entrypoint, config.root),
            )
        )
    _logger.debug("Discovered %d functions in %s", len(entries), functions_dir)
    return entries


def _iter_function_files(functions_dir: Path) -> Iterator[Path]:
    top_level = sorted(
        path for path in functions_dir.glob(f"*{FUNCTION_SUFFIX}") if path.is_file()
    )
    yield from top_level

    for directory in sorted(path for path in functions_dir.iterdir() if path.is_dir()):
        for path in sorted(directory.glob(f"*{FUNCTION_SUFFIX}")):
            if not path.is_file():
                continue
            if path.stem in {directory.name, "index"}:
                yield path
            else:
                _logger.debug("Skipping helper %s", path.relative_to(functions_dir))


def derive_source_path(relative_entrypoint: str, root: Path) -> Optional[str]:
    """Map a built entrypoint back to the source file it was compiled from.

    ``api/dist/functions/graphql.js`` maps to ``api/src/functions/graphql.js``,
    or to the ``.ts``/``.jsx``/``.tsx`` sibling when exactly one exists. Returns
    None when the mapping is ambiguous: no single ``dist`` segment, or several
    source files with different extensions.
    """
    parts = relative_entrypoint.split("/")
    dist_positions = [index for index, part in enumerate(parts) if part == "dist"]
    if len(dist_positions) != 1:
        _logger.warning(
            "Cannot derive source path for %s: expected exactly one 'dist' segment",
            relative_entrypoint,
        )
        return None

    parts[dist_positions[0]] = "src"
    swapped = "/".join(parts)
    stem = swapped[: -len(Path(swapped).suffix)] if Path(swapped).suffix else swapped
    existing = [stem + suffix for suffix in _SOURCE_SUFFIXES if (root / (stem + suffix)).is_file()]
    if len(existing) > 1:
        _logger.warning(
            "Cannot derive source path for %s: ambiguous candidates %s",
            relative_entrypoint,
            ", ".join(existing),
        )
        return None
    if existing:
        return existing[0]
    return swapped


def collect_cache_files(root: Path) -> List[str]:
    """Return every file under a ``node_modules`` directory, relative to ``root``."""
    root = Path(root)
    collected: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix() if current != root else ""
        dirnames.sort()
        if "node_modules" not in rel_dir.split("/"):
            continue
        for filename in sorted(filenames):
            collected.append(f"{rel_dir}/{filename}")
    return sorted(collected)


__all__ = [
    "collect_cache_files",
    "derive_source_path",
    "discover_functions",
]
