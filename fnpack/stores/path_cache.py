"""Run-scoped memoizing cache for build output files."""

from __future__ import annotations

import errno
import os
import posixpath
import stat
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ..errors import PathCacheError
from ..models import ProjectFile

# Errors that mean "nothing readable lives at this path".
_MISSING_ERRNOS = {errno.ENOENT, errno.EISDIR, errno.ENOTDIR}


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return "<missing>"


_MISSING = _Missing()

_Entry = Union[Tuple[bytes, ProjectFile], _Missing]


@dataclass
class CacheStats:
    """Counters describing how much disk access the cache saved."""

    hits: int = 0
    misses: int = 0
    disk_reads: int = 0
    not_found: int = 0


class PathCache:
    """Memoizes file contents and file references by project-relative path.

    Entries are insert-if-absent: once a path is resolved (including to
    "missing") every later reader observes the same value for the rest of the
    run. The cache is safe to share between threads.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def read(self, relative_path: str) -> Optional[bytes]:
        """Return file content, or None when the path does not hold a file."""
        entry = self._lookup(relative_path)
        if isinstance(entry, _Missing):
            return None
        return entry[0]

    def file(self, relative_path: str) -> Optional[ProjectFile]:
        """Return the ProjectFile captured when ``relative_path`` was first read."""
        entry = self._lookup(relative_path)
        if isinstance(entry, _Missing):
            return None
        return entry[1]

    def contains(self, relative_path: str) -> bool:
        """Return True when the path has already been looked up."""
        key = normalize_path(relative_path)
        with self._lock:
            return key in self._entries

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(**vars(self._stats))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers

    def _lookup(self, relative_path: str) -> _Entry:
        key = normalize_path(relative_path)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._stats.hits += 1
                return cached
            self._stats.misses += 1

        loaded: _Entry
        try:
            content, project_file = _load(self.root, key)
        except OSError as exc:
            if exc.errno not in _MISSING_ERRNOS:
                raise PathCacheError(key, exc.strerror or str(exc)) from exc
            loaded = _MISSING
        else:
            loaded = (content, project_file)

        with self._lock:
            self._stats.disk_reads += 1
            # First writer wins; a concurrent reader may have stored the path already.
            stored = self._entries.setdefault(key, loaded)
            if isinstance(stored, _Missing) and stored is loaded:
                self._stats.not_found += 1
            return stored


def normalize_path(relative_path: str) -> str:
    """Normalize a project-relative path to a POSIX cache key."""
    text = relative_path.replace("\\", "/")
    normalised = posixpath.normpath(text)
    if normalised.startswith("./"):
        normalised = normalised[2:]
    return normalised.lstrip("/") if normalised != "/" else ""


def _load(root: Path, key: str) -> Tuple[bytes, ProjectFile]:
    fs_path = root / key
    info = os.lstat(fs_path)
    if stat.S_ISDIR(info.st_mode):
        raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), str(fs_path))
    # The resolver needs the followed content; the packaged file keeps the link.
    with open(fs_path, "rb") as handle:
        content = handle.read()
    if stat.S_ISLNK(info.st_mode):
        project_file = ProjectFile(
            path=key, mode=info.st_mode, symlink_target=os.readlink(fs_path)
        )
    else:
        project_file = ProjectFile(path=key, mode=info.st_mode, data=content)
    return content, project_file


__all__ = ["CacheStats", "PathCache", "normalize_path"]
