"""Base classes for module-dependency resolvers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from ..models import ProjectFile


class FileAccessBackend(Protocol):
    """Read-only file access keyed by project-relative POSIX paths."""

    root: Path

    def read(self, relative_path: str) -> Optional[bytes]:
        """Return file content, or None when no file exists at the path.

        Symbolic links are followed.
        """

    def file(self, relative_path: str) -> Optional[ProjectFile]:
        """Return the file reference without following a symbolic link."""


@dataclass(frozen=True)
class ResolveOptions:
    """Analysis switches forwarded to the resolver."""

    ignore: Sequence[str] = ()
    ts: bool = True
    mixed_modules: bool = True


@dataclass
class ResolveResult:
    """Files a resolver found reachable from one entrypoint."""

    files: List[str] = field(default_factory=list)
    module_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class ModuleResolver(ABC):
    """Contract for oracles that compute an entrypoint's dependency closure."""

    @abstractmethod
    def resolve(
        self,
        entrypoint: Path,
        *,
        options: ResolveOptions,
        backend: FileAccessBackend,
    ) -> ResolveResult:
        """Return every file transitively reachable from ``entrypoint``.

        All file access must go through ``backend``. Paths in the result are
        relative to ``backend.root``. Problems that do not prevent a result are
        reported as warnings; anything else raises ``ResolverError``.
        """
