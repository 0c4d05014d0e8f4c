"""Core data models shared across fnpack components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class ProjectFile:
    """A build output file captured by the path cache."""

    path: str
    mode: int
    data: Optional[bytes] = None
    symlink_target: Optional[str] = None

    @property
    def is_symlink(self) -> bool:
        return self.symlink_target is not None


@dataclass(frozen=True)
class TraceResult:
    """Files reachable from one entrypoint.

    ``files`` lists every reached path; ``module_files`` is the subset that uses
    ES module syntax. Both keep discovery order.
    """

    files: Tuple[str, ...] = ()
    module_files: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(self.files))
        object.__setattr__(self, "module_files", tuple(self.module_files))
        object.__setattr__(self, "warnings", tuple(self.warnings))


@dataclass(frozen=True)
class FunctionEntry:
    """A built function discovered under the functions directory."""

    name: str
    entrypoint: Path
    relative_entrypoint: str
    function_path: str
    source_path: Optional[str]


@dataclass(frozen=True)
class DeployableUnit:
    """A packaged function with its minimal runtime file set."""

    files: Mapping[str, ProjectFile]
    handler: str
    entrypoint: str
    runtime: str
    memory: int
    max_duration: int
    add_helpers: bool = False
    add_sourcemap_support: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "handler": self.handler,
            "entrypoint": self.entrypoint,
            "runtime": self.runtime,
            "memory": self.memory,
            "maxDuration": self.max_duration,
            "shouldAddHelpers": self.add_helpers,
            "shouldAddSourcemapSupport": self.add_sourcemap_support,
            "files": sorted(self.files),
        }


@dataclass(frozen=True)
class StaticAsset:
    """A static file served at ``path`` (no leading slash)."""

    path: str
    fs_path: Path
    mode: int
    content_type: Optional[str] = None

    @property
    def request_path(self) -> str:
        return f"/{self.path}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "static",
            "path": self.request_path,
            "fsPath": str(self.fs_path),
            "contentType": self.content_type,
        }


@dataclass(frozen=True)
class RouteRule:
    """A rewrite rule compiled into an anchored ``src`` pattern."""

    source: str
    destination: str
    src: str
    clean_urls: bool = True
    trailing_slash: bool = False


Output = Union[DeployableUnit, StaticAsset]


@dataclass(frozen=True)
class OutputManifest:
    """Final product of a pipeline run, consumed by the deployment host."""

    outputs: Mapping[str, Output]
    routes: Tuple[RouteRule, ...]
    warnings: Tuple[str, ...] = ()
    omissions: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "outputs", MappingProxyType(dict(self.outputs)))
        object.__setattr__(self, "omissions", MappingProxyType(dict(self.omissions)))
        object.__setattr__(self, "routes", tuple(self.routes))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def functions(self) -> Dict[str, DeployableUnit]:
        return {
            name: output
            for name, output in self.outputs.items()
            if isinstance(output, DeployableUnit)
        }

    @property
    def static_assets(self) -> Dict[str, StaticAsset]:
        return {
            name: output
            for name, output in self.outputs.items()
            if isinstance(output, StaticAsset)
        }

    def to_dict(self) -> Dict[str, Any]:
        from .routes import expand_routes

        return {
            "outputs": {
                name: self.outputs[name].to_dict() for name in sorted(self.outputs)
            },
            "routes": expand_routes(self.routes),
            "warnings": list(self.warnings),
            "omissions": dict(sorted(self.omissions.items())),
        }
