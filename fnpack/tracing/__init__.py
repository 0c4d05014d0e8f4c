"""Module-dependency resolvers and plugin discovery."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable

from ..errors import ConfigError
from .base import FileAccessBackend, ModuleResolver, ResolveOptions, ResolveResult
from .tracer import DependencyTracer

_ENTRY_POINT_GROUP = "fnpack.resolvers"

DEFAULT_RESOLVER = "tree-sitter"


def _tree_sitter_factory() -> ModuleResolver:
    from .tree_sitter import TreeSitterResolver

    return TreeSitterResolver()


_BUILTIN_FACTORIES: Dict[str, Callable[[], ModuleResolver]] = {
    DEFAULT_RESOLVER: _tree_sitter_factory,
}


def load_resolver(name: str | None = None) -> ModuleResolver:
    """Instantiate the resolver registered under ``name``.

    Built-in resolvers win over entry points of the same name. Third-party
    resolvers register under the ``fnpack.resolvers`` entry-point group.
    """
    key = (name or DEFAULT_RESOLVER).lower()
    factory = _BUILTIN_FACTORIES.get(key)
    if factory is not None:
        return factory()

    for entry in _iter_entry_points():
        if entry.name.lower() != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:
            raise ConfigError(f"Failed to load resolver entry point '{entry.name}': {exc}") from exc
        return _coerce_resolver(loaded)

    raise ConfigError(f"Unknown resolver requested: {name}")


def _coerce_resolver(obj: object) -> ModuleResolver:
    if isinstance(obj, ModuleResolver):
        return obj
    if isinstance(obj, type) and issubclass(obj, ModuleResolver):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, ModuleResolver):
            return instance
    raise ConfigError("Resolver entry point must be a ModuleResolver subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "DEFAULT_RESOLVER",
    "DependencyTracer",
    "FileAccessBackend",
    "ModuleResolver",
    "ResolveOptions",
    "ResolveResult",
    "load_resolver",
]
