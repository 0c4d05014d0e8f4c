"""Node-style module specifier resolution over a file-access backend."""

from __future__ import annotations

import json
import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..ignore import IgnoreMatcher
from .base import FileAccessBackend

NODE_BUILTINS = frozenset(
    {
        "assert",
        "assert/strict",
        "async_hooks",
        "buffer",
        "child_process",
        "cluster",
        "console",
        "constants",
        "crypto",
        "dgram",
        "diagnostics_channel",
        "dns",
        "dns/promises",
        "domain",
        "events",
        "fs",
        "fs/promises",
        "http",
        "http2",
        "https",
        "inspector",
        "module",
        "net",
        "os",
        "path",
        "path/posix",
        "path/win32",
        "perf_hooks",
        "process",
        "punycode",
        "querystring",
        "readline",
        "readline/promises",
        "repl",
        "stream",
        "stream/promises",
        "stream/web",
        "string_decoder",
        "sys",
        "timers",
        "timers/promises",
        "tls",
        "trace_events",
        "tty",
        "url",
        "util",
        "util/types",
        "v8",
        "vm",
        "wasi",
        "worker_threads",
        "zlib",
    }
)

_BASE_EXTENSIONS: Tuple[str, ...] = (".js", ".json", ".node", ".mjs", ".cjs")
_TS_EXTENSIONS: Tuple[str, ...] = (".ts", ".tsx", ".mts", ".cts")
_EXPORT_CONDITIONS: Tuple[str, ...] = ("node", "require", "import", "default")


def is_builtin(specifier: str) -> bool:
    if specifier.startswith("node:"):
        return True
    return specifier in NODE_BUILTINS


def split_package_specifier(specifier: str) -> Tuple[str, str]:
    """Split ``@scope/pkg/sub/path`` into ``("@scope/pkg", "sub/path")``."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2]), "/".join(parts[2:])
    return parts[0], "/".join(parts[1:])


@dataclass
class Resolution:
    """A resolved target plus the package manifests consulted on the way."""

    path: str
    manifests: List[str] = field(default_factory=list)


class SpecifierResolver:
    """Resolves import specifiers to project-relative file paths."""

    def __init__(
        self,
        backend: FileAccessBackend,
        *,
        ts: bool = True,
        ignore: Optional[IgnoreMatcher] = None,
    ) -> None:
        self._backend = backend
        self._extensions = _BASE_EXTENSIONS + (_TS_EXTENSIONS if ts else ())
        self._ignore = ignore or IgnoreMatcher()
        self._manifests: Dict[str, Optional[Dict[str, object]]] = {}
        self.skipped_ignored = False

    def resolve(self, specifier: str, importer: str) -> Optional[Resolution]:
        """Return the file ``specifier`` refers to when imported from ``importer``.

        Candidates matching an ignore rule are treated as absent without being
        read. ``skipped_ignored`` reports whether the last call passed over one.
        """
        self.skipped_ignored = False
        if specifier in {".", ".."} or specifier.startswith(("./", "../")):
            target = posixpath.normpath(
                posixpath.join(posixpath.dirname(importer), specifier)
            )
            manifests: List[str] = []
            path = self._resolve_file(target) or self._resolve_directory(target, manifests)
            return Resolution(path, manifests) if path else None
        if specifier.startswith(("/", "#")) or not specifier:
            return None
        return self._resolve_package(specifier, importer)

    # ------------------------------------------------------------------
    # Internal helpers

    def _exists(self, path: str) -> bool:
        if not path or path == "." or path.startswith("../") or path == "..":
            return False
        if self._ignore.ignored(path):
            self.skipped_ignored = True
            return False
        return self._backend.read(path) is not None

    def _resolve_file(self, base: str) -> Optional[str]:
        if self._exists(base):
            return base
        for extension in self._extensions:
            candidate = base + extension
            if self._exists(candidate):
                return candidate
        return None

    def _resolve_index(self, base: str) -> Optional[str]:
        for extension in self._extensions:
            candidate = posixpath.join(base, "index" + extension)
            if self._exists(candidate):
                return candidate
        return None

    def _resolve_directory(self, base: str, manifests: List[str]) -> Optional[str]:
        manifest_path = posixpath.join(base, "package.json")
        manifest = self._manifest(manifest_path)
        if manifest is not None:
            manifests.append(manifest_path)
            main = manifest.get("main")
            if isinstance(main, str) and main:
                target = posixpath.normpath(posixpath.join(base, main))
                resolved = self._resolve_file(target) or self._resolve_index(target)
                if resolved:
                    return resolved
        return self._resolve_index(base)

    def _resolve_package(self, specifier: str, importer: str) -> Optional[Resolution]:
        name, subpath = split_package_specifier(specifier)
        directory = posixpath.dirname(importer)
        while True:
            if posixpath.basename(directory) != "node_modules":
                package_dir = posixpath.join(directory, "node_modules", name)
                resolution = self._resolve_in_package(package_dir, subpath)
                if resolution is not None:
                    return resolution
            if not directory:
                return None
            directory = posixpath.dirname(directory)

    def _resolve_in_package(self, package_dir: str, subpath: str) -> Optional[Resolution]:
        manifests: List[str] = []
        manifest_path = posixpath.join(package_dir, "package.json")
        manifest = self._manifest(manifest_path)
        if manifest is not None:
            manifests.append(manifest_path)

        target: Optional[str] = None
        if subpath:
            base = posixpath.join(package_dir, subpath)
            target = self._resolve_file(base) or self._resolve_directory(base, manifests)
        else:
            if manifest is not None:
                for candidate in (_exports_entry(manifest.get("exports")), manifest.get("main")):
                    if not isinstance(candidate, str) or not candidate:
                        continue
                    joined = posixpath.normpath(posixpath.join(package_dir, candidate))
                    target = self._resolve_file(joined) or self._resolve_index(joined)
                    if target:
                        break
            if target is None:
                target = self._resolve_index(package_dir)

        if target is None:
            return None
        return Resolution(target, manifests)

    def _manifest(self, path: str) -> Optional[Dict[str, object]]:
        if path in self._manifests:
            return self._manifests[path]
        parsed: Optional[Dict[str, object]] = None
        if self._exists(path):
            raw = self._backend.read(path) or b""
            try:
                data = json.loads(raw.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                data = None
            # An unparsable manifest still marks the directory as a package.
            parsed = data if isinstance(data, dict) else {}
        self._manifests[path] = parsed
        return parsed


def _exports_entry(exports: object) -> Optional[str]:
    """Return the root entry of a package ``exports`` field, if it names one."""
    if isinstance(exports, str):
        return exports
    if isinstance(exports, list):
        for item in exports:
            entry = _exports_entry(item)
            if entry:
                return entry
        return None
    if not isinstance(exports, dict):
        return None
    if "." in exports:
        return _exports_entry(exports["."])
    if any(key.startswith(".") for key in exports):
        return None
    for condition in _EXPORT_CONDITIONS:
        if condition in exports:
            entry = _exports_entry(exports[condition])
            if entry:
                return entry
    return None


__all__ = [
    "NODE_BUILTINS",
    "Resolution",
    "SpecifierResolver",
    "is_builtin",
    "split_package_specifier",
]
