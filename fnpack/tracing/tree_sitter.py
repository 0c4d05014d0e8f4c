"""Tree-sitter powered module-dependency resolver for JavaScript builds."""

from __future__ import annotations

import posixpath
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Deque, Dict, List, Optional, Set, cast

from tree_sitter import Node, Parser
from tree_sitter_language_pack import SupportedLanguage, get_parser

from ..errors import ResolverError
from ..ignore import IgnoreMatcher
from .base import FileAccessBackend, ModuleResolver, ResolveOptions, ResolveResult
from .resolution import SpecifierResolver, is_builtin

_GRAMMAR_BY_SUFFIX = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

_TYPED_SUFFIXES = {".ts", ".mts", ".cts", ".tsx"}
_ESM_SUFFIXES = {".mjs", ".mts"}
_CJS_SUFFIXES = {".cjs", ".cts"}


@dataclass
class _References:
    imports: List[str] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)
    dynamic: List[str] = field(default_factory=list)
    opaque_calls: List[str] = field(default_factory=list)
    has_module_syntax: bool = False


class TreeSitterResolver(ModuleResolver):
    """Walks ``import``/``require`` references breadth-first from an entrypoint."""

    def __init__(self) -> None:
        # Parsers are not safe to share across threads.
        self._local = threading.local()

    def resolve(
        self,
        entrypoint: Path,
        *,
        options: ResolveOptions,
        backend: FileAccessBackend,
    ) -> ResolveResult:
        entry = _relative_entrypoint(Path(entrypoint), Path(backend.root))
        if backend.read(entry) is None:
            raise ResolverError(f"Entrypoint not found: {entry}")

        ignore = IgnoreMatcher(options.ignore)
        specifiers = SpecifierResolver(backend, ts=options.ts, ignore=ignore)
        result = ResolveResult()
        queued: Set[str] = {entry}
        queue: Deque[str] = deque([entry])

        def enqueue(path: str) -> None:
            if path in queued or ignore.ignored(path):
                return
            queued.add(path)
            queue.append(path)

        while queue:
            current = queue.popleft()
            source = backend.read(current)
            if source is None:
                result.warnings.append(f"Failed to read {current}")
                continue
            result.files.append(current)

            # The link ships as-is; its target is traced under its real path.
            real_path = _link_target(backend, current)
            if real_path is not None:
                if real_path.startswith("../") or real_path in {"", ".", ".."}:
                    result.warnings.append(f"{current} links outside the project root")
                else:
                    enqueue(real_path)
                continue

            references = self._scan(current, source, options)
            if references is None:
                continue
            if _is_module_file(current, references):
                result.module_files.append(current)

            for kind in references.opaque_calls:
                result.warnings.append(
                    f"{current}: {kind} with a non-literal argument cannot be traced"
                )

            for specifier in _followed(current, references, options):
                if is_builtin(specifier):
                    continue
                resolution = specifiers.resolve(specifier, current)
                if resolution is None:
                    if not specifiers.skipped_ignored:
                        result.warnings.append(
                            f'Failed to resolve dependency "{specifier}" from {current}'
                        )
                    continue
                for path in (*resolution.manifests, resolution.path):
                    enqueue(path)

        return result

    # ------------------------------------------------------------------
    # Parsing

    def _get_parser(self, grammar: str) -> Parser:
        parsers: Dict[str, Parser] | None = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        parser = parsers.get(grammar)
        if parser is None:
            parser = get_parser(cast(SupportedLanguage, grammar))
            parsers[grammar] = parser
        return parser

    def _scan(
        self, path: str, source: bytes, options: ResolveOptions
    ) -> Optional[_References]:
        suffix = PurePosixPath(path).suffix.lower()
        grammar = _GRAMMAR_BY_SUFFIX.get(suffix)
        if grammar is None:
            return None
        if suffix in _TYPED_SUFFIXES and not options.ts:
            return None

        tree = self._get_parser(grammar).parse(source)
        references = _References()
        stack: List[Node] = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type in {"import_statement", "export_statement"}:
                references.has_module_syntax = True
                if not _is_type_only(node):
                    specifier = _string_value(_statement_source(node), source)
                    if specifier is not None:
                        references.imports.append(specifier)
            elif node.type == "call_expression":
                _collect_call(node, source, references)
            stack.extend(reversed(node.children))
        return references


def _relative_entrypoint(entrypoint: Path, root: Path) -> str:
    if not entrypoint.is_absolute():
        return entrypoint.as_posix()
    try:
        return entrypoint.relative_to(root).as_posix()
    except ValueError as exc:
        raise ResolverError(f"Entrypoint {entrypoint} is outside {root}") from exc


def _link_target(backend: FileAccessBackend, path: str) -> Optional[str]:
    """Return the project-relative path a symlink at ``path`` points to."""
    project_file = backend.file(path)
    if project_file is None or project_file.symlink_target is None:
        return None
    target = project_file.symlink_target.replace("\\", "/")
    if posixpath.isabs(target):
        try:
            return PurePosixPath(target).relative_to(Path(backend.root).as_posix()).as_posix()
        except ValueError:
            return ".."
    return posixpath.normpath(posixpath.join(posixpath.dirname(path), target))


def _is_module_file(path: str, references: _References) -> bool:
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _ESM_SUFFIXES:
        return True
    if suffix in _CJS_SUFFIXES:
        return False
    return references.has_module_syntax


def _followed(path: str, references: _References, options: ResolveOptions) -> List[str]:
    if options.mixed_modules:
        return references.imports + references.requires + references.dynamic
    if _is_module_file(path, references):
        return references.imports + references.dynamic
    return references.requires + references.dynamic


def _node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _string_value(node: Optional[Node], source: bytes) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return _node_text(node, source)[1:-1]
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.children):
            return None
        return _node_text(node, source)[1:-1]
    return None


def _statement_source(node: Node) -> Optional[Node]:
    source = node.child_by_field_name("source")
    if source is not None:
        return source
    for child in node.children:
        if child.type == "import_require_clause":
            clause_source = child.child_by_field_name("source")
            if clause_source is not None:
                return clause_source
            for grandchild in child.children:
                if grandchild.type == "string":
                    return grandchild
    return None


def _is_type_only(node: Node) -> bool:
    # `import type { A } from "x"` and `export type { A } from "x"` vanish at runtime.
    children = node.children
    return len(children) > 1 and children[1].type in {"type", "typeof"}


def _collect_call(node: Node, source: bytes, references: _References) -> None:
    function = node.child_by_field_name("function")
    if function is None:
        return

    if function.type == "import":
        bucket, kind = references.dynamic, "import()"
    elif function.type == "identifier" and _node_text(function, source) == "require":
        bucket, kind = references.requires, "require()"
    elif function.type == "member_expression":
        owner = function.child_by_field_name("object")
        member = function.child_by_field_name("property")
        if (
            owner is None
            or member is None
            or _node_text(owner, source) != "require"
            or _node_text(member, source) != "resolve"
        ):
            return
        bucket, kind = references.requires, "require.resolve()"
    else:
        return

    arguments = node.child_by_field_name("arguments")
    first: Optional[Node] = None
    if arguments is not None:
        for child in arguments.named_children:
            if child.type != "comment":
                first = child
                break
    specifier = _string_value(first, source)
    if specifier is None:
        references.opaque_calls.append(kind)
        return
    bucket.append(specifier)


__all__ = ["TreeSitterResolver"]
