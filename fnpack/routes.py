"""Route table synthesis with a single-page-application fallback."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .errors import RouteError
from .logging import get_logger
from .models import RouteRule

# Newer builds always emit 200.html; older ones only have index.html.
FALLBACK_DOCUMENT = "200.html"
CATCH_ALL_SOURCE = "/(.*)"

_PARAM = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)([*+?]?)")
_DEST_GROUP_REF = re.compile(r"\$(\d+)")
_DEST_PARAM_REF = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")

_CLEAN_URL_REDIRECTS: List[Dict[str, Any]] = [
    {"src": r"^/(?:(.+)/)?index(?:\.html)?/?$", "headers": {"Location": "/$1"}, "status": 308},
    {"src": r"^/(.*)\.html/?$", "headers": {"Location": "/$1"}, "status": 308},
]
_REMOVE_TRAILING_SLASH = {
    "src": r"^/((?:[^/]+/)*[^/]+)/$",
    "headers": {"Location": "/$1"},
    "status": 308,
}
_ADD_TRAILING_SLASH = {
    "src": r"^/((?:[^/]+/)*[^/\.]+)$",
    "headers": {"Location": "/$1/"},
    "status": 308,
}


def fallback_destination(static_root: Path) -> str:
    """Return ``/200`` when the catch-all document exists, else ``/index``."""
    if (Path(static_root) / FALLBACK_DOCUMENT).is_file():
        return "/" + FALLBACK_DOCUMENT[: -len(".html")]
    return "/index"


class RouteSynthesizer:
    """Builds the ordered rule list installed in the host's router."""

    def __init__(self) -> None:
        self.logger = get_logger("routes")

    def synthesize(self, static_root: Path) -> List[RouteRule]:
        destination = fallback_destination(static_root)
        self.logger.debug("Fallback route destination is %s", destination)
        return transform_rules(
            [{"source": CATCH_ALL_SOURCE, "destination": destination}],
            clean_urls=True,
            trailing_slash=False,
        )


def transform_rules(
    rewrites: Sequence[Mapping[str, str]],
    *,
    clean_urls: bool,
    trailing_slash: bool,
) -> List[RouteRule]:
    """Validate rewrite definitions and compile their sources to anchored regexes.

    Any structural problem raises RouteError; a partially valid table is never
    returned.
    """
    rules: List[RouteRule] = []
    for index, rewrite in enumerate(rewrites):
        source = rewrite.get("source")
        destination = rewrite.get("destination")
        if not isinstance(source, str) or not isinstance(destination, str):
            raise RouteError(f"Rewrite #{index} requires string 'source' and 'destination'")
        pattern, params = compile_source(source)
        _check_destination(destination, pattern, params)
        rules.append(
            RouteRule(
                source=source,
                destination=destination,
                src=pattern,
                clean_urls=clean_urls,
                trailing_slash=trailing_slash,
            )
        )
    return rules


def compile_source(source: str) -> tuple[str, List[str]]:
    """Compile a ``/path/:param/(.*)`` style pattern into an anchored regex."""
    if not source.startswith("/"):
        raise RouteError(f"Route source must start with '/': {source!r}")

    parts: List[str] = ["^"]
    params: List[str] = []
    index = 0
    while index < len(source):
        char = source[index]
        if char == "(":
            end = _group_end(source, index)
            parts.append(source[index : end + 1])
            index = end + 1
        elif char == ")":
            raise RouteError(f"Unbalanced ')' in route source {source!r}")
        elif char == ":":
            match = _PARAM.match(source, index)
            if match is None:
                raise RouteError(f"Invalid parameter in route source {source!r}")
            params.append(match.group(1))
            parts.append(
                {
                    "*": "(.*)",
                    "+": "(.+)",
                    "?": "([^/]*)",
                }.get(match.group(2), "([^/]+?)")
            )
            index = match.end()
        else:
            parts.append(re.escape(char))
            index += 1
    parts.append("$")

    pattern = "".join(parts)
    try:
        re.compile(pattern)
    except re.error as exc:
        raise RouteError(f"Invalid route source {source!r}: {exc}") from exc
    return pattern, params


def expand_routes(rules: Iterable[RouteRule]) -> List[Dict[str, Any]]:
    """Expand rules into host route entries; rewrites come last, in rule order."""
    rules = list(rules)
    routes: List[Dict[str, Any]] = []
    if any(rule.clean_urls for rule in rules):
        routes.extend(dict(route) for route in _CLEAN_URL_REDIRECTS)
    if rules:
        routes.append(dict(_ADD_TRAILING_SLASH if rules[-1].trailing_slash else _REMOVE_TRAILING_SLASH))
    routes.append({"handle": "filesystem"})
    for rule in rules:
        routes.append({"src": rule.src, "dest": rule.destination, "check": True})
    return routes


def _group_end(source: str, start: int) -> int:
    depth = 0
    index = start
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    raise RouteError(f"Unbalanced '(' in route source {source!r}")


def _check_destination(destination: str, pattern: str, params: Sequence[str]) -> None:
    if not destination.startswith(("/", "http://", "https://")):
        raise RouteError(
            f"Route destination must be a path or absolute URL: {destination!r}"
        )
    groups = re.compile(pattern).groups
    for match in _DEST_GROUP_REF.finditer(destination):
        if int(match.group(1)) > groups:
            raise RouteError(
                f"Destination {destination!r} references ${match.group(1)} "
                f"but the source only captures {groups} group(s)"
            )
    if destination.startswith("/"):
        for match in _DEST_PARAM_REF.finditer(destination):
            if match.group(1) not in params:
                raise RouteError(
                    f"Destination {destination!r} references unknown parameter :{match.group(1)}"
                )


__all__ = [
    "CATCH_ALL_SOURCE",
    "FALLBACK_DOCUMENT",
    "RouteSynthesizer",
    "compile_source",
    "expand_routes",
    "fallback_destination",
    "transform_rules",
]
