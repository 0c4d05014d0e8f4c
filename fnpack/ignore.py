"""Gitignore-style exclusion rules for traced files."""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class ExcludeRule:
    """One ``exclude_files`` entry such as ``*.test.js`` or ``/api/dist/seed/``."""

    glob: str
    negate: bool = False
    directories_only: bool = False
    rooted: bool = False

    @classmethod
    def parse(cls, raw: str) -> Optional["ExcludeRule"]:
        text = raw.strip()
        if not text or text.startswith("#"):
            return None
        negate = text.startswith("!")
        text = text[1:] if negate else text
        directories_only = text.endswith("/")
        text = text.rstrip("/")
        # A slash anywhere but the end pins the glob to the project root.
        rooted = "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(text, negate, directories_only, rooted)

    def matches(self, rel_path: str) -> bool:
        parts = rel_path.split("/")
        if self.directories_only:
            # Excluding a directory excludes every file beneath it.
            candidates = _prefixes(parts[:-1]) if self.rooted else parts[:-1]
        elif self.rooted:
            candidates = [rel_path]
        else:
            candidates = parts
        return any(fnmatchcase(candidate, self.glob) for candidate in candidates)


def _prefixes(parts: Sequence[str]) -> List[str]:
    return ["/".join(parts[: depth + 1]) for depth in range(len(parts))]


class IgnoreMatcher:
    """Evaluates an ordered rule list; the last matching rule decides."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        parsed = (ExcludeRule.parse(pattern) for pattern in patterns)
        self.rules: Sequence[ExcludeRule] = tuple(rule for rule in parsed if rule is not None)

    def __bool__(self) -> bool:
        return bool(self.rules)

    def ignored(self, rel_path: str) -> bool:
        verdict = False
        for rule in self.rules:
            if rule.matches(rel_path):
                verdict = not rule.negate
        return verdict


__all__ = ["ExcludeRule", "IgnoreMatcher"]
