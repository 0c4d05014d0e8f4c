"""Helper utilities for constructing throwaway build-output trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

DEFAULT_HANDLER = "exports.handler = async () => ({ statusCode: 200 });\n"


class ProjectBuilder:
    """Writes compiled project files under a temporary root."""

    functions_dir = "api/dist/functions"
    static_dir = "web/dist"

    def __init__(self, tmp_path: Path) -> None:
        self.root = (tmp_path / "project").resolve()
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries relative to the project root."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def function(self, name: str, content: str = DEFAULT_HANDLER) -> Path:
        """Write a built function file such as ``graphql.js`` or ``auth/auth.js``."""
        self.write({f"{self.functions_dir}/{name}": content})
        return self.root / self.functions_dir / name

    def static(self, files: Mapping[str, str]) -> None:
        self.write({f"{self.static_dir}/{name}": content for name, content in files.items()})

    def path(self) -> Path:
        """Return the project root path."""
        return self.root


__all__ = ["DEFAULT_HANDLER", "ProjectBuilder"]
