"""Classification of built static files into request-facing assets."""

from __future__ import annotations

import mimetypes
import os
from pathlib import Path
from typing import Dict, Iterator

from .errors import AssetCollisionError
from .logging import get_logger
from .models import StaticAsset

HTML_SUFFIX = ".html"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


class StaticAssetClassifier:
    """Maps every file under the static root to exactly one request path."""

    def __init__(self) -> None:
        self.logger = get_logger("static")

    def classify(self, static_root: Path) -> Dict[str, StaticAsset]:
        static_root = Path(static_root)
        if not static_root.is_dir():
            self.logger.warning("Static output directory %s does not exist", static_root)
            return {}

        assets: Dict[str, StaticAsset] = {}
        origins: Dict[str, str] = {}
        for path in _iter_files(static_root):
            rel_path = path.relative_to(static_root).as_posix()
            if path.suffix == HTML_SUFFIX:
                request_path = rel_path[: -len(HTML_SUFFIX)]
                content_type: str | None = HTML_CONTENT_TYPE
            else:
                request_path = rel_path
                content_type = mimetypes.guess_type(path.name)[0]

            if request_path in assets:
                raise AssetCollisionError(
                    f"Static files {origins[request_path]} and {rel_path} "
                    f"both map to /{request_path}"
                )
            assets[request_path] = StaticAsset(
                path=request_path,
                fs_path=path,
                mode=path.lstat().st_mode,
                content_type=content_type,
            )
            origins[request_path] = rel_path

        self.logger.debug("Classified %d static assets under %s", len(assets), static_root)
        return assets


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        current = Path(dirpath)
        for filename in sorted(filenames):
            yield current / filename


__all__ = ["HTML_CONTENT_TYPE", "StaticAssetClassifier"]
