"""Configuration loading for fnpack (.fnpack.yml)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".fnpack.yml"

DEFAULT_FUNCTIONS_DIR = "api/dist/functions"
DEFAULT_STATIC_DIR = "web/dist"
DEFAULT_API_MOUNT = "api"
DEFAULT_RUNTIME = "nodejs20.x"
DEFAULT_MEMORY = 1024
DEFAULT_MAX_DURATION = 10


@dataclass
class FunctionOverride:
    """Resource limits declared for source files matching ``pattern``."""

    pattern: str
    memory: Optional[int] = None
    max_duration: Optional[int] = None


@dataclass
class FunctionLimits:
    """Effective limits for one function after applying overrides."""

    memory: int
    max_duration: int


@dataclass
class FnpackConfig:
    """Represents the settings defined in .fnpack.yml."""

    root: Path
    functions_dir: str = DEFAULT_FUNCTIONS_DIR
    static_dir: str = DEFAULT_STATIC_DIR
    api_mount: str = DEFAULT_API_MOUNT
    runtime: str = DEFAULT_RUNTIME
    memory: int = DEFAULT_MEMORY
    max_duration: int = DEFAULT_MAX_DURATION
    exclude_files: List[str] = field(default_factory=list)
    functions: List[FunctionOverride] = field(default_factory=list)
    resolver: Optional[str] = None
    workers: int = 1

    @property
    def functions_path(self) -> Path:
        return self.root / self.functions_dir

    @property
    def static_path(self) -> Path:
        return self.root / self.static_dir

    def limits_for(self, source_path: str) -> FunctionLimits:
        """Return limits for a source file; the first matching override wins."""
        for override in self.functions:
            if fnmatchcase(source_path, override.pattern):
                return FunctionLimits(
                    memory=override.memory if override.memory is not None else self.memory,
                    max_duration=(
                        override.max_duration
                        if override.max_duration is not None
                        else self.max_duration
                    ),
                )
        return FunctionLimits(memory=self.memory, max_duration=self.max_duration)


def load_config(config_path: Path) -> FnpackConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    api_mount = _as_str(data.get("api_mount"))
    if api_mount is None:
        api_mount = _redwood_api_mount(root)

    exclude_files = _as_str_list(data.get("exclude_files"))
    if not exclude_files:
        exclude_files = _as_str_list(data.get("excludeFiles"))

    config = FnpackConfig(
        root=root,
        functions_dir=_relative_dir(data, "functions_dir", DEFAULT_FUNCTIONS_DIR),
        static_dir=_relative_dir(data, "static_dir", DEFAULT_STATIC_DIR),
        api_mount=api_mount.strip("/"),
        runtime=_as_str(data.get("runtime")) or DEFAULT_RUNTIME,
        memory=_limit(data.get("memory"), "memory", DEFAULT_MEMORY),
        max_duration=_limit(
            _first_present(data, "max_duration", "maxDuration"),
            "max_duration",
            DEFAULT_MAX_DURATION,
        ),
        exclude_files=exclude_files,
        functions=_parse_overrides(data.get("functions")),
        resolver=_as_str(data.get("resolver")),
        workers=_limit(data.get("workers"), "workers", 1),
    )
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _redwood_api_mount(root: Path) -> str:
    """Read ``[web] apiProxyPath`` from redwood.toml when the project has one."""
    toml_path = root / "redwood.toml"
    if not toml_path.exists():
        return DEFAULT_API_MOUNT
    try:
        data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse redwood.toml: {exc}") from exc
    web = data.get("web")
    if isinstance(web, dict):
        proxy_path = web.get("apiProxyPath")
        if isinstance(proxy_path, str):
            return proxy_path.lstrip("/")
    return DEFAULT_API_MOUNT


def _parse_overrides(value: Any) -> List[FunctionOverride]:
    if value is None:
        return []
    if not isinstance(value, dict):
        raise ConfigError("'functions' must map source globs to limit settings")
    overrides: List[FunctionOverride] = []
    for pattern, settings in value.items():
        if not isinstance(pattern, str) or not pattern.strip():
            raise ConfigError("Function override keys must be non-empty glob strings")
        settings = _as_dict(settings)
        overrides.append(
            FunctionOverride(
                pattern=pattern.strip().lstrip("/"),
                memory=_optional_limit(settings.get("memory"), f"functions.{pattern}.memory"),
                max_duration=_optional_limit(
                    _first_present(settings, "max_duration", "maxDuration"),
                    f"functions.{pattern}.max_duration",
                ),
            )
        )
    return overrides


def _relative_dir(data: Dict[str, Any], key: str, default: str) -> str:
    value = _as_str(data.get(key))
    if value is None:
        return default
    cleaned = value.strip().strip("/")
    if not cleaned or ".." in cleaned.split("/"):
        raise ConfigError(f"'{key}' must be a path inside the project root")
    return cleaned


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _limit(value: Any, name: str, default: int) -> int:
    parsed = _optional_limit(value, name)
    return default if parsed is None else parsed


def _optional_limit(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    parsed = _as_int(value)
    if parsed is None or parsed <= 0:
        raise ConfigError(f"'{name}' must be a positive integer, got {value!r}")
    return parsed


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "FnpackConfig",
    "FunctionLimits",
    "FunctionOverride",
    "load_config",
]
