"""Pipeline orchestration: discovery, tracing, packaging, assets and routes."""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .config import FnpackConfig, load_config
from .discovery import discover_functions
from .errors import OutputCollisionError, PackagingError
from .logging import forward_warnings, get_logger
from .models import DeployableUnit, FunctionEntry, Output, OutputManifest
from .packaging import FunctionPackager
from .routes import RouteSynthesizer
from .static_assets import StaticAssetClassifier
from .stores import PathCache
from .tracing import DependencyTracer, ModuleResolver, load_resolver


@dataclass
class FunctionOutcome:
    """Result of processing one entry: a unit, or the reason it was omitted."""

    entry: FunctionEntry
    unit: Optional[DeployableUnit] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class Pipeline:
    """Coordinates one packaging run over a compiled project tree."""

    def __init__(
        self,
        resolver: ModuleResolver | None = None,
        classifier: StaticAssetClassifier | None = None,
        synthesizer: RouteSynthesizer | None = None,
        *,
        workers: int | None = None,
    ) -> None:
        self._resolver = resolver
        self.classifier = classifier or StaticAssetClassifier()
        self.synthesizer = synthesizer or RouteSynthesizer()
        self._workers = workers
        self.logger = get_logger("orchestrator")

    def run(self, path: str | Path, config: FnpackConfig | None = None) -> OutputManifest:
        """Package every function and static asset under ``path``.

        Any error other than a per-function PackagingError aborts the run; no
        partial manifest is returned.
        """
        project_root = Path(path).expanduser().resolve()
        if not project_root.exists():
            raise FileNotFoundError(f"Project path not found: {path}")
        if not project_root.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {path}")

        config = config or load_config(project_root)
        self.logger.info("Starting packaging run for %s", project_root)

        entries = discover_functions(config)
        self.logger.info("Discovered %d function(s)", len(entries))

        # One cache per run; it is dropped when the run returns.
        cache = PathCache(config.root)
        tracer = DependencyTracer(
            self._resolver or load_resolver(config.resolver),
            cache,
            ignore=config.exclude_files,
        )
        packager = FunctionPackager(cache)

        outputs: Dict[str, Output] = {}
        folded: Dict[str, str] = {}
        omissions: Dict[str, str] = {}
        warnings: List[str] = []

        for outcome in self._process(entries, tracer, packager, config):
            entry = outcome.entry
            forward_warnings(self.logger, entry.name, outcome.warnings)
            warnings.extend(f"{entry.name}: {message}" for message in outcome.warnings)
            if outcome.unit is None:
                self.logger.error("Omitting function %s: %s", entry.name, outcome.error)
                omissions[entry.name] = outcome.error or "unknown error"
                continue
            _register(
                outputs, folded, entry.name, outcome.unit, f"function {entry.relative_entrypoint}"
            )

        stats = cache.stats()
        self.logger.debug(
            "Path cache: %d entries, %d hits, %d disk reads, %d not found",
            len(cache),
            stats.hits,
            stats.disk_reads,
            stats.not_found,
        )

        static_root = config.static_path
        assets = self.classifier.classify(static_root)
        for name, asset in assets.items():
            _register(outputs, folded, name, asset, f"static file {config.static_dir}/{name}")
        self.logger.info("Classified %d static asset(s)", len(assets))

        routes = self.synthesizer.synthesize(static_root)

        return OutputManifest(
            outputs=outputs,
            routes=tuple(routes),
            warnings=tuple(warnings),
            omissions=omissions,
        )

    def _process(
        self,
        entries: List[FunctionEntry],
        tracer: DependencyTracer,
        packager: FunctionPackager,
        config: FnpackConfig,
    ) -> List[FunctionOutcome]:
        workers = self._workers if self._workers is not None else config.workers
        if workers <= 1 or len(entries) <= 1:
            return [package_function(entry, tracer, packager, config) for entry in entries]

        self.logger.debug("Packaging with %d workers", workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fnpack") as pool:
            futures = [
                pool.submit(package_function, entry, tracer, packager, config)
                for entry in entries
            ]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            failed = [future for future in futures if future in done and future.exception()]
            if failed:
                # Queued entries are dropped; only in-flight ones run to completion.
                pool.shutdown(wait=False, cancel_futures=True)
                failed[0].result()
            # Results are collected in submission order, which keeps manifests deterministic.
            return [future.result() for future in futures]


def package_function(
    entry: FunctionEntry,
    tracer: DependencyTracer,
    packager: FunctionPackager,
    config: FnpackConfig,
) -> FunctionOutcome:
    """Trace and package one entry, turning per-function failures into omissions."""
    try:
        packager.check_source(entry)
    except PackagingError as exc:
        return FunctionOutcome(entry=entry, error=str(exc))

    trace = tracer.trace(entry.entrypoint)
    try:
        unit = packager.package(entry, trace, config)
    except PackagingError as exc:
        return FunctionOutcome(entry=entry, error=str(exc), warnings=list(trace.warnings))
    return FunctionOutcome(entry=entry, unit=unit, warnings=list(trace.warnings))


def _register(
    outputs: Dict[str, Output],
    folded: Dict[str, str],
    name: str,
    output: Output,
    origin: str,
) -> None:
    # Case-insensitive file systems would merge names that differ only by case.
    key = name.casefold()
    if key in folded:
        raise OutputCollisionError(name, folded[key], origin)
    outputs[name] = output
    folded[key] = origin


__all__ = ["FunctionOutcome", "Pipeline", "package_function"]
