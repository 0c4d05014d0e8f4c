"""CLI entrypoints for fnpack commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .discovery import collect_cache_files
from .errors import FnpackError
from .logging import configure_logging
from .models import OutputManifest
from .orchestrator import Pipeline


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the compiled project root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fnpack",
        description="Package compiled server functions and static assets for deployment.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Trace functions, classify static assets and emit the output manifest.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_path_argument(build_parser)
    build_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the manifest as JSON to this file.",
    )
    build_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Package functions concurrently with this many threads.",
    )

    cache_parser = subparsers.add_parser(
        "cache-files",
        help="List node_modules files worth keeping in the build cache.",
    )
    _add_verbose_option(cache_parser, suppress_default=True)
    _add_path_argument(cache_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the packaging HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for fnpack commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "build":
        if args.workers is not None and args.workers < 1:
            parser.exit(1, "--workers must be at least 1\n")
        pipeline = Pipeline(workers=args.workers)
        try:
            manifest = pipeline.run(args.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except FnpackError as exc:
            parser.exit(1, f"fnpack build failed: {exc}\nRun with --verbose for more details.\n")
        if args.output is not None:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(
                json.dumps(manifest.to_dict(), indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
        print(_summarize(manifest))
        if args.output is not None:
            print(f"Manifest written to {args.output}")
    elif args.command == "cache-files":
        root = Path(args.path).expanduser().resolve()
        if not root.is_dir():
            parser.exit(1, f"Project path is not a directory: {args.path}\n")
        for rel_path in collect_cache_files(root):
            print(rel_path)
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _summarize(manifest: OutputManifest) -> str:
    functions = manifest.functions
    lines = [
        f"{len(functions)} function(s), {len(manifest.static_assets)} static asset(s), "
        f"{len(manifest.routes)} route rule(s)"
    ]
    for name in sorted(functions):
        unit = functions[name]
        lines.append(f"  {name}: {unit.handler} ({len(unit.files)} files)")
    for name, reason in sorted(manifest.omissions.items()):
        lines.append(f"  omitted {name}: {reason}")
    if manifest.warnings:
        lines.append(f"{len(manifest.warnings)} resolver warning(s)")
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])
