"""End-to-end pipeline tests over small compiled projects."""

from __future__ import annotations

import errno
import os
import time
from pathlib import Path

import pytest

from fnpack.config import FnpackConfig
from fnpack.errors import OutputCollisionError, PathCacheError, ResolverError
from fnpack.models import DeployableUnit, StaticAsset
from fnpack.orchestrator import Pipeline
from fnpack.stores import path_cache
from tests._fixtures.resolvers import StubResolver


def _sample_project(builder) -> Path:
    builder.function(
        "graphql.js",
        """
        const { db } = require('../lib/db');
        const { logger } = require('../lib/logger');
        const gql = require('graphql-lite');
        exports.handler = async (event) => gql.run(db, logger, event);
        """,
    )
    builder.function(
        "health.js",
        """
        const { logger } = require('../lib/logger');
        exports.handler = async () => ({ statusCode: 200 });
        """,
    )
    builder.function(
        "auth/auth.js",
        """
        const { verify } = require('./helpers');
        exports.handler = async (event) => verify(event);
        """,
    )
    builder.write(
        {
            "api/dist/functions/auth/helpers.js": "exports.verify = () => true;\n",
            "api/dist/lib/db.js": "const { logger } = require('./logger');\nmodule.exports = { db: {} };\n",
            "api/dist/lib/logger.js": "module.exports = { logger: console };\n",
            "api/dist/lib/unused.js": "module.exports = {};\n",
            "node_modules/graphql-lite/package.json": '{"name": "graphql-lite", "main": "lib/index.js"}',
            "node_modules/graphql-lite/lib/index.js": "exports.run = () => 'ok';\n",
        }
    )
    builder.static(
        {
            "index.html": "<html>index</html>",
            "200.html": "<html>spa</html>",
            "assets/app.js": "console.log('app');",
        }
    )
    return builder.path()


def test_pipeline_packages_functions_assets_and_routes(project_builder) -> None:
    root = _sample_project(project_builder)

    manifest = Pipeline().run(root)

    assert sorted(manifest.functions) == ["api/auth/auth", "api/graphql", "api/health"]
    assert sorted(manifest.static_assets) == ["200", "assets/app.js", "index"]
    assert manifest.omissions == {}
    assert manifest.warnings == ()

    graphql = manifest.functions["api/graphql"]
    assert set(graphql.files) == {
        "api/dist/functions/graphql.js",
        "api/dist/lib/db.js",
        "api/dist/lib/logger.js",
        "node_modules/graphql-lite/package.json",
        "node_modules/graphql-lite/lib/index.js",
    }
    assert graphql.handler == "graphql.handler"
    assert graphql.entrypoint == "api/dist/functions/graphql.js"

    auth = manifest.functions["api/auth/auth"]
    assert set(auth.files) == {
        "api/dist/functions/auth/auth.js",
        "api/dist/functions/auth/helpers.js",
    }
    assert auth.handler == "auth/auth.handler"
    assert "api/auth/helpers" not in manifest.outputs

    assert all("api/dist/lib/unused.js" not in unit.files for unit in manifest.functions.values())

    assert len(manifest.routes) == 1
    assert manifest.routes[0].destination == "/200"


def test_shared_dependencies_are_the_same_file_reference(project_builder) -> None:
    root = _sample_project(project_builder)

    manifest = Pipeline().run(root)

    graphql = manifest.functions["api/graphql"].files["api/dist/lib/logger.js"]
    health = manifest.functions["api/health"].files["api/dist/lib/logger.js"]
    assert graphql is health


def test_each_path_is_loaded_at_most_once(project_builder, monkeypatch) -> None:
    root = _sample_project(project_builder)
    loads: list[str] = []
    real_load = path_cache._load

    def _counting_load(cache_root: Path, key: str):
        loads.append(key)
        return real_load(cache_root, key)

    monkeypatch.setattr(path_cache, "_load", _counting_load)

    Pipeline().run(root)

    assert loads
    assert len(loads) == len(set(loads))


def test_runs_are_idempotent(project_builder) -> None:
    root = _sample_project(project_builder)

    first = Pipeline().run(root).to_dict()
    second = Pipeline().run(root).to_dict()

    assert first == second


def test_concurrent_packaging_matches_sequential(project_builder) -> None:
    root = _sample_project(project_builder)

    sequential = Pipeline().run(root)
    concurrent = Pipeline(workers=4).run(root)

    assert list(concurrent.outputs) == list(sequential.outputs)
    assert concurrent.to_dict() == sequential.to_dict()


def test_manifest_is_read_only(project_builder) -> None:
    root = _sample_project(project_builder)

    manifest = Pipeline().run(root)

    with pytest.raises(TypeError):
        manifest.outputs["api/extra"] = manifest.outputs["index"]  # type: ignore[index]


def test_ambiguous_source_is_omitted_without_tracing(project_builder) -> None:
    root = _sample_project(project_builder)
    project_builder.write(
        {
            "api/src/functions/graphql.js": "",
            "api/src/functions/graphql.ts": "",
        }
    )
    resolver = StubResolver()

    manifest = Pipeline(resolver=resolver).run(root)

    assert "api/graphql" not in manifest.outputs
    assert "api/graphql" in manifest.omissions
    assert "api/dist/functions/graphql.js" in manifest.omissions["api/graphql"]
    assert sorted(manifest.functions) == ["api/auth/auth", "api/health"]
    assert "api/dist/functions/graphql.js" not in [call[0] for call in resolver.calls]


def test_missing_traced_file_is_omitted(project_builder) -> None:
    root = _sample_project(project_builder)
    resolver = StubResolver({"api/dist/functions/health.js": ["api/dist/lib/vanished.js"]})

    manifest = Pipeline(resolver=resolver).run(root)

    assert "api/health" in manifest.omissions
    assert "vanished.js" in manifest.omissions["api/health"]
    assert "api/graphql" in manifest.functions


def test_resolver_warnings_are_collected(project_builder) -> None:
    project_builder.function("health.js", "const pad = require('left-pad');\n")

    manifest = Pipeline().run(project_builder.path())

    assert manifest.warnings == (
        'api/health: Failed to resolve dependency "left-pad" from api/dist/functions/health.js',
    )
    assert "api/health" in manifest.functions


def test_function_names_colliding_by_case_abort_the_run(project_builder) -> None:
    project_builder.function("health.js")
    project_builder.function("Health.js")

    with pytest.raises(OutputCollisionError, match="api/health"):
        Pipeline(resolver=StubResolver()).run(project_builder.path())


def test_static_asset_colliding_with_function_aborts_the_run(project_builder) -> None:
    project_builder.function("graphql.js")
    project_builder.static({"api/graphql.html": "<html></html>"})

    with pytest.raises(OutputCollisionError) as excinfo:
        Pipeline(resolver=StubResolver()).run(project_builder.path())

    message = str(excinfo.value)
    assert "function api/dist/functions/graphql.js" in message
    assert "static file web/dist/api/graphql" in message


def test_unreadable_file_aborts_the_run(project_builder, monkeypatch) -> None:
    root = _sample_project(project_builder)
    real_load = path_cache._load

    def _failing_load(cache_root: Path, key: str):
        if key == "api/dist/lib/db.js":
            raise PermissionError(errno.EACCES, "Permission denied", key)
        return real_load(cache_root, key)

    monkeypatch.setattr(path_cache, "_load", _failing_load)

    with pytest.raises(PathCacheError):
        Pipeline().run(root)


def test_explicit_config_overrides_project_file(project_builder) -> None:
    project_builder.function("health.js")
    config = FnpackConfig(root=project_builder.root, api_mount="functions", memory=256)

    manifest = Pipeline(resolver=StubResolver()).run(project_builder.path(), config)

    unit = manifest.outputs["functions/health"]
    assert isinstance(unit, DeployableUnit)
    assert unit.memory == 256


def test_project_without_functions_still_serves_assets(project_builder) -> None:
    project_builder.static({"index.html": "<html></html>"})

    manifest = Pipeline(resolver=StubResolver()).run(project_builder.path())

    assert manifest.functions == {}
    assert isinstance(manifest.outputs["index"], StaticAsset)
    assert manifest.routes[0].destination == "/index"


def test_missing_project_path_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        Pipeline().run(tmp_path / "missing")

    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        Pipeline().run(target)


def test_manifest_to_dict_shape(project_builder) -> None:
    root = _sample_project(project_builder)

    payload = Pipeline().run(root).to_dict()

    assert list(payload) == ["outputs", "routes", "warnings", "omissions"]
    assert payload["outputs"]["api/graphql"]["type"] == "function"
    assert payload["outputs"]["index"]["type"] == "static"
    assert payload["routes"][-1]["dest"] == "/200"


def test_symlinked_dependencies_ship_with_their_targets(project_builder) -> None:
    project_builder.function("graphql.js", "const shared = require('../lib/alias');\n")
    project_builder.write(
        {
            "api/dist/real/shared.js": "module.exports = require('./dep');\n",
            "api/dist/real/dep.js": "module.exports = 1;\n",
        }
    )
    (project_builder.root / "api/dist/lib").mkdir(parents=True)
    os.symlink("../real/shared.js", project_builder.root / "api/dist/lib/alias.js")

    manifest = Pipeline().run(project_builder.path())

    unit = manifest.functions["api/graphql"]
    assert set(unit.files) == {
        "api/dist/functions/graphql.js",
        "api/dist/lib/alias.js",
        "api/dist/real/shared.js",
        "api/dist/real/dep.js",
    }
    link = unit.files["api/dist/lib/alias.js"]
    assert link.is_symlink
    assert link.symlink_target == "../real/shared.js"
    assert manifest.warnings == ()


def test_fatal_error_cancels_queued_functions(project_builder) -> None:
    names = [f"fn{index}.js" for index in range(8)]
    for name in names:
        project_builder.function(name)

    class _FailFirstResolver(StubResolver):
        def resolve(self, entrypoint, *, options, backend):
            result = super().resolve(entrypoint, options=options, backend=backend)
            if Path(entrypoint).name == "fn0.js":
                raise ResolverError("resolver crashed")
            time.sleep(0.3)
            return result

    resolver = _FailFirstResolver()

    with pytest.raises(ResolverError, match="resolver crashed"):
        Pipeline(resolver=resolver, workers=2).run(project_builder.path())

    assert len(resolver.calls) < len(names)
