from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from fastapi.testclient import TestClient

from fnpack.orchestrator import Pipeline
from fnpack.service import create_app
from tests._fixtures.resolvers import StubResolver


def _client(requested_workers: Optional[List[Optional[int]]] = None) -> TestClient:
    def _factory(workers: Optional[int]) -> Pipeline:
        if requested_workers is not None:
            requested_workers.append(workers)
        return Pipeline(resolver=StubResolver(), workers=workers)

    return TestClient(create_app(pipeline_factory=_factory))


def test_health_endpoint() -> None:
    response = _client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_package_endpoint_runs_pipeline(project_builder) -> None:
    project_builder.function("health.js")
    project_builder.static({"index.html": "<html></html>", "app.css": "body {}"})
    requested: List[Optional[int]] = []

    response = _client(requested).post(
        "/package", json={"path": str(project_builder.path()), "workers": 2}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["functions"] == ["api/health"]
    assert payload["static_assets"] == 2
    assert payload["outputs"]["api/health"]["files"] == ["api/dist/functions/health.js"]
    assert payload["routes"][-1]["dest"] == "/index"
    assert payload["omissions"] == {}
    assert requested == [2]


def test_package_endpoint_missing_path(tmp_path: Path) -> None:
    response = _client().post("/package", json={"path": str(tmp_path / "missing")})
    assert response.status_code == 404


def test_package_endpoint_rejects_file_path(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    response = _client().post("/package", json={"path": str(target)})

    assert response.status_code == 400


def test_package_endpoint_reports_pipeline_errors(project_builder) -> None:
    project_builder.function("health.js")
    project_builder.function("Health.js")

    response = _client().post("/package", json={"path": str(project_builder.path())})

    assert response.status_code == 400
    assert "collision" in response.json()["detail"]


def test_package_endpoint_validates_workers(tmp_path: Path) -> None:
    response = _client().post("/package", json={"path": str(tmp_path), "workers": 0})
    assert response.status_code == 422
