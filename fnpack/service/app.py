"""FastAPI application exposing fnpack packaging runs over HTTP."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..models import OutputManifest
from ..orchestrator import Pipeline


class PackageRequest(BaseModel):
    path: str
    workers: Optional[int] = Field(default=None, ge=1)


class PackageResponse(BaseModel):
    status: str
    functions: List[str]
    static_assets: int
    outputs: Dict[str, Dict[str, Any]]
    routes: List[Dict[str, Any]]
    warnings: List[str]
    omissions: Dict[str, str]


class HealthResponse(BaseModel):
    status: str


def _default_pipeline(workers: Optional[int]) -> Pipeline:
    return Pipeline(workers=workers)


def create_app(
    pipeline_factory: Callable[[Optional[int]], Pipeline] = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing packaging runs."""
    app = FastAPI(title="fnpack service", version="1.0.0")

    def get_pipeline_factory() -> Callable[[Optional[int]], Pipeline]:
        return pipeline_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/package", response_model=PackageResponse)
    async def package(
        payload: PackageRequest,
        factory: Callable[[Optional[int]], Pipeline] = Depends(get_pipeline_factory),
    ) -> PackageResponse:
        # A fresh pipeline per request keeps the path cache scoped to one run.
        pipeline = factory(payload.workers)
        loop = asyncio.get_running_loop()
        manifest = await loop.run_in_executor(None, pipeline.run, payload.path)
        return _to_response(manifest)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def _to_response(manifest: OutputManifest) -> PackageResponse:
    view = manifest.to_dict()
    return PackageResponse(
        status="ok",
        functions=sorted(manifest.functions),
        static_assets=len(manifest.static_assets),
        outputs=view["outputs"],
        routes=view["routes"],
        warnings=view["warnings"],
        omissions=view["omissions"],
    )


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)
