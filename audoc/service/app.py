"""FastAPI application entrypoint for audoc service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import load_config
from ..models import CoverageSnapshot
from ..orchestrator import Orchestrator
from ..stores.cycle_state import CycleStateStore, phase_key


class CoverageRequest(BaseModel):
    path: str
    include: Optional[List[str]] = None


class CoverageResponse(BaseModel):
    root: str
    total_items: int
    documented_items: int
    coverage_percent: int
    has_work: bool
    issue_count: int
    pending_items: List[str]
    details: Dict[str, Any]


class CycleStateRequest(BaseModel):
    path: str
    phase: int | str


class CycleStateResponse(BaseModel):
    phase: str
    read_files: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing audoc operations."""

    app = FastAPI(title="audoc service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/coverage", response_model=CoverageResponse)
    async def coverage(
        payload: CoverageRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CoverageResponse:
        def _collect() -> CoverageSnapshot:
            return orchestrator.collect(payload.path, include_patterns=payload.include)

        loop = asyncio.get_running_loop()
        snapshot = await loop.run_in_executor(None, _collect)
        return CoverageResponse(
            root=snapshot.root,
            total_items=snapshot.total_items,
            documented_items=snapshot.documented_items,
            coverage_percent=snapshot.coverage_percent,
            has_work=snapshot.has_work,
            issue_count=snapshot.issue_count,
            pending_items=list(snapshot.pending_items),
            details=snapshot.to_dict(),
        )

    @app.post("/cycles/state", response_model=CycleStateResponse)
    async def cycle_state(payload: CycleStateRequest) -> CycleStateResponse:
        def _load() -> List[str]:
            root = Path(payload.path).expanduser().resolve()
            if not root.is_dir():
                raise FileNotFoundError(f"Source root not found: {root}")
            config = load_config(root)
            store = CycleStateStore.for_root(root, config.state_dir)
            return sorted(store.load(payload.phase))

        loop = asyncio.get_running_loop()
        read_files = await loop.run_in_executor(None, _load)
        return CycleStateResponse(phase=phase_key(payload.phase), read_files=read_files)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(PermissionError)
    async def permission_error_handler(_: Any, exc: PermissionError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
