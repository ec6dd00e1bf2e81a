"""FastAPI main application."""

from typing import List, Optional, Tuple

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.cell_registry import VisibilityDelta
from ..core.engine import CellParameters, RebuildResult, VoronoiSolidEngine
from ..core.grid_builder import Box, GridInvariantError
from ..core.mesh_refiner import CellMesh
from ..log_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

app = FastAPI(
    title="Manhattan Voronoi Cells API",
    description="Decomposes a box into Manhattan-distance Voronoi solids",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

engine = VoronoiSolidEngine(
    history_limit=settings.history_limit,
    weld_tolerance=settings.weld_tolerance,
    smoothing_lambda=settings.smoothing_lambda,
)


# Request/Response models
class RebuildRequest(BaseModel):
    """Parameters for a cell rebuild."""

    box_x: float = Field(settings.default_box_x, ge=2, le=1000, description="Box size along x")
    box_y: float = Field(settings.default_box_y, ge=2, le=1000, description="Box size along y")
    box_z: float = Field(settings.default_box_z, ge=2, le=1000, description="Box size along z")
    seed_count: int = Field(settings.default_seed_count, ge=1, le=500, description="Number of seed points")
    seed_value: int = Field(settings.default_seed_value, ge=0, description="PRNG seed")
    density: float = Field(settings.default_density, ge=6, le=128, description="Grid cells along the longest axis")
    smoothing: int = Field(settings.default_smoothing, ge=0, le=50, description="Laplacian smoothing passes")

    def to_parameters(self) -> CellParameters:
        return CellParameters(
            box=Box(self.box_x, self.box_y, self.box_z),
            seed_count=self.seed_count,
            seed_value=self.seed_value,
            density=self.density,
            smoothing=self.smoothing,
        )


class CellSummary(BaseModel):
    """Per-seed summary of a rebuild."""

    seed_index: int
    seed: Tuple[float, float, float]
    present: bool
    hidden: bool
    triangle_count: int = 0
    vertex_count: int = 0
    centroid: Optional[Tuple[float, float, float]] = None
    explode_direction: Optional[Tuple[float, float, float]] = None
    volume: Optional[float] = None


class RebuildResponse(BaseModel):
    """Aggregate rebuild statistics plus per-seed summaries."""

    seed_count: int
    cell_count: int
    triangle_count: int
    vertex_count: int
    elapsed_seconds: float
    summary: str
    cells: List[CellSummary]


class CellMeshResponse(BaseModel):
    """Buffers of one cell mesh, positions relative to the centroid."""

    seed_index: int
    positions: List[Tuple[float, float, float]]
    indices: Optional[List[Tuple[int, int, int]]]
    centroid: Tuple[float, float, float]
    explode_direction: Tuple[float, float, float]
    hidden: bool


class DeltaResponse(BaseModel):
    """A visibility change for the animation layer."""

    seed_index: int
    hidden: bool


class VisibilityResponse(BaseModel):
    """Current visibility state."""

    hidden: List[int]
    can_undo: bool
    can_redo: bool


def _vec(values) -> Tuple[float, float, float]:
    return (float(values[0]), float(values[1]), float(values[2]))


def _summarize(result: RebuildResult) -> RebuildResponse:
    cells = []
    for index, mesh in enumerate(result.cells):
        summary = CellSummary(
            seed_index=index,
            seed=_vec(result.seeds[index]),
            present=mesh is not None,
            hidden=index in engine.registry.hidden,
        )
        if mesh is not None:
            summary.triangle_count = mesh.triangle_count
            summary.vertex_count = mesh.vertex_count
            summary.centroid = _vec(mesh.centroid)
            summary.explode_direction = _vec(mesh.explode_direction)
            summary.volume = mesh.signed_volume
        cells.append(summary)

    stats = result.stats
    return RebuildResponse(
        seed_count=stats.seed_count,
        cell_count=stats.cell_count,
        triangle_count=stats.triangle_count,
        vertex_count=stats.vertex_count,
        elapsed_seconds=stats.elapsed_seconds,
        summary=stats.summary(),
        cells=cells,
    )


def _deltas(deltas: List[VisibilityDelta]) -> List[DeltaResponse]:
    return [DeltaResponse(seed_index=d.seed_index, hidden=d.hidden) for d in deltas]


def _mesh_response(mesh: CellMesh) -> CellMeshResponse:
    return CellMeshResponse(
        seed_index=mesh.seed_index,
        positions=[_vec(p) for p in mesh.positions],
        indices=None if mesh.indices is None else [tuple(int(i) for i in f) for f in mesh.indices],
        centroid=_vec(mesh.centroid),
        explode_direction=_vec(mesh.explode_direction),
        hidden=mesh.hidden,
    )


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Manhattan Voronoi Cells API", version=__version__)


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Manhattan Voronoi Cells API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "rebuilt": engine.last_result is not None}


@app.post("/cells/rebuild", response_model=RebuildResponse)
def rebuild_cells(request: RebuildRequest):
    """Recompute every cell for the given parameters.

    Plain ``def`` so FastAPI runs the rebuild in its threadpool.
    """
    logger.info("Rebuild requested", request=request.model_dump())
    try:
        result = engine.rebuild(request.to_parameters())
    except GridInvariantError as e:
        logger.error("Rebuild rejected", error=str(e))
        raise HTTPException(status_code=422, detail=str(e))
    return _summarize(result)


@app.get("/cells", response_model=RebuildResponse)
async def list_cells():
    """Summary of the most recent rebuild."""
    result = engine.last_result
    if result is None:
        raise HTTPException(status_code=404, detail="No cells built yet")
    return _summarize(result)


@app.get("/cells/{seed_index}", response_model=CellMeshResponse)
async def get_cell(seed_index: int):
    """Mesh buffers for one seed's cell."""
    mesh = engine.registry.get(seed_index)
    if mesh is None:
        raise HTTPException(status_code=404, detail=f"No cell for seed {seed_index}")
    return _mesh_response(mesh)


@app.get("/visibility", response_model=VisibilityResponse)
async def get_visibility():
    """Hidden seeds and undo/redo availability."""
    hidden, can_undo, can_redo = engine.registry.snapshot()
    return VisibilityResponse(
        hidden=sorted(hidden),
        can_undo=can_undo,
        can_redo=can_redo,
    )


@app.post("/visibility/hide/{seed_index}", response_model=List[DeltaResponse])
async def hide_cell(seed_index: int):
    """Hide one seed's cell."""
    try:
        deltas = engine.registry.hide(seed_index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _deltas(deltas)


@app.post("/visibility/unhide-all", response_model=List[DeltaResponse])
async def unhide_all_cells():
    """Show every hidden cell."""
    return _deltas(engine.registry.unhide_all())


@app.post("/visibility/undo", response_model=List[DeltaResponse])
async def undo_visibility():
    """Step back one visibility change."""
    return _deltas(engine.registry.undo())


@app.post("/visibility/redo", response_model=List[DeltaResponse])
async def redo_visibility():
    """Re-apply an undone visibility change."""
    return _deltas(engine.registry.redo())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
