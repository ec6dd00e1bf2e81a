"""
Rebuild orchestration for the Manhattan Voronoi solid decomposition.

One rebuild samples seeds, builds the grid, evaluates the nearest-seed field
and then extracts and refines a surface for every seed. Results of a rebuild
are self-contained; only the cell registry's visibility state carries over.
"""

import math
import threading
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

import numpy as np
import structlog

from .cell_registry import HISTORY_LIMIT, CellRegistry
from .cell_surface import extract_cell_surface
from .distance_field import AssignmentField, assign_nearest_seeds, cell_vertex_counts
from .grid_builder import Box, Grid, build_grid
from .mesh_refiner import SMOOTHING_LAMBDA, WELD_TOLERANCE, CellMesh, refine_cell_mesh
from .seed_sampler import generate_seeds

logger = structlog.get_logger()

MIN_BOX_SIZE = 2.0
MIN_SEED_COUNT = 1
MIN_DENSITY = 6.0


@dataclass(frozen=True)
class CellParameters:
    """Inputs of one rebuild."""
    box: Box
    seed_count: int
    seed_value: int
    density: float
    smoothing: int = 0

    def clamped(self) -> "CellParameters":
        """Apply the lower bounds every rebuild expects."""
        return replace(
            self,
            box=Box(*(max(MIN_BOX_SIZE, float(d)) for d in self.box)),
            seed_count=max(MIN_SEED_COUNT, int(self.seed_count)),
            seed_value=max(0, int(self.seed_value)),
            density=max(MIN_DENSITY, float(self.density)),
            smoothing=max(0, int(self.smoothing)),
        )

    @property
    def composition_key(self) -> Tuple:
        """Changes to these inputs give seeds a new meaning."""
        return (int(self.seed_count), int(self.seed_value), tuple(self.box))


@dataclass
class RebuildStats:
    """Aggregate counts for one rebuild."""
    seed_count: int
    cell_count: int
    triangle_count: int
    vertex_count: int
    density: float
    smoothing: int
    elapsed_seconds: float = 0.0

    def summary(self) -> str:
        density = int(self.density) if float(self.density).is_integer() else self.density
        return f"Seeds: {self.seed_count} | Density: {density} | Smooth: {self.smoothing}"


@dataclass
class RebuildResult:
    """Everything one rebuild produced."""
    parameters: CellParameters
    seeds: np.ndarray
    grid: Optional[Grid]
    field: Optional[AssignmentField]
    cells: List[Optional[CellMesh]]
    stats: RebuildStats


def collect_stats(
    parameters: CellParameters,
    cells: List[Optional[CellMesh]],
    elapsed_seconds: float = 0.0,
) -> RebuildStats:
    present = [c for c in cells if c is not None]
    return RebuildStats(
        seed_count=len(cells),
        cell_count=len(present),
        triangle_count=sum(c.triangle_count for c in present),
        vertex_count=sum(c.vertex_count for c in present),
        density=parameters.density,
        smoothing=parameters.smoothing,
        elapsed_seconds=elapsed_seconds,
    )


def build_cells(
    seeds: np.ndarray,
    grid: Grid,
    field: AssignmentField,
    box: Box,
    smoothing: int,
    tolerance: float = WELD_TOLERANCE,
    lam: float = SMOOTHING_LAMBDA,
) -> List[Optional[CellMesh]]:
    """Extract and refine one mesh per seed; None where a seed has no surface."""
    counts = cell_vertex_counts(field, len(seeds))
    logger.debug(
        "Cell vertex counts",
        smallest=int(counts.min()) if len(counts) else 0,
        largest=int(counts.max()) if len(counts) else 0,
    )

    cells: List[Optional[CellMesh]] = []
    for index in range(len(seeds)):
        raw = extract_cell_surface(index, grid, field)
        mesh = refine_cell_mesh(index, raw, smoothing, box.half_extents, tolerance, lam)
        if mesh is None:
            logger.info("Seed produced no surface", seed=index, vertices=int(counts[index]))
        cells.append(mesh)
    return cells


class VoronoiSolidEngine:
    """
    Rebuilds cell meshes on demand and keeps the visibility history.

    Rebuilds are serialized; a new rebuild replaces the previous generation
    of meshes wholesale.
    """

    def __init__(
        self,
        history_limit: int = HISTORY_LIMIT,
        weld_tolerance: float = WELD_TOLERANCE,
        smoothing_lambda: float = SMOOTHING_LAMBDA,
    ):
        self.registry = CellRegistry(history_limit)
        self.weld_tolerance = weld_tolerance
        self.smoothing_lambda = smoothing_lambda
        self._lock = threading.Lock()
        self._composition: Optional[Tuple] = None
        self.last_result: Optional[RebuildResult] = None

    def rebuild(self, parameters: CellParameters, clamp: bool = True) -> RebuildResult:
        """
        Recompute every cell for the given parameters.

        Args:
            parameters: Rebuild inputs
            clamp: Apply ``CellParameters.clamped`` first

        Returns:
            RebuildResult for this generation
        """
        if clamp:
            parameters = parameters.clamped()

        with self._lock:
            started = time.perf_counter()
            logger.info(
                "Starting rebuild",
                box=tuple(parameters.box),
                seeds=parameters.seed_count,
                seed_value=parameters.seed_value,
                density=parameters.density,
                smoothing=parameters.smoothing,
            )

            box = parameters.box
            seeds = generate_seeds(parameters.seed_count, box, parameters.seed_value)

            grid = None
            field = None
            if box.is_degenerate or not all(math.isfinite(d) for d in box) or len(seeds) == 0:
                logger.warning("Degenerate rebuild input, no cells produced", box=tuple(box))
                cells: List[Optional[CellMesh]] = [None] * len(seeds)
            else:
                grid = build_grid(box, parameters.density)
                field = assign_nearest_seeds(seeds, grid, box)
                cells = build_cells(
                    seeds,
                    grid,
                    field,
                    box,
                    parameters.smoothing,
                    self.weld_tolerance,
                    self.smoothing_lambda,
                )

            composition = parameters.composition_key
            reset = composition != self._composition
            self._composition = composition
            self.registry.replace_cells(cells, reset_visibility=reset)

            stats = collect_stats(parameters, cells, time.perf_counter() - started)
            result = RebuildResult(
                parameters=parameters,
                seeds=seeds,
                grid=grid,
                field=field,
                cells=cells,
                stats=stats,
            )
            self.last_result = result

            logger.info(
                "Rebuild complete",
                cells=stats.cell_count,
                triangles=stats.triangle_count,
                vertices=stats.vertex_count,
                elapsed=round(stats.elapsed_seconds, 4),
            )
            return result
