"""Padded voxel grid generation for the Manhattan Voronoi field."""

import math
from dataclasses import dataclass
from typing import NamedTuple, Tuple

import numpy as np
import structlog

logger = structlog.get_logger()

# Every axis gets at least this many cells, whatever the density.
MIN_AXIS_CELLS = 2

# Layers of cells added beyond the box on each side. The outside layer gives
# the binary field a boundary so cell surfaces close at the box walls.
GRID_PADDING = 1


class GridInvariantError(ValueError):
    """Raised when grid inputs violate the caller contract."""


class Box(NamedTuple):
    """Axis-aligned box dimensions, centred at the origin."""
    x: float
    y: float
    z: float

    @property
    def half_extents(self) -> Tuple[float, float, float]:
        return (self.x * 0.5, self.y * 0.5, self.z * 0.5)

    @property
    def is_degenerate(self) -> bool:
        """True if the box has no volume."""
        return min(self.x, self.y, self.z) <= 0


@dataclass
class Grid:
    """Vertex lattice covering the box plus one padding layer.

    Arrays are indexed x-fastest: vertex (i, j, k) lives at flat index
    ``i + nx * (j + ny * k)``.
    """
    cells: Tuple[int, int, int]
    step: Tuple[float, float, float]
    origin: Tuple[float, float, float]
    padding: int
    xs: np.ndarray
    ys: np.ndarray
    zs: np.ndarray

    @property
    def vertex_shape(self) -> Tuple[int, int, int]:
        """Vertex counts per axis as (nx, ny, nz)."""
        return (len(self.xs), len(self.ys), len(self.zs))

    @property
    def vertex_count(self) -> int:
        nx, ny, nz = self.vertex_shape
        return nx * ny * nz

    def vertex_index(self, i: int, j: int, k: int) -> int:
        """Flat index of vertex (i, j, k)."""
        nx, ny, _ = self.vertex_shape
        return i + nx * (j + ny * k)

    def vertex_positions(self) -> np.ndarray:
        """All vertex positions as a (V, 3) array in flat order."""
        zz, yy, xx = np.meshgrid(self.zs, self.ys, self.xs, indexing="ij")
        return np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])


def round_half_up(value: float) -> int:
    """Round halves away from zero for positive values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def build_grid(box: Box, density: float) -> Grid:
    """
    Build the padded vertex lattice for a box.

    The longest box axis gets ``round(density)`` cells and the other axes
    get a proportional count, so grid cells stay close to cubic.

    Args:
        box: Box dimensions
        density: Target cell count along the longest axis

    Returns:
        Grid covering the box with one padding layer on every side

    Raises:
        GridInvariantError: If dimensions or density are unusable
    """
    dims = (float(box.x), float(box.y), float(box.z))
    if not all(math.isfinite(d) and d > 0 for d in dims):
        raise GridInvariantError(f"Box dimensions must be positive and finite, got {dims}")
    if not math.isfinite(density):
        raise GridInvariantError(f"Grid density must be finite, got {density}")

    target_cells = max(MIN_AXIS_CELLS, round_half_up(density))
    cell_size = max(dims) / target_cells

    cells = tuple(max(MIN_AXIS_CELLS, round_half_up(d / cell_size)) for d in dims)
    step = tuple(d / c for d, c in zip(dims, cells))
    origin = tuple(-d * 0.5 - GRID_PADDING * s for d, s in zip(dims, step))

    axes = []
    for c, s, o in zip(cells, step, origin):
        n_vertices = c + 1 + 2 * GRID_PADDING
        if n_vertices <= 0 or s <= 0:
            raise GridInvariantError(
                f"Computed non-positive grid size: cells={cells}, step={step}"
            )
        axes.append(o + np.arange(n_vertices, dtype=np.float64) * s)

    grid = Grid(
        cells=cells,
        step=step,
        origin=origin,
        padding=GRID_PADDING,
        xs=axes[0],
        ys=axes[1],
        zs=axes[2],
    )
    logger.debug("Built grid", cells=cells, vertices=grid.vertex_count)
    return grid
