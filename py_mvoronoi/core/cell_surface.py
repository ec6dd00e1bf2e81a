"""
Per-seed iso-surface extraction from the assignment field.

Each seed's region is treated as a binary scalar field (1 where a vertex
belongs to the seed, 0 elsewhere) and polygonised with marching cubes at the
0.5 level. The binary field gives a faceted, staircase-like boundary; the
mesh refiner's smoothing pass softens it.
"""

import numpy as np
import structlog

from .distance_field import AssignmentField
from .grid_builder import Grid
from .mc_tables import (
    CORNER_OFFSETS,
    EDGE_CORNERS,
    EDGE_TABLE,
    MAX_TRIANGLES_PER_CELL,
    TRI_TABLE,
)

logger = structlog.get_logger()

ISO_LEVEL = 0.5


def interpolation_factor(v1, v2, iso: float = ISO_LEVEL) -> np.ndarray:
    """
    Position of the iso crossing along an edge, as a fraction from v1 to v2.

    Equal endpoint values have no crossing; 0.5 is returned for them.
    """
    v1 = np.asarray(v1, dtype=np.float64)
    v2 = np.asarray(v2, dtype=np.float64)
    delta = v2 - v1
    flat = delta == 0
    return np.where(flat, 0.5, (iso - v1) / np.where(flat, 1.0, delta))


def _corner_values(scalar: np.ndarray) -> np.ndarray:
    """Stack the 8 corner values of every cell: shape (8, cz, cy, cx)."""
    nz, ny, nx = scalar.shape
    corners = np.empty((8, nz - 1, ny - 1, nx - 1), dtype=scalar.dtype)
    for k, (dx, dy, dz) in enumerate(CORNER_OFFSETS):
        corners[k] = scalar[dz:dz + nz - 1, dy:dy + ny - 1, dx:dx + nx - 1]
    return corners


def _codes_from_corners(corners: np.ndarray, iso: float) -> np.ndarray:
    codes = np.zeros(corners.shape[1:], dtype=np.int32)
    for k in range(8):
        codes |= (corners[k] > iso).astype(np.int32) << k
    return codes


def classify_cells(scalar: np.ndarray, iso: float = ISO_LEVEL) -> np.ndarray:
    """
    Cube classification for a (nz, ny, nx) scalar volume.

    Bit k of a cell's code is set when corner k is above the iso level.

    Returns:
        int32 array of shape (nz - 1, ny - 1, nx - 1)
    """
    return _codes_from_corners(_corner_values(scalar), iso)


def extract_cell_surface(
    seed_index: int,
    grid: Grid,
    field: AssignmentField,
    iso: float = ISO_LEVEL,
) -> np.ndarray:
    """
    Extract the raw triangle soup bounding one seed's region.

    Cells are visited x-fastest, then y, then z, and each cell emits its
    triangles in table order.

    Args:
        seed_index: Seed whose region is polygonised
        grid: Vertex lattice the field was sampled on
        field: Nearest-seed assignment per vertex
        iso: Threshold for the binary field

    Returns:
        Triangle corner positions, shape (T * 3, 3). Empty when the seed's
        region never crosses the threshold.
    """
    scalar = (field.as_volume() == seed_index).astype(np.float64)
    if not scalar.any():
        return np.empty((0, 3), dtype=np.float64)

    corners = _corner_values(scalar)
    codes = _codes_from_corners(corners, iso)

    flat_codes = codes.ravel()
    active = np.flatnonzero(EDGE_TABLE[flat_codes] != 0)
    if len(active) == 0:
        return np.empty((0, 3), dtype=np.float64)

    cell_z, cell_y, cell_x = np.unravel_index(active, codes.shape)
    cell_origin = np.column_stack([cell_x, cell_y, cell_z]).astype(np.float64)
    active_values = corners.reshape(8, -1)[:, active]

    slots = TRI_TABLE[flat_codes[active], : MAX_TRIANGLES_PER_CELL * 3]
    slots = slots.reshape(-1, MAX_TRIANGLES_PER_CELL, 3)
    # nonzero walks in C order: by cell, then by triangle within the cell
    owner, slot = np.nonzero(slots[:, :, 0] >= 0)
    edges = slots[owner, slot].ravel()
    owner = np.repeat(owner, 3)

    c1 = EDGE_CORNERS[edges, 0]
    c2 = EDGE_CORNERS[edges, 1]
    t = interpolation_factor(active_values[c1, owner], active_values[c2, owner], iso)

    p1 = cell_origin[owner] + CORNER_OFFSETS[c1]
    p2 = cell_origin[owner] + CORNER_OFFSETS[c2]
    lattice = p1 + t[:, None] * (p2 - p1)

    positions = np.asarray(grid.origin) + lattice * np.asarray(grid.step)
    logger.debug(
        "Extracted cell surface",
        seed=seed_index,
        cells=len(active),
        triangles=len(positions) // 3,
    )
    return positions
