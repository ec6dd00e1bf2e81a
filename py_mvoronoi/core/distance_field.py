"""Nearest-seed assignment over the grid using Manhattan distance."""

from dataclasses import dataclass

import numpy as np
import structlog

from .grid_builder import Box, Grid

logger = structlog.get_logger()

UNASSIGNED = -1

# Inflates the box so vertices sitting on its walls are not lost to
# floating point error in the lattice coordinates.
BOX_EPSILON = 1e-6


@dataclass
class AssignmentField:
    """Nearest seed index per grid vertex, -1 outside the box.

    ``values`` is flat in x-fastest, then y, then z order.
    """
    values: np.ndarray
    shape: tuple  # (nx, ny, nz)

    def as_volume(self) -> np.ndarray:
        """View the field as a (nz, ny, nx) array."""
        nx, ny, nz = self.shape
        return self.values.reshape(nz, ny, nx)

    @property
    def assigned_count(self) -> int:
        return int(np.count_nonzero(self.values != UNASSIGNED))


def inside_box_mask(grid: Grid, box: Box, epsilon: float = BOX_EPSILON) -> np.ndarray:
    """Flat boolean mask of vertices inside the epsilon-inflated box."""
    half_x, half_y, half_z = box.half_extents
    in_x = np.abs(grid.xs) <= half_x + epsilon
    in_y = np.abs(grid.ys) <= half_y + epsilon
    in_z = np.abs(grid.zs) <= half_z + epsilon
    mask = in_z[:, None, None] & in_y[None, :, None] & in_x[None, None, :]
    return mask.ravel()


def assign_nearest_seeds(seeds: np.ndarray, grid: Grid, box: Box) -> AssignmentField:
    """
    Label every grid vertex with its nearest seed.

    Seeds are scanned in index order and a seed only takes over a vertex when
    it is strictly closer, so ties go to the lowest seed index.

    Args:
        seeds: Seed positions, shape (N, 3)
        grid: Vertex lattice
        box: Box the seeds live in

    Returns:
        AssignmentField with one label per grid vertex
    """
    seeds = np.asarray(seeds, dtype=np.float64).reshape(-1, 3)
    values = np.full(grid.vertex_count, UNASSIGNED, dtype=np.int32)

    inside = inside_box_mask(grid, box)
    if len(seeds) == 0 or not np.any(inside):
        logger.info("No assignable vertices", seeds=len(seeds))
        return AssignmentField(values=values, shape=grid.vertex_shape)

    points = grid.vertex_positions()[inside]
    labels = np.full(len(points), UNASSIGNED, dtype=np.int32)
    best = np.full(len(points), np.inf, dtype=np.float64)

    for index, seed in enumerate(seeds):
        distance = np.abs(points - seed).sum(axis=1)
        closer = distance < best
        best[closer] = distance[closer]
        labels[closer] = index

    values[inside] = labels
    logger.debug(
        "Assigned grid vertices",
        seeds=len(seeds),
        vertices=grid.vertex_count,
        assigned=int(inside.sum()),
    )
    return AssignmentField(values=values, shape=grid.vertex_shape)


def cell_vertex_counts(field: AssignmentField, n_seeds: int) -> np.ndarray:
    """Number of grid vertices assigned to each seed."""
    assigned = field.values[field.values != UNASSIGNED]
    return np.bincount(assigned, minlength=n_seeds)[:n_seeds]
