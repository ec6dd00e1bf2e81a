"""Seed point sampling inside the box."""

import numpy as np
import structlog

from .grid_builder import Box
from .mulberry_prng import Mulberry32

logger = structlog.get_logger()


def generate_seeds(count: int, box: Box, seed_value: int) -> np.ndarray:
    """
    Sample seed positions uniformly inside the origin-centred box.

    Each point draws x, y and z in that order from one fresh generator, so
    the first ``k`` points of a larger request equal a request for ``k``
    points with the same seed value.

    Args:
        count: Number of seed points
        box: Box dimensions
        seed_value: Integer seed for the generator

    Returns:
        Array of shape (count, 3) with [x, y, z] seed positions
    """
    count = int(count)
    if count <= 0:
        return np.empty((0, 3), dtype=np.float64)

    prng = Mulberry32(seed_value)
    half_x, half_y, half_z = box.half_extents

    points = np.empty((count, 3), dtype=np.float64)
    for i in range(count):
        points[i, 0] = (prng.random() * 2 - 1) * half_x
        points[i, 1] = (prng.random() * 2 - 1) * half_y
        points[i, 2] = (prng.random() * 2 - 1) * half_z

    logger.debug("Generated seed points", count=count, seed=seed_value)
    return points
