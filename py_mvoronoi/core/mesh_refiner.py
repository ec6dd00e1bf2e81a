"""
Mesh post-processing for extracted cell surfaces.

Turns marching-cubes triangle soup into an indexed, smoothed cell mesh:
1. Weld duplicate vertices into a shared topology.
2. Relax vertices with Laplacian smoothing.
3. Clamp vertices back inside the box.
4. Flip triangle winding to face outward.
5. Re-express the mesh around its own bounding-box centre.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy import sparse

logger = structlog.get_logger()

WELD_TOLERANCE = 1e-4
SMOOTHING_LAMBDA = 0.5


@dataclass
class CellMesh:
    """Refined surface of one seed's cell.

    ``positions`` are relative to ``centroid`` so the cell scales and
    translates around its own centre.
    """
    seed_index: int
    positions: np.ndarray
    indices: Optional[np.ndarray]
    centroid: np.ndarray
    explode_direction: np.ndarray
    hidden: bool = field(default=False)

    @property
    def triangle_count(self) -> int:
        if self.indices is not None:
            return int(len(self.indices))
        return int(len(self.positions) // 3)

    @property
    def vertex_count(self) -> int:
        return int(len(self.positions))

    def world_positions(self) -> np.ndarray:
        """Vertex positions in box coordinates."""
        return self.positions + self.centroid

    def triangles(self) -> np.ndarray:
        """Triangle corners in box coordinates, shape (T, 3, 3)."""
        world = self.world_positions()
        if self.indices is not None:
            return world[self.indices]
        return world.reshape(-1, 3, 3)

    @property
    def signed_volume(self) -> float:
        """Enclosed volume; positive when triangles wind outward."""
        tri = self.triangles()
        if len(tri) == 0:
            return 0.0
        return float(np.einsum("ij,ij->i", tri[:, 0], np.cross(tri[:, 1], tri[:, 2])).sum() / 6.0)


def weld_vertices(
    positions: np.ndarray, tolerance: float = WELD_TOLERANCE
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Merge vertices that quantize to the same tolerance bucket.

    The first position seen in a bucket is kept and vertices stay in order
    of first appearance, so welding an already welded mesh is a no-op.

    Args:
        positions: Triangle soup corners, shape (T * 3, 3)
        tolerance: Quantization step

    Returns:
        (vertices, faces) with faces of shape (T, 3)
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    if len(positions) == 0:
        return np.empty((0, 3), dtype=np.float64), np.empty((0, 3), dtype=np.int64)

    keys = np.round(positions / tolerance).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)

    order = np.argsort(first, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))

    vertices = positions[first[order]]
    faces = rank[inverse].reshape(-1, 3)
    return vertices, faces


def vertex_adjacency(faces: np.ndarray, n_vertices: int) -> sparse.csr_matrix:
    """Symmetric 0/1 vertex adjacency matrix from triangle edges."""
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    edges = np.concatenate([faces[:, [0, 1]], faces[:, [1, 2]], faces[:, [2, 0]]])
    rows = np.concatenate([edges[:, 0], edges[:, 1]])
    cols = np.concatenate([edges[:, 1], edges[:, 0]])
    keep = rows != cols
    rows, cols = rows[keep], cols[keep]

    adjacency = sparse.coo_matrix(
        (np.ones(len(rows), dtype=np.float64), (rows, cols)),
        shape=(n_vertices, n_vertices),
    ).tocsr()
    # Duplicate edges were summed on conversion
    adjacency.data[:] = 1.0
    return adjacency


def laplacian_smooth(
    vertices: np.ndarray,
    faces: np.ndarray,
    iterations: int,
    lam: float = SMOOTHING_LAMBDA,
) -> np.ndarray:
    """
    Move each vertex toward the mean of its neighbours.

    Every pass reads the previous pass's positions only, so the result does
    not depend on vertex order. Vertices without neighbours stay put.

    Args:
        vertices: Vertex positions, shape (V, 3)
        faces: Triangle indices, shape (T, 3)
        iterations: Number of passes (0 returns a copy of the input)
        lam: Step toward the neighbour mean per pass

    Returns:
        Smoothed vertex positions
    """
    current = np.array(vertices, dtype=np.float64, copy=True)
    iterations = int(iterations)
    if iterations <= 0 or len(current) == 0 or len(faces) == 0:
        return current

    adjacency = vertex_adjacency(faces, len(current))
    degree = np.asarray(adjacency.sum(axis=1)).ravel()
    connected = degree > 0

    for _ in range(iterations):
        neighbour_mean = (adjacency @ current)[connected] / degree[connected, None]
        updated = current.copy()
        updated[connected] = current[connected] + lam * (neighbour_mean - current[connected])
        current = updated

    return current


def clamp_to_box(vertices: np.ndarray, half_extents: Sequence[float]) -> np.ndarray:
    """Clip coordinates component-wise to [-half, half]."""
    half = np.asarray(half_extents, dtype=np.float64)
    return np.clip(vertices, -half, half)


def flip_winding(buffer: np.ndarray, indexed: bool = True) -> np.ndarray:
    """
    Swap the second and third corner of every triangle.

    The lookup tables wind triangles toward the region's inside; swapping
    makes them face outward.

    Args:
        buffer: Faces (T, 3) when ``indexed``, else corner positions (T * 3, 3)
        indexed: Whether ``buffer`` is an index buffer
    """
    if indexed:
        return np.asarray(buffer)[:, [0, 2, 1]]
    corners = np.asarray(buffer).reshape(-1, 3, 3)
    return corners[:, [0, 2, 1]].reshape(-1, 3)


def derive_cell_frame(vertices: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Centre a mesh on its bounding box.

    Returns:
        (local_vertices, centroid, explode_direction). The explode direction
        is the unit centroid, or the zero vector for a centroid at the origin.
    """
    lo = vertices.min(axis=0)
    hi = vertices.max(axis=0)
    centroid = (lo + hi) * 0.5

    length = float(np.linalg.norm(centroid))
    if length < 1e-9:
        direction = np.zeros(3, dtype=np.float64)
    else:
        direction = centroid / length

    return vertices - centroid, centroid, direction


def refine_cell_mesh(
    seed_index: int,
    raw_positions: np.ndarray,
    iterations: int,
    half_extents: Sequence[float],
    tolerance: float = WELD_TOLERANCE,
    lam: float = SMOOTHING_LAMBDA,
) -> Optional[CellMesh]:
    """
    Run the full refinement chain on one seed's triangle soup.

    Returns:
        CellMesh, or None when the soup has no triangles
    """
    if len(raw_positions) == 0:
        return None

    vertices, faces = weld_vertices(raw_positions, tolerance)
    vertices = laplacian_smooth(vertices, faces, iterations, lam)
    vertices = clamp_to_box(vertices, half_extents)
    faces = flip_winding(faces, indexed=True)
    local, centroid, direction = derive_cell_frame(vertices)

    logger.debug(
        "Refined cell mesh",
        seed=seed_index,
        raw_vertices=len(raw_positions),
        welded_vertices=len(vertices),
        triangles=len(faces),
    )
    return CellMesh(
        seed_index=seed_index,
        positions=local,
        indices=faces,
        centroid=centroid,
        explode_direction=direction,
    )
