"""Tests for welding, smoothing, clamping and winding of cell meshes."""

import pytest
import numpy as np
from py_mvoronoi.core.grid_builder import Box, build_grid
from py_mvoronoi.core.distance_field import AssignmentField
from py_mvoronoi.core.cell_surface import extract_cell_surface
from py_mvoronoi.core.mesh_refiner import (
    CellMesh, clamp_to_box, derive_cell_frame, flip_winding,
    laplacian_smooth, refine_cell_mesh, vertex_adjacency, weld_vertices
)


@pytest.fixture
def octahedron_soup():
    """Raw marching cubes output around the lattice vertex at (1, 0, 0)."""
    grid = build_grid(Box(4, 4, 4), 4)
    values = np.zeros(grid.vertex_count, dtype=np.int32)
    values[grid.vertex_index(4, 3, 3)] = 1
    field = AssignmentField(values=values, shape=grid.vertex_shape)
    return extract_cell_surface(1, grid, field)


class TestWeld:
    """Test vertex welding."""

    def test_octahedron_weld(self, octahedron_soup):
        """Test that shared corners collapse to six vertices."""
        vertices, faces = weld_vertices(octahedron_soup)

        assert vertices.shape == (6, 3)
        assert faces.shape == (8, 3)
        np.testing.assert_allclose(vertices[faces].reshape(-1, 3), octahedron_soup)

    def test_weld_idempotent(self, octahedron_soup):
        """Test that re-welding a welded mesh changes nothing."""
        vertices, faces = weld_vertices(octahedron_soup)
        vertices2, faces2 = weld_vertices(vertices[faces].reshape(-1, 3))

        assert len(vertices2) == len(vertices)
        np.testing.assert_array_equal(vertices2, vertices)
        np.testing.assert_array_equal(faces2, faces)

    def test_first_occurrence_kept(self):
        """Test that vertices keep first-seen order and position."""
        soup = np.array([
            [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0],
            [1.00002, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, 0.0],
        ])
        vertices, faces = weld_vertices(soup, tolerance=1e-4)

        assert len(vertices) == 4
        np.testing.assert_array_equal(vertices[0], [1.0, 0.0, 0.0])
        np.testing.assert_array_equal(faces, [[0, 1, 2], [0, 2, 3]])

    def test_distant_vertices_not_merged(self):
        soup = np.array([[0.0, 0.0, 0.0], [0.001, 0.0, 0.0], [0.0, 1.0, 0.0]])
        vertices, _ = weld_vertices(soup, tolerance=1e-4)

        assert len(vertices) == 3

    def test_empty(self):
        vertices, faces = weld_vertices(np.empty((0, 3)))

        assert vertices.shape == (0, 3)
        assert faces.shape == (0, 3)


class TestSmoothing:
    """Test Laplacian relaxation."""

    def test_zero_iterations_unchanged(self, octahedron_soup):
        """Test that no passes leave positions bit-for-bit identical."""
        vertices, faces = weld_vertices(octahedron_soup)
        smoothed = laplacian_smooth(vertices, faces, 0)

        np.testing.assert_array_equal(smoothed, vertices)
        assert smoothed is not vertices

    def test_single_pass_triangle(self):
        """Test one simultaneous pass on a lone triangle."""
        vertices = np.array([[0.0, 0.0, 0.0], [3.0, 0.0, 0.0], [0.0, 3.0, 0.0]])
        faces = np.array([[0, 1, 2]])

        smoothed = laplacian_smooth(vertices, faces, 1, lam=0.5)

        np.testing.assert_allclose(smoothed[0], [0.75, 0.75, 0.0])
        np.testing.assert_allclose(smoothed[1], [1.5, 0.75, 0.0])
        np.testing.assert_allclose(smoothed[2], [0.75, 1.5, 0.0])

    def test_isolated_vertex_untouched(self):
        """Test that vertices without neighbours stay put."""
        vertices = np.array([
            [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [5.0, 5.0, 5.0],
        ])
        faces = np.array([[0, 1, 2]])

        smoothed = laplacian_smooth(vertices, faces, 3)

        np.testing.assert_array_equal(smoothed[3], [5.0, 5.0, 5.0])

    def test_order_independent(self, octahedron_soup):
        """Test that relabelling vertices does not change the result."""
        vertices, faces = weld_vertices(octahedron_soup)
        perm = np.array([4, 2, 0, 5, 1, 3])
        inverse = np.argsort(perm)

        direct = laplacian_smooth(vertices, faces, 2)
        relabelled = laplacian_smooth(vertices[perm], inverse[faces], 2)

        np.testing.assert_allclose(relabelled, direct[perm])

    def test_shrinks_toward_centre(self, octahedron_soup):
        """Test that smoothing pulls a convex shape inward."""
        vertices, faces = weld_vertices(octahedron_soup)
        centre = vertices.mean(axis=0)

        smoothed = laplacian_smooth(vertices, faces, 1)

        before = np.linalg.norm(vertices - centre, axis=1)
        after = np.linalg.norm(smoothed - centre, axis=1)
        assert np.all(after < before)

    def test_adjacency_symmetric(self, octahedron_soup):
        vertices, faces = weld_vertices(octahedron_soup)
        adjacency = vertex_adjacency(faces, len(vertices)).toarray()

        np.testing.assert_array_equal(adjacency, adjacency.T)
        # Every octahedron vertex touches four others
        np.testing.assert_array_equal(adjacency.sum(axis=1), 4)


class TestClampAndWinding:
    """Test box clamping and triangle winding."""

    def test_clamp_bounds(self):
        vertices = np.array([[3.0, -4.0, 0.5], [-0.2, 0.1, 9.0]])
        clamped = clamp_to_box(vertices, (1.0, 2.0, 3.0))

        np.testing.assert_array_equal(clamped, [[1.0, -2.0, 0.5], [-0.2, 0.1, 3.0]])

    def test_clamp_idempotent(self):
        """Test that clamping twice equals clamping once."""
        rng = np.random.default_rng(0)
        vertices = rng.uniform(-10, 10, size=(100, 3))
        once = clamp_to_box(vertices, (2.0, 3.0, 4.0))

        np.testing.assert_array_equal(clamp_to_box(once, (2.0, 3.0, 4.0)), once)

    def test_flip_indexed(self):
        faces = np.array([[0, 1, 2], [3, 4, 5]])

        np.testing.assert_array_equal(flip_winding(faces), [[0, 2, 1], [3, 5, 4]])

    def test_flip_positions(self):
        positions = np.arange(18, dtype=float).reshape(6, 3)
        flipped = flip_winding(positions, indexed=False)

        np.testing.assert_array_equal(flipped[1], positions[2])
        np.testing.assert_array_equal(flipped[2], positions[1])
        np.testing.assert_array_equal(flipped[0], positions[0])
        np.testing.assert_array_equal(flipped[4], positions[5])


class TestCellFrame:
    """Test centroid and explode direction."""

    def test_centroid_is_bbox_centre(self):
        vertices = np.array([[0.0, 0.0, 0.0], [4.0, 2.0, 0.0], [1.0, 0.0, 6.0]])
        local, centroid, direction = derive_cell_frame(vertices)

        np.testing.assert_allclose(centroid, [2.0, 1.0, 3.0])
        np.testing.assert_allclose(local + centroid, vertices)
        assert np.linalg.norm(direction) == pytest.approx(1.0)

    def test_origin_centroid_has_zero_direction(self):
        vertices = np.array([[-1.0, -1.0, -1.0], [1.0, 1.0, 1.0], [0.0, 1.0, 0.0]])
        _, centroid, direction = derive_cell_frame(vertices)

        np.testing.assert_allclose(centroid, 0.0)
        np.testing.assert_array_equal(direction, [0.0, 0.0, 0.0])


class TestRefine:
    """Test the full refinement chain."""

    def test_empty_soup(self):
        assert refine_cell_mesh(0, np.empty((0, 3)), 2, (5, 5, 5)) is None

    def test_octahedron_mesh(self, octahedron_soup):
        """Test metadata and outward winding of a refined octahedron."""
        mesh = refine_cell_mesh(1, octahedron_soup, 0, (2.0, 2.0, 2.0))

        assert isinstance(mesh, CellMesh)
        assert mesh.seed_index == 1
        assert mesh.vertex_count == 6
        assert mesh.triangle_count == 8
        np.testing.assert_allclose(mesh.centroid, [1.0, 0.0, 0.0])
        np.testing.assert_allclose(mesh.explode_direction, [1.0, 0.0, 0.0])
        assert mesh.signed_volume == pytest.approx(1.0 / 6.0)
        assert not mesh.hidden

    def test_refined_mesh_inside_box(self, octahedron_soup):
        """Test that clamping keeps world positions inside the box."""
        mesh = refine_cell_mesh(1, octahedron_soup, 3, (1.2, 0.3, 0.3))

        assert np.all(np.abs(mesh.world_positions()) <= np.array([1.2, 0.3, 0.3]) + 1e-12)
