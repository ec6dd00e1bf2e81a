"""Tests for rebuild orchestration."""

import pytest
import numpy as np
from py_mvoronoi.core.distance_field import assign_nearest_seeds
from py_mvoronoi.core.engine import (
    CellParameters,
    RebuildStats,
    VoronoiSolidEngine,
    build_cells,
    collect_stats,
)
from py_mvoronoi.core.grid_builder import Box, build_grid


@pytest.fixture
def engine():
    return VoronoiSolidEngine()


def params(**overrides):
    values = dict(box=Box(10, 10, 10), seed_count=3, seed_value=7, density=8, smoothing=0)
    values.update(overrides)
    return CellParameters(**values)


class TestCellParameters:
    """Test parameter clamping and composition."""

    def test_clamped_lower_bounds(self):
        raw = CellParameters(Box(1, 0.5, 20), seed_count=0, seed_value=-3, density=2, smoothing=-1)

        clamped = raw.clamped()

        assert clamped.box == Box(2.0, 2.0, 20.0)
        assert clamped.seed_count == 1
        assert clamped.seed_value == 0
        assert clamped.density == 6.0
        assert clamped.smoothing == 0

    def test_clamped_keeps_valid_values(self):
        raw = params()

        assert raw.clamped() == CellParameters(Box(10.0, 10.0, 10.0), 3, 7, 8.0, 0)

    def test_composition_key_ignores_density_and_smoothing(self):
        assert params(density=8).composition_key == params(density=20, smoothing=4).composition_key
        assert params().composition_key != params(seed_value=8).composition_key
        assert params().composition_key != params(seed_count=4).composition_key
        assert params().composition_key != params(box=Box(10, 10, 12)).composition_key


class TestRebuildStats:
    """Test the aggregate statistics line."""

    def test_summary_format(self):
        stats = RebuildStats(12, 12, 100, 60, density=24.0, smoothing=2)

        assert stats.summary() == "Seeds: 12 | Density: 24 | Smooth: 2"

    def test_summary_fractional_density(self):
        stats = RebuildStats(3, 3, 0, 0, density=12.5, smoothing=0)

        assert stats.summary() == "Seeds: 3 | Density: 12.5 | Smooth: 0"

    def test_collect_stats_skips_absent(self, engine):
        result = engine.rebuild(params())
        cells = list(result.cells) + [None]

        stats = collect_stats(result.parameters, cells)

        assert stats.seed_count == 4
        assert stats.cell_count == 3
        assert stats.triangle_count == sum(c.triangle_count for c in result.cells)


class TestBuildCells:
    """Test per-seed extraction with explicit seeds."""

    def test_symmetric_seeds(self):
        """Test four symmetric seeds give four cells inside the box."""
        box = Box(10, 10, 10)
        seeds = np.array([
            [-2.5, -2.5, 0.0],
            [2.5, -2.5, 0.0],
            [-2.5, 2.5, 0.0],
            [2.5, 2.5, 0.0],
        ])
        grid = build_grid(box, 10)
        field = assign_nearest_seeds(seeds, grid, box)

        cells = build_cells(seeds, grid, field, box, smoothing=0)

        assert len(cells) == 4
        for index, mesh in enumerate(cells):
            assert mesh is not None
            assert mesh.seed_index == index
            world = mesh.world_positions()
            assert np.all(np.abs(world) <= 5.0 + 1e-9)
            assert mesh.signed_volume > 0

    def test_explode_directions_point_at_quadrants(self):
        box = Box(10, 10, 10)
        seeds = np.array([[-2.5, 0.0, 0.0], [2.5, 0.0, 0.0]])
        grid = build_grid(box, 10)
        field = assign_nearest_seeds(seeds, grid, box)

        left, right = build_cells(seeds, grid, field, box, smoothing=0)

        assert left.explode_direction[0] < 0
        assert right.explode_direction[0] > 0
        np.testing.assert_allclose(np.linalg.norm(left.explode_direction), 1.0)

    def test_seed_without_vertices(self):
        """Test that a seed losing every vertex to a tie has no mesh."""
        box = Box(10, 10, 10)
        seeds = np.array([[-2.5, 0.0, 0.0], [-2.5, 0.0, 0.0], [2.5, 0.0, 0.0]])
        grid = build_grid(box, 10)
        field = assign_nearest_seeds(seeds, grid, box)

        cells = build_cells(seeds, grid, field, box, smoothing=0)

        assert cells[0] is not None
        assert cells[1] is None
        assert cells[2] is not None

    def test_single_seed_fills_box(self):
        """Test that a lone seed's clamped cell encloses the whole box."""
        box = Box(10, 10, 10)
        seeds = np.zeros((1, 3))
        grid = build_grid(box, 10)
        field = assign_nearest_seeds(seeds, grid, box)

        (mesh,) = build_cells(seeds, grid, field, box, smoothing=0)

        assert mesh.signed_volume == pytest.approx(1000.0, rel=1e-6)
        np.testing.assert_allclose(mesh.centroid, [0.0, 0.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(mesh.explode_direction, [0.0, 0.0, 0.0])


class TestVoronoiSolidEngine:
    """Test full rebuilds and visibility carry-over."""

    def test_single_seed_rebuild(self, engine):
        result = engine.rebuild(params(seed_count=1, density=6))

        assert len(result.cells) == 1
        assert result.cells[0].signed_volume == pytest.approx(1000.0, rel=1e-6)
        assert engine.registry.get(0) is result.cells[0]

    def test_rebuild_stats(self, engine):
        result = engine.rebuild(params(smoothing=1))

        assert result.stats.seed_count == 3
        assert result.stats.cell_count == 3
        assert result.stats.triangle_count == sum(c.triangle_count for c in result.cells)
        assert result.stats.summary() == "Seeds: 3 | Density: 8 | Smooth: 1"
        assert engine.last_result is result

    def test_rebuild_deterministic(self, engine):
        first = engine.rebuild(params(smoothing=2))
        second = engine.rebuild(params(smoothing=2))

        np.testing.assert_array_equal(first.seeds, second.seeds)
        for a, b in zip(first.cells, second.cells):
            np.testing.assert_array_equal(a.positions, b.positions)
            np.testing.assert_array_equal(a.indices, b.indices)

    def test_cells_stay_inside_box(self, engine):
        result = engine.rebuild(params(seed_count=6, smoothing=3))

        for mesh in result.cells:
            if mesh is not None:
                assert np.all(np.abs(mesh.world_positions()) <= 5.0 + 1e-9)

    def test_hidden_survives_density_change(self, engine):
        engine.rebuild(params())
        engine.registry.hide(1)

        engine.rebuild(params(density=10, smoothing=2))

        assert engine.registry.hidden == frozenset({1})
        assert engine.registry.get(1).hidden
        assert not engine.registry.get(0).hidden

    def test_hidden_reset_on_composition_change(self, engine):
        engine.rebuild(params())
        engine.registry.hide(1)

        engine.rebuild(params(seed_value=8))

        assert engine.registry.hidden == frozenset()
        assert not engine.registry.history.can_undo

    def test_clamped_rebuild(self, engine):
        result = engine.rebuild(CellParameters(Box(1, 1, 1), seed_count=0, seed_value=-1, density=1))

        assert result.parameters.box == Box(2.0, 2.0, 2.0)
        assert len(result.seeds) == 1
        assert result.cells[0] is not None

    def test_degenerate_box_unclamped(self, engine):
        """Test that a zero-volume box yields no cells."""
        result = engine.rebuild(params(box=Box(0, 10, 10)), clamp=False)

        assert result.cells == [None, None, None]
        assert result.grid is None
        assert result.stats.cell_count == 0
        assert engine.registry.seed_count == 3
