"""Tests for the cell registry and hide/show history."""

import pytest
import numpy as np
from py_mvoronoi.core.cell_registry import (
    CellRegistry, VisibilityDelta, VisibilityHistory
)
from py_mvoronoi.core.mesh_refiner import CellMesh


def make_mesh(index):
    return CellMesh(
        seed_index=index,
        positions=np.zeros((3, 3)),
        indices=np.array([[0, 2, 1]]),
        centroid=np.zeros(3),
        explode_direction=np.zeros(3),
    )


class TestVisibilityHistory:
    """Test hide/unhide/undo/redo semantics."""

    def test_initial_state(self):
        history = VisibilityHistory()

        assert history.hidden == frozenset()
        assert history.depth == 1
        assert not history.can_undo
        assert not history.can_redo

    def test_hide_undo_redo_roundtrip(self):
        """Test hide a, hide b, undo twice, redo twice."""
        history = VisibilityHistory()
        history.hide(1)
        history.hide(4)

        history.undo()
        history.undo()
        assert history.hidden == frozenset()

        history.redo()
        history.redo()
        assert history.hidden == frozenset({1, 4})

    def test_duplicate_hide_single_entry(self):
        """Test that hiding the same seed twice pushes once."""
        history = VisibilityHistory()

        assert history.hide(3) == [VisibilityDelta(3, True)]
        assert history.hide(3) == []
        assert history.depth == 2

    def test_hide_reports_only_target(self):
        history = VisibilityHistory()
        history.hide(2)

        assert history.hide(7) == [VisibilityDelta(7, True)]

    def test_unhide_all(self):
        """Test that unhide-all reports every hidden seed."""
        history = VisibilityHistory()
        history.hide(5)
        history.hide(2)

        deltas = history.unhide_all()

        assert deltas == [VisibilityDelta(2, False), VisibilityDelta(5, False)]
        assert history.hidden == frozenset()
        assert history.depth == 4

    def test_unhide_all_noop(self):
        history = VisibilityHistory()

        assert history.unhide_all() == []
        assert history.depth == 1

    def test_undo_underflow_noop(self):
        """Test that undo with only the initial state does nothing."""
        history = VisibilityHistory()

        assert history.undo() == []
        assert history.hidden == frozenset()

    def test_redo_empty_noop(self):
        history = VisibilityHistory()
        history.hide(1)

        assert history.redo() == []
        assert history.hidden == frozenset({1})

    def test_undo_redo_deltas(self):
        history = VisibilityHistory()
        history.hide(1)

        assert history.undo() == [VisibilityDelta(1, False)]
        assert history.redo() == [VisibilityDelta(1, True)]

    def test_new_action_clears_redo(self):
        """Test that diverging after an undo drops the redo stack."""
        history = VisibilityHistory()
        history.hide(1)
        history.undo()
        assert history.can_redo

        history.hide(2)

        assert not history.can_redo
        assert history.redo() == []
        assert history.hidden == frozenset({2})

    def test_history_bounded(self):
        """Test that the oldest snapshots are discarded."""
        history = VisibilityHistory(limit=5)
        for i in range(10):
            history.hide(i)

        assert history.depth == 5
        for _ in range(10):
            history.undo()
        assert history.hidden == frozenset({0, 1, 2, 3, 4, 5})

    def test_redo_bounded(self):
        history = VisibilityHistory(limit=3)
        for i in range(3):
            history.hide(i)
        for _ in range(3):
            history.undo()

        assert history.can_redo
        assert len(history._redo) <= 3

    def test_reset(self):
        history = VisibilityHistory()
        history.hide(1)
        history.hide(2)
        history.undo()

        history.reset()

        assert history.hidden == frozenset()
        assert history.depth == 1
        assert not history.can_redo

    def test_transition_is_pure(self):
        """Test that computing a transition does not change state."""
        history = VisibilityHistory()
        history.hide(1)
        history.hide(3)

        deltas = history.transition({3, 4})

        assert deltas == [VisibilityDelta(1, False), VisibilityDelta(4, True)]
        assert history.hidden == frozenset({1, 3})


class TestCellRegistry:
    """Test mesh storage and visibility mirroring."""

    def test_replace_and_get(self):
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0), None, make_mesh(2)], reset_visibility=True)

        assert registry.seed_count == 3
        assert registry.get(0).seed_index == 0
        assert registry.get(1) is None
        assert registry.get(9) is None

    def test_hide_mirrors_onto_mesh(self):
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0), make_mesh(1)], reset_visibility=True)

        registry.hide(1)

        assert registry.get(1).hidden
        assert not registry.get(0).hidden

        registry.undo()
        assert not registry.get(1).hidden

    def test_hide_absent_cell(self):
        """Test that seeds without a mesh can still be hidden."""
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0), None], reset_visibility=True)

        assert registry.hide(1) == [VisibilityDelta(1, True)]
        assert registry.hidden == frozenset({1})

    def test_hide_out_of_range(self):
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0)], reset_visibility=True)

        with pytest.raises(IndexError):
            registry.hide(3)
        with pytest.raises(IndexError):
            registry.hide(-1)

    def test_new_generation_keeps_hidden(self):
        """Test that hidden seeds stay hidden across a rebuild."""
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0), make_mesh(1)], reset_visibility=True)
        registry.hide(0)

        registry.replace_cells([make_mesh(0), make_mesh(1)], reset_visibility=False)

        assert registry.get(0).hidden
        assert registry.hidden == frozenset({0})
        assert registry.history.can_undo

    def test_new_generation_with_reset(self):
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0), make_mesh(1)], reset_visibility=True)
        registry.hide(0)

        registry.replace_cells([make_mesh(0), make_mesh(1)], reset_visibility=True)

        assert not registry.get(0).hidden
        assert registry.hidden == frozenset()
        assert not registry.history.can_undo

    def test_snapshot(self):
        """Test that the snapshot reflects hidden set and stack state together."""
        registry = CellRegistry()
        registry.replace_cells([make_mesh(0), make_mesh(1)], reset_visibility=True)
        assert registry.snapshot() == (frozenset(), False, False)

        registry.hide(1)
        assert registry.snapshot() == (frozenset({1}), True, False)

        registry.undo()
        assert registry.snapshot() == (frozenset(), False, True)
