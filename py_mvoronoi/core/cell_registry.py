"""Per-seed cell storage and hide/show history."""

import threading
from collections import deque
from typing import FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

import structlog

from .mesh_refiner import CellMesh

logger = structlog.get_logger()

HISTORY_LIMIT = 50


class VisibilityDelta(NamedTuple):
    """A seed whose hidden state changes, and its target state."""
    seed_index: int
    hidden: bool


class VisibilityHistory:
    """
    Hidden-seed set with bounded undo/redo.

    History always holds at least the initial empty set. Pushing a set equal
    to the current top is skipped, so repeated hides of the same seed leave a
    single entry.
    """

    def __init__(self, limit: int = HISTORY_LIMIT):
        self.limit = max(1, int(limit))
        self._hidden: FrozenSet[int] = frozenset()
        self._history = deque([frozenset()], maxlen=self.limit)
        self._redo = deque(maxlen=self.limit)

    @property
    def hidden(self) -> FrozenSet[int]:
        return self._hidden

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 1

    @property
    def can_redo(self) -> bool:
        return len(self._redo) > 0

    @property
    def depth(self) -> int:
        """Number of snapshots on the history stack."""
        return len(self._history)

    def transition(self, target: Iterable[int]) -> List[VisibilityDelta]:
        """Deltas needed to go from the current hidden set to ``target``."""
        target = frozenset(target)
        changed = self._hidden.symmetric_difference(target)
        return [VisibilityDelta(i, i in target) for i in sorted(changed)]

    def _apply(self, target: FrozenSet[int]) -> List[VisibilityDelta]:
        deltas = self.transition(target)
        self._hidden = target
        return deltas

    def _push(self, snapshot: FrozenSet[int]) -> None:
        if self._history[-1] == snapshot:
            return
        self._history.append(snapshot)
        self._redo.clear()

    def hide(self, seed_index: int) -> List[VisibilityDelta]:
        if seed_index in self._hidden:
            return []
        candidate = self._hidden | {seed_index}
        deltas = self._apply(candidate)
        self._push(candidate)
        return deltas

    def unhide_all(self) -> List[VisibilityDelta]:
        if not self._hidden:
            return []
        empty = frozenset()
        deltas = self._apply(empty)
        self._push(empty)
        return deltas

    def undo(self) -> List[VisibilityDelta]:
        if len(self._history) <= 1:
            return []
        self._redo.append(self._history.pop())
        return self._apply(self._history[-1])

    def redo(self) -> List[VisibilityDelta]:
        if not self._redo:
            return []
        snapshot = self._redo.pop()
        self._history.append(snapshot)
        return self._apply(snapshot)

    def reset(self) -> None:
        """Forget everything: nothing hidden, history back to the empty set."""
        self._hidden = frozenset()
        self._history.clear()
        self._history.append(frozenset())
        self._redo.clear()


class CellRegistry:
    """
    Current generation of cell meshes, indexed by seed.

    Slots are None for seeds that produced no geometry. The hidden set
    outlives rebuilds and is mirrored onto each new generation of meshes.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self._lock = threading.RLock()
        self._cells: List[Optional[CellMesh]] = []
        self.history = VisibilityHistory(history_limit)

    @property
    def cells(self) -> List[Optional[CellMesh]]:
        with self._lock:
            return list(self._cells)

    @property
    def seed_count(self) -> int:
        with self._lock:
            return len(self._cells)

    @property
    def hidden(self) -> FrozenSet[int]:
        with self._lock:
            return self.history.hidden

    def snapshot(self) -> Tuple[FrozenSet[int], bool, bool]:
        """(hidden, can_undo, can_redo) read in one critical section."""
        with self._lock:
            history = self.history
            return history.hidden, history.can_undo, history.can_redo

    def get(self, seed_index: int) -> Optional[CellMesh]:
        with self._lock:
            if 0 <= seed_index < len(self._cells):
                return self._cells[seed_index]
            return None

    def replace_cells(self, cells: List[Optional[CellMesh]], reset_visibility: bool) -> None:
        """Install a new generation of meshes, dropping the previous one."""
        with self._lock:
            if reset_visibility:
                self.history.reset()
            self._cells = list(cells)
            hidden = self.history.hidden
            for mesh in self._cells:
                if mesh is not None:
                    mesh.hidden = mesh.seed_index in hidden
            logger.debug(
                "Installed cell generation",
                seeds=len(self._cells),
                hidden=len(hidden),
                reset=reset_visibility,
            )

    def _mirror(self, deltas: List[VisibilityDelta]) -> List[VisibilityDelta]:
        for delta in deltas:
            if 0 <= delta.seed_index < len(self._cells):
                mesh = self._cells[delta.seed_index]
                if mesh is not None:
                    mesh.hidden = delta.hidden
        return deltas

    def hide(self, seed_index: int) -> List[VisibilityDelta]:
        with self._lock:
            if not 0 <= seed_index < len(self._cells):
                raise IndexError(
                    f"Seed index {seed_index} out of range for {len(self._cells)} seeds"
                )
            return self._mirror(self.history.hide(seed_index))

    def unhide_all(self) -> List[VisibilityDelta]:
        with self._lock:
            return self._mirror(self.history.unhide_all())

    def undo(self) -> List[VisibilityDelta]:
        with self._lock:
            return self._mirror(self.history.undo())

    def redo(self) -> List[VisibilityDelta]:
        with self._lock:
            return self._mirror(self.history.redo())

    def transition(self, target: Iterable[int]) -> List[VisibilityDelta]:
        with self._lock:
            return self.history.transition(target)
