#!/usr/bin/env python3
"""
Simple demo script showing cell decomposition and visibility history.
"""

from py_mvoronoi.core import Box, CellParameters, VoronoiSolidEngine
from py_mvoronoi.log_config import configure_logging


def main():
    """Demonstrate a rebuild followed by some hide/undo/redo steps."""
    configure_logging("WARNING", "plain")

    print("Manhattan Voronoi Cells Demo")
    print("=" * 40)

    engine = VoronoiSolidEngine()
    parameters = CellParameters(
        box=Box(10, 10, 10),
        seed_count=8,
        seed_value=1,
        density=16,
        smoothing=2,
    )

    result = engine.rebuild(parameters)
    print(f"\n{result.stats.summary()}")
    print(f"Grid: {result.grid.cells} cells, step {tuple(round(s, 3) for s in result.grid.step)}")
    print(f"Elapsed: {result.stats.elapsed_seconds:.3f}s")

    print("\nCells:")
    print("-" * 30)
    for index, mesh in enumerate(result.cells):
        if mesh is None:
            print(f"  Seed {index}: no surface")
            continue
        cx, cy, cz = mesh.centroid
        print(
            f"  Seed {index}: {mesh.triangle_count} triangles, "
            f"volume {mesh.signed_volume:.2f}, centre ({cx:.2f}, {cy:.2f}, {cz:.2f})"
        )

    total = sum(m.signed_volume for m in result.cells if m is not None)
    print(f"\nTotal volume: {total:.2f} (box {10 * 10 * 10})")

    print("\nVisibility:")
    print("-" * 30)
    registry = engine.registry
    for label, action in [
        ("hide 2", lambda: registry.hide(2)),
        ("hide 5", lambda: registry.hide(5)),
        ("undo", registry.undo),
        ("redo", registry.redo),
        ("unhide all", registry.unhide_all),
        ("undo", registry.undo),
    ]:
        deltas = action()
        changes = ", ".join(f"{d.seed_index}->{'hidden' if d.hidden else 'shown'}" for d in deltas)
        print(f"  {label:<10} {changes or '(no change)'}  hidden={sorted(registry.hidden)}")

    # Changing density keeps the hidden set; a new seed value resets it
    engine.rebuild(CellParameters(parameters.box, 8, 1, density=24, smoothing=2))
    print(f"\nAfter density change: hidden={sorted(registry.hidden)}")
    engine.rebuild(CellParameters(parameters.box, 8, 2, density=24, smoothing=2))
    print(f"After seed change:    hidden={sorted(registry.hidden)}")


if __name__ == "__main__":
    main()
