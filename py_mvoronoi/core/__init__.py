"""
Core cell decomposition functionality.
"""

from .grid_builder import Box, Grid, GridInvariantError, build_grid
from .seed_sampler import generate_seeds
from .distance_field import AssignmentField, assign_nearest_seeds
from .cell_surface import extract_cell_surface
from .mesh_refiner import CellMesh, refine_cell_mesh
from .cell_registry import CellRegistry, VisibilityDelta, VisibilityHistory
from .engine import CellParameters, RebuildResult, RebuildStats, VoronoiSolidEngine

__all__ = ['Box', 'Grid', 'GridInvariantError', 'build_grid', 'generate_seeds',
           'AssignmentField', 'assign_nearest_seeds', 'extract_cell_surface',
           'CellMesh', 'refine_cell_mesh', 'CellRegistry', 'VisibilityDelta',
           'VisibilityHistory', 'CellParameters', 'RebuildResult', 'RebuildStats',
           'VoronoiSolidEngine']
