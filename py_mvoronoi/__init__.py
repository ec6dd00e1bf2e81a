"""
py-mvoronoi: Manhattan Voronoi solid decomposition of a box.
"""

__version__ = "0.1.0"
