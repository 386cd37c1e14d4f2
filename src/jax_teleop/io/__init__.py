"""I/O: robot description parsing and mesh asset loading.

The parser turns URDF markup into the immutable ``KinematicTree``; the asset
layer resolves ``package://`` mesh references and loads geometry, falling
back to a placeholder for anything it cannot load.
"""

from .assets import GeometryLibrary, MeshLoader, TrimeshLoader, resolve_mesh_url
from .urdf_parser import load_urdf, parse_urdf

__all__ = [
    "GeometryLibrary",
    "MeshLoader",
    "TrimeshLoader",
    "load_urdf",
    "parse_urdf",
    "resolve_mesh_url",
]
