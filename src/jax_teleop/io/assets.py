"""
Mesh reference resolution and geometry loading.

Geometry is an external concern for the kinematics core: any object with an
``async load(url)`` method can act as the loader. The default loader reads
STL, COLLADA and OBJ files with trimesh; COLLADA also needs pycollada. A
reference that cannot be resolved or loaded is replaced by a small red box
and recorded, so one bad asset never aborts a robot load.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set, Union

import numpy as np
import trimesh

from jax_teleop.core.exceptions import AssetError
from jax_teleop.core.logging import get_logger

logger = get_logger(__name__)

PACKAGE_SCHEME = "package://"
SUPPORTED_MESH_SUFFIXES = (".stl", ".dae", ".obj")
PLACEHOLDER_EXTENTS = (0.03, 0.03, 0.03)
PLACEHOLDER_COLOR = (239, 68, 68, 255)


def resolve_mesh_url(
    filename: str,
    package_map: Optional[Mapping[str, str]] = None,
    base_path: Optional[Union[str, Path]] = None,
) -> str:
    """
    Turn a mesh filename from the description into a loadable location.

    Args:
        filename: ``package://<package>/<path>``, an absolute path, an
            http(s) URL, or a path relative to ``base_path``.
        package_map: Package name -> base directory or URL.
        base_path: Directory for relative references (usually the
            description's directory).

    Returns:
        The resolved path or URL.

    Raises:
        AssetError: If a package URI is malformed or its package is unmapped.
    """
    if filename.startswith(PACKAGE_SCHEME):
        stripped = filename[len(PACKAGE_SCHEME):]
        package_name, slash, relative_path = stripped.partition("/")
        if not slash or not package_name:
            raise AssetError(f"Invalid package URI: {filename}", url=filename)

        package_base = (package_map or {}).get(package_name)
        if not package_base:
            raise AssetError(
                f'No package mapping configured for "{package_name}".',
                url=filename,
                details={"package": package_name},
            )
        return f"{package_base.rstrip('/')}/{relative_path}"

    if filename.startswith(("/", "http://", "https://")):
        return filename

    relative = filename[2:] if filename.startswith("./") else filename
    if base_path is not None:
        return str(Path(base_path) / relative)
    return relative


class MeshLoader(Protocol):
    """Anything that can turn a resolved URL into a renderable object."""

    async def load(self, url: str) -> Any:
        ...


class TrimeshLoader:
    """Load meshes from the local filesystem with trimesh in a worker thread."""

    async def load(self, url: str) -> trimesh.Trimesh:
        if url.startswith(("http://", "https://")):
            raise AssetError(f"Remote meshes are not supported: {url}", url=url)

        suffix = Path(url).suffix.lower()
        if suffix not in SUPPORTED_MESH_SUFFIXES:
            raise AssetError(f"Unsupported mesh format for {url}", url=url)

        try:
            mesh = await asyncio.to_thread(trimesh.load, url, force="mesh")
        except Exception as e:
            raise AssetError(f"Unable to read mesh {url}", url=url, details={"error": str(e)}) from e

        if not isinstance(mesh, trimesh.Trimesh) or mesh.is_empty or len(mesh.faces) == 0:
            raise AssetError(f"Mesh file has no faces: {url}", url=url)
        return mesh


def placeholder_geometry() -> trimesh.Trimesh:
    """A 3 cm red cube that marks a missing mesh."""
    box = trimesh.creation.box(extents=PLACEHOLDER_EXTENTS)
    box.visual.face_colors = np.tile(PLACEHOLDER_COLOR, (len(box.faces), 1))
    return box


@dataclass
class GeometryLibrary:
    """
    Per-URL cache of loaded geometry.

    Every failure resolves to the placeholder and adds the reference to
    ``missing``, whatever exception the loader raises.

    Example:
        >>> library = GeometryLibrary(TrimeshLoader(), {"franka_description": "/opt/franka"})
        >>> missing = await library.attach(build)
    """

    loader: MeshLoader = field(default_factory=TrimeshLoader)
    package_map: Mapping[str, str] = field(default_factory=dict)
    base_path: Optional[Union[str, Path]] = None
    _cache: Dict[str, Any] = field(default_factory=dict, init=False)
    _missing: Set[str] = field(default_factory=set, init=False)

    @property
    def missing(self) -> List[str]:
        return sorted(self._missing)

    async def load(self, filename: str) -> Any:
        """Return the geometry for ``filename``, loading it at most once."""
        try:
            url = resolve_mesh_url(filename, self.package_map, self.base_path)
        except AssetError as e:
            return self._substitute(filename, e)

        cached = self._cache.get(url)
        if cached is not None:
            return cached

        try:
            geometry = await self.loader.load(url)
        except Exception as e:
            return self._substitute(url, e)

        self._cache[url] = geometry
        return geometry

    async def attach(self, build) -> List[str]:
        """
        Resolve the geometry of every visual in a built kinematic tree.

        Args:
            build: A ``KinematicBuild`` whose link nodes carry visuals.

        Returns:
            The references that fell back to the placeholder.
        """
        for node in build.nodes:
            for visual in node.visuals:
                visual.geometry = await self.load(visual.visual.mesh_filename)
        return self.missing

    def clear(self) -> None:
        self._cache.clear()
        self._missing.clear()

    def _substitute(self, reference: str, error: Exception) -> trimesh.Trimesh:
        logger.warning("mesh_missing", reference=reference, error=str(error))
        self._missing.add(reference)
        placeholder = self._cache.get(reference)
        if placeholder is None:
            placeholder = placeholder_geometry()
            self._cache[reference] = placeholder
        return placeholder
