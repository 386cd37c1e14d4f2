"""
Robot load flow.

``load_robot`` is the only asynchronous boundary of the package: it fetches
the description document and the mesh assets without blocking the event
loop, then builds the kinematic tree, resolves the end-effector chain, moves
the arm to its home pose and prepares the solver. Any fatal error aborts the
whole load; missing meshes only add a warning to the status message.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .builder import KinematicBuild, build_kinematic_tree
from .core.config import IKSettings, TeleopConfig
from .core.exceptions import LoadError
from .core.logging import get_logger
from .core.robot_model import KinematicTree, Pose
from .ik import IKSolver
from .io.assets import GeometryLibrary, MeshLoader, TrimeshLoader
from .io.urdf_parser import parse_urdf
from .resolver import KinematicChain, resolve_chain

logger = get_logger(__name__)


@dataclass(eq=False)
class LoadedRobot:
    """A parsed, built and solvable robot.

    Attributes:
        tree: The parsed description.
        build: Transform nodes, joint registry and compiled model.
        chain: Controllable joints from the root to the end effector.
        solver: IK solver bound to ``chain``.
        missing_meshes: Mesh references replaced by the placeholder.
        geometry: The geometry cache, ``None`` when meshes were not loaded.
    """
    tree: KinematicTree
    build: KinematicBuild
    chain: KinematicChain
    solver: IKSolver
    missing_meshes: List[str] = field(default_factory=list)
    geometry: Optional[GeometryLibrary] = None

    @property
    def status_message(self) -> str:
        if self.missing_meshes:
            return f"URDF loaded, but {len(self.missing_meshes)} mesh file(s) are missing."
        return "URDF loaded."

    def end_effector_pose(self) -> Pose:
        return self.solver.current_pose()

    def joint_angles(self) -> Dict[str, float]:
        return self.build.state.as_dict()

    def dispose(self) -> None:
        """Release every node and all cached geometry."""
        self.build.release()
        if self.geometry is not None:
            self.geometry.clear()
        logger.debug("robot_disposed", end_effector=self.chain.end_effector.name)


def apply_home_pose(chain: KinematicChain, home_angles: Mapping[str, float]) -> None:
    """Set chain joints named in ``home_angles``; other joints keep their angle."""
    angles = {name: home_angles[name] for name in chain.names if name in home_angles}
    if angles:
        chain.state.set_angles(angles)


def build_robot(
    tree: KinematicTree,
    end_effector_link: str,
    ik: Optional[IKSettings] = None,
    home_angles: Optional[Mapping[str, float]] = None,
) -> LoadedRobot:
    """
    Build a solvable robot from a parsed description, without geometry.

    Raises:
        ChainError: If no controllable chain reaches ``end_effector_link``.
    """
    build = build_kinematic_tree(tree)
    chain = resolve_chain(tree, build, end_effector_link)
    apply_home_pose(chain, home_angles or {})
    return LoadedRobot(tree=tree, build=build, chain=chain, solver=IKSolver(chain, ik))


async def load_robot(config: TeleopConfig, loader: Optional[MeshLoader] = None) -> LoadedRobot:
    """
    Load the robot described by ``config``.

    Args:
        config: Document path, end-effector link, package map, home pose and
            solver settings.
        loader: Mesh loader; defaults to ``TrimeshLoader``.

    Returns:
        LoadedRobot: Ready to be driven by a ``MotionController``.

    Raises:
        LoadError: If the document cannot be read.
        ParseError: If the document is not a valid description.
        ChainError: If no controllable chain reaches the end effector.
    """
    if not config.urdf_path:
        raise LoadError("No URDF path configured.")

    urdf_path = Path(config.urdf_path)
    try:
        text = await asyncio.to_thread(urdf_path.read_text, encoding="utf-8")
    except OSError as e:
        raise LoadError(
            f"Failed to load URDF: {urdf_path}",
            details={"error": str(e)},
        )

    tree = parse_urdf(text)
    build = build_kinematic_tree(tree)

    geometry = GeometryLibrary(
        loader=loader or TrimeshLoader(),
        package_map=config.package_map,
        base_path=urdf_path.parent,
    )
    missing = await geometry.attach(build)

    chain = resolve_chain(tree, build, config.end_effector_link)
    apply_home_pose(chain, config.home_angles)

    robot = LoadedRobot(
        tree=tree,
        build=build,
        chain=chain,
        solver=IKSolver(chain, config.ik),
        missing_meshes=missing,
        geometry=geometry,
    )
    logger.info(
        "robot_loaded",
        urdf=str(urdf_path),
        end_effector=config.end_effector_link,
        chain=list(chain.names),
        missing_meshes=len(missing),
    )
    return robot
