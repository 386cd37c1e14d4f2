"""Chain resolution: root link -> end-effector link, controllable joints only."""

from typing import Optional, Tuple

import numpy as np

from .builder import KinematicBuild, TransformNode
from .core.exceptions import ChainError
from .core.robot_model import Joint, KinematicTree, RobotModel
from .joints import JointControl, JointState


def find_path(tree: KinematicTree, current_link: str, target_link: str) -> Optional[Tuple[Joint, ...]]:
    """Joints leading from ``current_link`` down to ``target_link``.

    Child joints are searched depth-first in declaration order. On a tree the
    path is unique whenever it exists.

    Returns:
        The ordered joints, ``()`` when the links are equal, or ``None`` when
        ``target_link`` is not a descendant of ``current_link``.
    """
    if current_link == target_link:
        return ()

    for joint in tree.child_joints(current_link):
        sub_path = find_path(tree, joint.child, target_link)
        if sub_path is not None:
            return (joint,) + sub_path

    return None


class KinematicChain:
    """Ordered controllable joints from the root to the end effector.

    The chain does not own any angles: it indexes into the build's shared
    ``JointState``.
    """

    def __init__(self, joints: Tuple[JointControl, ...], end_effector: TransformNode,
                 model: RobotModel, state: JointState):
        if not joints:
            raise ChainError("Kinematic chain must contain at least one joint.")
        self.joints = tuple(joints)
        self.end_effector = end_effector
        self.model = model
        self.state = state
        self.indices = np.array([joint.index for joint in self.joints], dtype=np.int32)
        self.lower_bounds = state.lower_bounds[self.indices]
        self.upper_bounds = state.upper_bounds[self.indices]

    def __len__(self) -> int:
        return len(self.joints)

    def __iter__(self):
        return iter(self.joints)

    def __repr__(self) -> str:
        return f"KinematicChain({list(self.names)!r} -> {self.end_effector.name!r})"

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(joint.name for joint in self.joints)

    @property
    def angles(self) -> np.ndarray:
        return self.state.snapshot(self.indices)

    def set_angles(self, values) -> None:
        """Write chain angles (clamped), in chain order."""
        self.state.assign(self.indices, values)

    def snapshot(self) -> np.ndarray:
        return self.state.snapshot(self.indices)

    def restore(self, snapshot: np.ndarray) -> None:
        self.state.restore(snapshot, self.indices)


def resolve_chain(tree: KinematicTree, build: KinematicBuild, end_effector_link: str) -> KinematicChain:
    """Resolve the kinematic chain ending at ``end_effector_link``.

    Raises:
        ChainError: If the link is not in the built tree, no path reaches it
            from the root, or the path has no controllable joint.
    """
    end_effector = build.link_node(end_effector_link)
    if end_effector is None:
        raise ChainError(
            f'End-effector link "{end_effector_link}" not found.',
            end_effector=end_effector_link,
        )

    path = find_path(tree, tree.root_link, end_effector_link)
    if path is None:
        raise ChainError(
            f'No joint path from "{tree.root_link}" to "{end_effector_link}".',
            end_effector=end_effector_link,
        )

    joints = tuple(build.controls[joint.name] for joint in path if joint.name in build.controls)
    if not joints:
        raise ChainError(
            f'No controllable joints between "{tree.root_link}" and "{end_effector_link}".',
            end_effector=end_effector_link,
            details={"path": [joint.name for joint in path]},
        )

    return KinematicChain(joints, end_effector, build.model, build.state)
