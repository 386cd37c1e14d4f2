"""Robot data structures.

Two layers live here:

* the immutable description parsed from a URDF document (``Origin``,
  ``Visual``, ``Link``, ``Joint``, ``KinematicTree``), and
* ``RobotModel``, the flattened PyTree of transform nodes that the jitted
  forward kinematics consumes.

``Pose`` is the position + unit quaternion pair handed between the solver,
the motion layer and callers.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
from jax import Array
from flax import struct

Vector3 = Tuple[float, float, float]

CONTROLLABLE_JOINT_TYPES = ("revolute", "continuous")


@dataclass(frozen=True)
class Origin:
    """Local frame offset: translation plus URDF roll-pitch-yaw."""

    xyz: Vector3 = (0.0, 0.0, 0.0)
    rpy: Vector3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Visual:
    """A mesh reference attached to a link."""

    mesh_filename: str
    scale: Vector3 = (1.0, 1.0, 1.0)
    origin: Origin = Origin()


@dataclass(frozen=True)
class Link:
    name: str
    visuals: Tuple[Visual, ...] = ()


@dataclass(frozen=True)
class Joint:
    """A typed connection between a parent and a child link.

    Attributes:
        name: Joint name, unique within the document.
        type: Declared type (``fixed``, ``revolute``, ``continuous``, or any
            other URDF type, which is treated as non-controllable).
        parent: Parent link name.
        child: Child link name.
        axis: Rotation axis in the joint frame, as declared.
        origin: Joint frame relative to the parent link frame.
        lower: Lower angle limit, ``None`` when unbounded.
        upper: Upper angle limit, ``None`` when unbounded.
    """

    name: str
    type: str
    parent: str
    child: str
    axis: Vector3 = (0.0, 0.0, 1.0)
    origin: Origin = Origin()
    lower: Optional[float] = None
    upper: Optional[float] = None

    @property
    def is_controllable(self) -> bool:
        """Revolute or continuous with a nonzero axis."""
        return self.type in CONTROLLABLE_JOINT_TYPES and any(a != 0.0 for a in self.axis)


@dataclass(frozen=True)
class KinematicTree:
    """Parsed robot description: links, joints grouped by parent, and the root.

    Attributes:
        root_link: The unique link that is never a joint child.
        links: Link name -> Link, in declaration order.
        joints_by_parent: Parent link name -> child joints, in declaration order.
        skipped_joints: Descriptions of joint elements dropped for missing
            name, parent or child.
    """

    root_link: str
    links: Dict[str, Link]
    joints_by_parent: Dict[str, Tuple[Joint, ...]]
    skipped_joints: Tuple[str, ...] = ()

    def child_joints(self, link_name: str) -> Tuple[Joint, ...]:
        return self.joints_by_parent.get(link_name, ())

    @property
    def joints(self) -> Tuple[Joint, ...]:
        return tuple(joint for joints in self.joints_by_parent.values() for joint in joints)

    def joint(self, name: str) -> Joint:
        for joint in self.joints:
            if joint.name == name:
                return joint
        raise KeyError(f"Joint '{name}' not found in robot description")


@struct.dataclass
class RobotModel:
    """Immutable PyTree of the transform-node hierarchy.

    Nodes are stored in depth-first pre-order, so every parent index is
    smaller than its child's index and a single forward sweep computes all
    world transforms.

    Attributes:
        node_names: Name of every node. Link nodes carry the link name,
                    joint nodes ``<joint>_origin`` and ``<joint>_motion``.
                    Marked as a static field for JIT compilation.
        parent_indices: Array of shape (num_nodes,); the root parents itself.
        local_transforms: Array of shape (num_nodes, 4, 4) of static local
                          transforms (identity for link and motion nodes).
        motion_axes: Array of shape (num_nodes, 3) of unit rotation axes for
                     controllable motion nodes, zeros elsewhere.
        state_indices: Array of shape (num_nodes,) mapping each node to the
                       joint-state entry that drives it, -1 for none.
    """
    node_names: Tuple[str, ...] = struct.field(pytree_node=False)
    parent_indices: Array
    local_transforms: Array
    motion_axes: Array
    state_indices: Array

    @property
    def num_nodes(self) -> int:
        return len(self.node_names)

    def index(self, node_name: str) -> int:
        try:
            return self.node_names.index(node_name)
        except ValueError:
            raise ValueError(f"Node '{node_name}' not found in robot model")


@dataclass(frozen=True)
class Pose:
    """World position (meters) and unit orientation quaternion (w, x, y, z)."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    quaternion: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))

    def __post_init__(self) -> None:
        position = np.asarray(self.position, dtype=np.float64).reshape(3)
        quaternion = np.asarray(self.quaternion, dtype=np.float64).reshape(4)
        quaternion = quaternion / np.linalg.norm(quaternion)
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "quaternion", quaternion)
