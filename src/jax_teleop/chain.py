"""Forward kinematics and the finite-difference pose Jacobian.

World transforms are computed with a single ``jax.lax.scan`` over the nodes of
a ``RobotModel`` in depth-first pre-order. The Jacobian used by the IK solver
is estimated numerically: each chain joint is perturbed on its own and all
perturbed configurations are evaluated together under ``jax.vmap``.
"""

from typing import Dict, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .core import Pose, RobotModel
from .joints import JointState
from .transforms import quaternion, se3, so3


@jax.jit
def forward_kinematics_world(robot: RobotModel, q: Array) -> Array:
    """World transforms of every node.

    Args:
        robot: RobotModel containing the transform-node hierarchy
        q: Joint-state angles of shape (num_joints,)

    Returns:
        Array of shape (num_nodes, 4, 4) with the world pose of every node
    """
    num_nodes = robot.num_nodes

    # Scatter joint angles onto nodes; index -1 picks the trailing zero
    q_padded = jnp.concatenate([jnp.asarray(q, dtype=jnp.float64), jnp.zeros(1)])
    q_full = q_padded[robot.state_indices]

    # Zero axes (link, origin and fixed nodes) give identity rotations
    T_motion = se3.from_axis_angle(robot.motion_axes, q_full)
    T_local = robot.local_transforms @ T_motion

    world_transforms = jnp.broadcast_to(jnp.identity(4), (num_nodes, 4, 4))
    world_transforms = world_transforms.at[0].set(T_local[0])

    def scan_body(carry, i):
        """Composes node `i` onto its parent's world pose."""
        T_world_to_parent = carry[robot.parent_indices[i]]
        carry = carry.at[i].set(T_world_to_parent @ T_local[i])
        return carry, None

    # Pre-order guarantees the parent is already final when `i` is reached
    final_transforms, _ = jax.lax.scan(scan_body, world_transforms, jnp.arange(1, num_nodes))

    return final_transforms


def forward_kinematics(robot: RobotModel, q: Array) -> Dict[str, Array]:
    """Compute forward kinematics for all nodes in the robot.

    Args:
        robot: RobotModel containing the transform-node hierarchy
        q: Joint-state angles of shape (num_joints,)

    Returns:
        Dictionary mapping node names to their 4x4 SE(3) world poses
    """
    world_transforms = forward_kinematics_world(robot, q)
    return {name: world_transforms[i] for i, name in enumerate(robot.node_names)}


@jax.jit
def node_pose(robot: RobotModel, q: Array, index: int) -> Tuple[Array, Array]:
    """World position and unit quaternion (w, x, y, z) of node ``index``."""
    T = forward_kinematics_world(robot, q)[index]
    return se3.get_position(T), so3.to_quaternion(se3.get_rotation(T))


@jax.jit
def pose_jacobian(
    robot: RobotModel,
    q: Array,
    joint_indices: Array,
    lower: Array,
    upper: Array,
    index: int,
    epsilon: float,
) -> Array:
    """Finite-difference Jacobian of a node's pose with respect to chain joints.

    Each joint is moved by ``epsilon`` through its clamp rule while the others
    stay fixed. A joint sitting at its upper limit therefore yields a zero
    column.

    Args:
        robot: RobotModel containing the transform-node hierarchy
        q: Joint-state angles of shape (num_joints,)
        joint_indices: (num_chain,) state indices of the chain joints
        lower: (num_chain,) lower bounds, -inf where unbounded
        upper: (num_chain,) upper bounds, inf where unbounded
        index: Node whose pose is differentiated
        epsilon: Perturbation in radians

    Returns:
        (num_chain, 6) array; row ``j`` is the column for chain joint ``j``:
        position delta then rotation-vector delta, both divided by ``epsilon``
    """
    position, orientation = node_pose(robot, q, index)

    def column(joint_index, lo, hi):
        perturbed = q.at[joint_index].set(jnp.clip(q[joint_index] + epsilon, lo, hi))
        p, o = node_pose(robot, perturbed, index)
        dp = (p - position) / epsilon
        dr = quaternion.orientation_error(orientation, o) / epsilon
        return jnp.concatenate([dp, dr])

    return jax.vmap(column)(joint_indices, lower, upper)


class ForwardKinematics:
    """Cached world transforms for a model driven by a ``JointState``.

    Transforms are recomputed only when the state's version changed since the
    last read.
    """

    def __init__(self, robot: RobotModel, state: JointState):
        self.robot = robot
        self.state = state
        self._version = None
        self._world = None

    @property
    def world_transforms(self) -> np.ndarray:
        if self._world is None or self._version != self.state.version:
            self._world = np.asarray(forward_kinematics_world(self.robot, self.state.angles))
            self._version = self.state.version
        return self._world

    def world_transform(self, node: Union[str, int, object]) -> np.ndarray:
        return self.world_transforms[self._index(node)]

    def world_pose(self, node: Union[str, int, object]) -> Pose:
        T = self.world_transform(node)
        return Pose(
            position=T[:3, 3],
            quaternion=np.asarray(so3.to_quaternion(jnp.asarray(T[:3, :3]))),
        )

    def _index(self, node) -> int:
        if isinstance(node, str):
            return self.robot.index(node)
        if isinstance(node, (int, np.integer)):
            return int(node)
        return node.index
