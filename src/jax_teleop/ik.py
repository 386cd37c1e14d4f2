"""Iterative inverse kinematics with a finite-difference Jacobian.

Each iteration measures the pose error of the end effector, estimates the
Jacobian numerically, and moves every chain joint by the transposed-Jacobian
update ``J^T e`` (rotation rows down-weighted), scaled by a gain, capped per
iteration and clamped to the joint limits. The whole loop runs inside one
jitted ``jax.lax.while_loop``; the joint state is written back only when the
final, relaxed check passes.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .chain import ForwardKinematics, node_pose, pose_jacobian
from .core import Pose, RobotModel
from .core.config import IKSettings
from .core.logging import get_logger
from .resolver import KinematicChain
from .transforms import quaternion

logger = get_logger(__name__)


@dataclass(frozen=True)
class IKResult:
    """Outcome of one solve; truthy when the target was reached.

    Attributes:
        success: Final errors within the relaxed tolerances.
        iterations: Update steps applied before convergence, stagnation or
            the iteration budget ran out.
        position_error: Final position error norm (meters).
        rotation_error: Final orientation error norm (radians).
        converged_strictly: Final errors within the strict tolerances.
    """
    success: bool
    iterations: int
    position_error: float
    rotation_error: float
    converged_strictly: bool

    def __bool__(self) -> bool:
        return self.success


def _pose_error(robot, q, index, target_position, target_quaternion):
    position, orientation = node_pose(robot, q, index)
    return target_position - position, quaternion.orientation_error(orientation, target_quaternion)


@jax.jit
def _solve(
    robot: RobotModel,
    q: Array,
    joint_indices: Array,
    lower: Array,
    upper: Array,
    index: int,
    target_position: Array,
    target_quaternion: Array,
    params: Dict[str, Array],
) -> Tuple[Array, Array, Array, Array]:
    """Run the iteration loop; returns final angles, iteration count and errors."""
    weights = jnp.array([1.0, 1.0, 1.0])
    weights = jnp.concatenate([weights, jnp.full(3, params["rotation_weight"])])

    def errors(q):
        position_error, rotation_error = _pose_error(robot, q, index, target_position, target_quaternion)
        return jnp.linalg.norm(position_error), jnp.linalg.norm(rotation_error), position_error, rotation_error

    def converged(q):
        position_norm, rotation_norm, _, _ = errors(q)
        return (position_norm <= params["position_tolerance"]) & (rotation_norm <= params["rotation_tolerance"])

    def step(q):
        _, _, position_error, rotation_error = errors(q)
        weighted_error = jnp.concatenate([position_error, rotation_error]) * weights
        columns = pose_jacobian(robot, q, joint_indices, lower, upper, index, params["epsilon"])

        raw = (columns * weights) @ weighted_error
        delta = jnp.clip(raw * params["gain"], -params["max_joint_delta"], params["max_joint_delta"])

        previous = q[joint_indices]
        updated = jnp.clip(previous + delta, lower, upper)
        moved = jnp.any(jnp.abs(updated - previous) > params["stagnation_threshold"])
        return q.at[joint_indices].set(updated), moved

    def cond_fun(carry):
        _, iteration, done = carry
        return (iteration < params["max_iterations"]) & ~done

    def body_fun(carry):
        q, iteration, _ = carry
        reached = converged(q)
        q_next, moved = jax.lax.cond(
            reached,
            lambda q: (q, jnp.array(False)),
            step,
            q,
        )
        iteration = iteration + jnp.where(reached, 0, 1)
        return q_next, iteration, reached | ~moved

    q_final, iterations, _ = jax.lax.while_loop(cond_fun, body_fun, (q, jnp.array(0), jnp.array(False)))
    position_norm, rotation_norm, _, _ = errors(q_final)
    return q_final, iterations, position_norm, rotation_norm


class IKSolver:
    """
    Solves end-effector pose targets for a ``KinematicChain``.

    Example:
        >>> solver = IKSolver(chain)
        >>> pose = solver.current_pose()
        >>> result = solver.solve(pose.position + [0.005, 0.0, 0.0], pose.quaternion)
        >>> if result:
        ...     print(result.iterations)
    """

    def __init__(self, chain: KinematicChain, settings: Optional[IKSettings] = None):
        self.chain = chain
        self.settings = settings or IKSettings()
        self.fk = ForwardKinematics(chain.model, chain.state)

        self._joint_indices = jnp.asarray(chain.indices)
        self._lower = jnp.asarray(chain.lower_bounds)
        self._upper = jnp.asarray(chain.upper_bounds)
        self._params = {
            "max_iterations": jnp.asarray(self.settings.max_iterations),
            "epsilon": jnp.asarray(self.settings.jacobian_epsilon),
            "position_tolerance": jnp.asarray(self.settings.position_tolerance),
            "rotation_tolerance": jnp.asarray(self.settings.rotation_tolerance),
            "rotation_weight": jnp.asarray(self.settings.rotation_weight),
            "gain": jnp.asarray(self.settings.gain),
            "max_joint_delta": jnp.asarray(self.settings.max_joint_delta),
            "stagnation_threshold": jnp.asarray(self.settings.stagnation_threshold),
        }

    def current_pose(self) -> Pose:
        """World pose of the end effector at the current joint angles."""
        return self.fk.world_pose(self.chain.end_effector)

    def solve(self, target_position, target_quaternion) -> IKResult:
        """
        Drive the end effector toward a world pose.

        Args:
            target_position: (3,) world position in meters.
            target_quaternion: (4,) world orientation (w, x, y, z); normalised here.

        Returns:
            IKResult: On success the chain holds the solved angles; on failure
            it holds exactly the angles it had before the call.
        """
        target = Pose(target_position, target_quaternion)
        snapshot = self.chain.snapshot()

        q, iterations, position_error, rotation_error = _solve(
            self.chain.model,
            jnp.asarray(self.chain.state.angles),
            self._joint_indices,
            self._lower,
            self._upper,
            self.chain.end_effector.index,
            jnp.asarray(target.position),
            jnp.asarray(target.quaternion),
            self._params,
        )
        position_error = float(position_error)
        rotation_error = float(rotation_error)

        factor = self.settings.relaxed_tolerance_factor
        result = IKResult(
            success=(
                position_error <= self.settings.position_tolerance * factor
                and rotation_error <= self.settings.rotation_tolerance * factor
            ),
            iterations=int(iterations),
            position_error=position_error,
            rotation_error=rotation_error,
            converged_strictly=(
                position_error <= self.settings.position_tolerance
                and rotation_error <= self.settings.rotation_tolerance
            ),
        )

        if result.success:
            self.chain.set_angles(np.asarray(q)[self.chain.indices])
        else:
            self.chain.restore(snapshot)
            logger.debug(
                "ik_failed",
                iterations=result.iterations,
                position_error=position_error,
                rotation_error=rotation_error,
            )
        return result
