"""
jax_teleop: end-effector teleoperation for URDF robot arms.

Parses a robot description into a kinematic tree, resolves the chain of
controllable joints to an end-effector link, and drives it with a jitted
finite-difference inverse-kinematics solver from hand-frame pad commands or a
scripted periodic trajectory.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from .builder import KinematicBuild, TransformNode, build_kinematic_tree
from .chain import ForwardKinematics, forward_kinematics, forward_kinematics_world
from .core.config import IKSettings, PadSettings, TeleopConfig, TrajectorySettings
from .ik import IKResult, IKSolver
from .joints import JointControl, JointState
from .loader import LoadedRobot, build_robot, load_robot
from .motion import (
    MotionController,
    PadCommand,
    apply_end_effector_delta,
    hand_frame_commands,
    solve_with_retries,
    trajectory_target,
)
from .resolver import KinematicChain, find_path, resolve_chain

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "ForwardKinematics",
    "IKResult",
    "IKSettings",
    "IKSolver",
    "JointControl",
    "JointState",
    "KinematicBuild",
    "KinematicChain",
    "LoadedRobot",
    "MotionController",
    "PadCommand",
    "PadSettings",
    "TeleopConfig",
    "TrajectorySettings",
    "TransformNode",
    "apply_end_effector_delta",
    "build_kinematic_tree",
    "build_robot",
    "find_path",
    "forward_kinematics",
    "forward_kinematics_world",
    "hand_frame_commands",
    "load_robot",
    "resolve_chain",
    "solve_with_retries",
    "trajectory_target",
]
