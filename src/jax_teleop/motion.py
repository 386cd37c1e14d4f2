"""
Motion commands: hand-frame pad steps, held repeats and the scripted trajectory.

Targets are expressed in the end effector's own frame, converted to world
space from the current (or captured base) pose, and handed to the solver
through a retry policy that shrinks the request toward the start pose until
one attempt succeeds.

Only one driver mutates the joint state at a time: starting a hold cancels a
running trajectory and starting the trajectory cancels a hold. Both drivers
are asyncio tasks on the caller's event loop.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

import jax.numpy as jnp
import numpy as np

from .core.config import PadSettings, TeleopConfig, TrajectorySettings
from .core.logging import get_logger
from .core.robot_model import Pose
from .transforms import quaternion

logger = get_logger(__name__)

LOCAL_Z_AXIS = (0.0, 0.0, 1.0)

BOUNDARY_STATUS = "Reached local motion boundary. Try the opposite direction or smaller moves."
TRAJECTORY_RUNNING_STATUS = "Running default trajectory. Press Stop to interrupt."
TRAJECTORY_PAUSED_STATUS = "Trajectory paused after repeated IK misses. Move the robot and try Start again."


def ready_status(settings: PadSettings) -> str:
    step_mm = settings.translation_step * 1000.0
    step_deg = math.degrees(settings.yaw_step)
    return (
        "Pad ready. Hold a button for continuous motion. "
        f"Step size: {step_mm:g} mm translation, {step_deg:g}° yaw."
    )


@dataclass(frozen=True)
class PadCommand:
    """A directional command in the hand frame.

    Attributes:
        key: Identifier used by callers (``front``, ``yaw_left``, ...).
        label: Human-readable name.
        axis_hint: Hand-frame axis the command moves along or about.
        translation_local: Translation in the hand frame (meters).
        yaw_local: Rotation about the hand frame's local Z axis (radians).
    """
    key: str
    label: str
    axis_hint: str
    translation_local: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    yaw_local: float = 0.0


def hand_frame_commands(translation_step: float, yaw_step: float) -> Dict[str, PadCommand]:
    """The eight pad commands for the given step sizes."""
    step = translation_step
    commands = [
        PadCommand("front", "Front", "+X", (step, 0.0, 0.0)),
        PadCommand("back", "Back", "-X", (-step, 0.0, 0.0)),
        PadCommand("left", "Left", "+Y", (0.0, step, 0.0)),
        PadCommand("right", "Right", "-Y", (0.0, -step, 0.0)),
        # The hand's local Z points away from the wrist, so "up" is -Z
        PadCommand("up", "Up", "-Z", (0.0, 0.0, -step)),
        PadCommand("down", "Down", "+Z", (0.0, 0.0, step)),
        PadCommand("yaw_left", "Yaw Left", "+Z", yaw_local=yaw_step),
        PadCommand("yaw_right", "Yaw Right", "-Z", yaw_local=-yaw_step),
    ]
    return {command.key: command for command in commands}


def hand_frame_target(pose: Pose, translation_local: Sequence[float], yaw_local: float = 0.0) -> Pose:
    """Offset ``pose`` by a hand-frame translation and a yaw about local Z."""
    orientation = jnp.asarray(pose.quaternion)
    world_translation = quaternion.rotate(orientation, jnp.asarray(translation_local, dtype=jnp.float64))
    yaw = quaternion.from_axis_angle(jnp.asarray(LOCAL_Z_AXIS), yaw_local)
    return Pose(
        position=pose.position + np.asarray(world_translation),
        quaternion=np.asarray(quaternion.normalize(quaternion.multiply(orientation, yaw))),
    )


def solve_with_retries(solver, target_position, target_quaternion, retry_scales: Sequence[float]) -> bool:
    """
    Solve toward a target, shrinking the request on failure.

    For each scale, the chain is reset to its pre-call angles and the solver
    is aimed at the start pose moved ``scale`` of the way to the target
    (linear in position, spherical in orientation). The first success wins.

    Returns:
        True if any scale succeeded; otherwise the chain is left at its
        pre-call angles.
    """
    start = solver.current_pose()
    snapshot = solver.chain.snapshot()
    target = Pose(target_position, target_quaternion)

    for scale in retry_scales:
        solver.chain.restore(snapshot)
        position = start.position + (target.position - start.position) * scale
        orientation = quaternion.slerp(
            jnp.asarray(start.quaternion), jnp.asarray(target.quaternion), scale
        )
        if solver.solve(position, np.asarray(orientation)):
            return True

    solver.chain.restore(snapshot)
    return False


def apply_end_effector_delta(
    solver,
    translation_local: Sequence[float],
    yaw_local: float = 0.0,
    retry_scales: Sequence[float] = (1.0,),
) -> bool:
    """Move the end effector by a hand-frame delta from its current pose."""
    target = hand_frame_target(solver.current_pose(), translation_local, yaw_local)
    return solve_with_retries(solver, target.position, target.quaternion, retry_scales)


def trajectory_target(base_pose: Pose, elapsed: float, settings: TrajectorySettings) -> Pose:
    """
    Point of the scripted trajectory ``elapsed`` seconds after start.

    The hand-frame offset is ``(Ax sin wt, Ay sin 2wt, Az sin(wt + pi/2))``
    with a yaw of ``Ayaw sin wt``, where ``w = 2 pi / period``.
    """
    omega = 2.0 * math.pi / settings.period
    phase = omega * elapsed
    offset = (
        settings.amplitude_x * math.sin(phase),
        settings.amplitude_y * math.sin(2.0 * phase),
        settings.amplitude_z * math.sin(phase + math.pi / 2.0),
    )
    yaw = settings.amplitude_yaw * math.sin(phase)
    return hand_frame_target(base_pose, offset, yaw)


class MotionController:
    """
    Drives a loaded robot from pad commands and the scripted trajectory.

    ``start_hold`` and ``start_trajectory`` schedule tasks on the running
    event loop, so they must be called from a coroutine or loop callback.

    Example:
        >>> controller = MotionController(robot, config)
        >>> controller.execute("front")
        >>> controller.start_trajectory()
        >>> await asyncio.sleep(2.0)
        >>> controller.stop_trajectory()
    """

    def __init__(self, robot, config: Optional[TeleopConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.robot = robot
        self.config = config or TeleopConfig()
        self.clock = clock
        self.commands = hand_frame_commands(self.config.pad.translation_step, self.config.pad.yaw_step)
        self.status = ready_status(self.config.pad)

        self.trajectory_paused = False
        self.trajectory_ticks = 0
        self.consecutive_failures = 0

        self._active_command: Optional[str] = None
        self._hold_task: Optional[asyncio.Task] = None
        self._trajectory_task: Optional[asyncio.Task] = None
        self._base_pose: Optional[Pose] = None
        self._start_time = 0.0

    @property
    def solver(self):
        return self.robot.solver

    @property
    def active_command(self) -> Optional[str]:
        return self._active_command

    @property
    def hold_active(self) -> bool:
        return self._hold_task is not None

    @property
    def trajectory_running(self) -> bool:
        return self._trajectory_task is not None

    def execute(self, key: str, step_scale: float = 1.0) -> bool:
        """Apply one pad command, scaled by ``step_scale``."""
        command = self.commands[key]
        translation = tuple(component * step_scale for component in command.translation_local)
        solved = apply_end_effector_delta(
            self.solver,
            translation,
            command.yaw_local * step_scale,
            self.config.pad.retry_scales,
        )
        self.status = ready_status(self.config.pad) if solved else BOUNDARY_STATUS
        if not solved:
            logger.info("pad_command_blocked", command=key, step_scale=step_scale)
        return solved

    def start_hold(self, key: str) -> bool:
        """
        Start repeating ``key`` at the hold step scale.

        Any running trajectory and previous hold are cancelled first. The
        first step runs immediately; if it fails, nothing is scheduled.

        Returns:
            Whether the first step succeeded.
        """
        if key not in self.commands:
            raise KeyError(f"Unknown pad command '{key}'")

        self._clear_trajectory()
        self.stop_hold()
        self._active_command = key

        if not self.execute(key, self.config.pad.hold_step_scale):
            self.stop_hold()
            return False

        self._hold_task = asyncio.get_running_loop().create_task(self._hold_loop(key))
        return True

    def stop_hold(self) -> None:
        """End a hold (button release, pointer cancel or focus loss)."""
        self._active_command = None
        task, self._hold_task = self._hold_task, None
        _cancel(task)

    def start_trajectory(self) -> None:
        """Capture the current end-effector pose and start ticking around it."""
        self.stop_hold()
        self._clear_trajectory()

        self._base_pose = self.solver.current_pose()
        self._start_time = self.clock()
        self.trajectory_paused = False
        self.status = TRAJECTORY_RUNNING_STATUS

        self._trajectory_task = asyncio.get_running_loop().create_task(self._trajectory_loop())
        logger.info("trajectory_started", period=self.config.trajectory.period)

    def stop_trajectory(self) -> None:
        self._clear_trajectory()
        self.status = ready_status(self.config.pad)

    def close(self) -> None:
        """Cancel every pending timer."""
        self.stop_hold()
        self._clear_trajectory()

    def trajectory_tick(self) -> bool:
        """
        Advance the trajectory by one update.

        Returns:
            False when no trajectory is running, or once it has paused itself
            after too many consecutive solver failures.
        """
        if self._base_pose is None:
            return False

        settings = self.config.trajectory
        self.trajectory_ticks += 1

        target = trajectory_target(self._base_pose, self.clock() - self._start_time, settings)
        if solve_with_retries(self.solver, target.position, target.quaternion, settings.retry_scales):
            self.consecutive_failures = 0
            return True

        self.consecutive_failures += 1
        if self.consecutive_failures < settings.max_consecutive_failures:
            return True

        logger.warning("trajectory_paused", failures=self.consecutive_failures, ticks=self.trajectory_ticks)
        self._clear_trajectory()
        self.trajectory_paused = True
        self.status = TRAJECTORY_PAUSED_STATUS
        return False

    async def _hold_loop(self, key: str) -> None:
        interval = self.config.pad.hold_repeat_interval
        while True:
            await asyncio.sleep(interval)
            if self._active_command != key:
                return
            if not self.execute(key, self.config.pad.hold_step_scale):
                logger.info("hold_stopped", command=key)
                self._active_command = None
                self._hold_task = None
                return

    async def _trajectory_loop(self) -> None:
        interval = self.config.trajectory.update_interval
        while True:
            await asyncio.sleep(interval)
            if not self.trajectory_tick():
                return

    def _clear_trajectory(self) -> None:
        task, self._trajectory_task = self._trajectory_task, None
        _cancel(task)
        self._base_pose = None
        self.consecutive_failures = 0


def _cancel(task: Optional[asyncio.Task]) -> None:
    # A loop ending itself returns instead of cancelling its own task
    if task is not None and not task.done() and task is not asyncio.current_task():
        task.cancel()
