"""Tests for the inverse-kinematics solver."""

import math

import numpy as np
import pytest

from jax_teleop.core.config import IKSettings
from jax_teleop.ik import IKResult, IKSolver
from jax_teleop.motion import hand_frame_target, solve_with_retries
from jax_teleop.transforms import quaternion


def _rotation_error(q_current, q_target):
    return float(np.linalg.norm(quaternion.orientation_error(q_current, q_target)))


@pytest.mark.parametrize("translation", [
    (0.005, 0.0, 0.0),
    (0.0, 0.005, 0.0),
    (0.0, 0.0, 0.005),
])
def test_small_hand_frame_step_converges(long_reach_robot, translation):
    """A 5 mm move along a hand-frame axis converges within the iteration budget."""
    solver = long_reach_robot.solver
    start = solver.current_pose()
    target = hand_frame_target(start, translation)

    result = solver.solve(target.position, target.quaternion)

    assert result
    assert result.converged_strictly
    assert result.iterations <= solver.settings.max_iterations

    reached = solver.current_pose()
    assert np.linalg.norm(reached.position - target.position) <= solver.settings.position_tolerance
    assert _rotation_error(reached.quaternion, target.quaternion) <= solver.settings.rotation_tolerance


def test_already_at_target(long_reach_robot):
    solver = long_reach_robot.solver
    before = long_reach_robot.chain.snapshot()
    pose = solver.current_pose()

    result = solver.solve(pose.position, pose.quaternion)

    assert result.success and result.converged_strictly
    assert result.iterations == 0
    np.testing.assert_allclose(long_reach_robot.chain.snapshot(), before, atol=1e-12)


def test_far_target_restores_angles(long_reach_robot):
    solver = long_reach_robot.solver
    before = long_reach_robot.chain.snapshot()
    pose = solver.current_pose()

    result = solver.solve(pose.position + np.array([5.0, 0.0, 0.0]), pose.quaternion)

    assert not result
    assert isinstance(result, IKResult)
    assert result.position_error > solver.settings.position_tolerance * 2
    np.testing.assert_array_equal(long_reach_robot.chain.snapshot(), before)


def test_far_target_with_retries_degrades_gracefully(long_reach_robot):
    """Either a reduced scale converges or the joints are exactly where they started."""
    solver = long_reach_robot.solver
    before = long_reach_robot.chain.snapshot()
    start = solver.current_pose()
    target = hand_frame_target(start, (5.0, 0.0, 0.0))

    solved = solve_with_retries(solver, target.position, target.quaternion, [1.0, 0.5])

    if solved:
        reached = solver.current_pose().position
        candidates = [start.position + (target.position - start.position) * s for s in (1.0, 0.5)]
        assert min(np.linalg.norm(reached - c) for c in candidates) <= 2 * solver.settings.position_tolerance
    else:
        np.testing.assert_array_equal(long_reach_robot.chain.snapshot(), before)


def test_solution_respects_joint_limits(long_reach_robot):
    solver = long_reach_robot.solver
    chain = long_reach_robot.chain
    start = solver.current_pose()

    for _ in range(5):
        target = hand_frame_target(solver.current_pose(), (0.0, 0.0, -0.005))
        solver.solve(target.position, target.quaternion)

    angles = chain.angles
    assert np.all(angles >= chain.lower_bounds)
    assert np.all(angles <= chain.upper_bounds)
    assert not np.allclose(solver.current_pose().position, start.position)


def test_iteration_budget_limits_work(long_reach_robot):
    """A single-iteration budget reports exactly what the final check measured."""
    chain = long_reach_robot.chain
    solver = IKSolver(chain, IKSettings(max_iterations=1, relaxed_tolerance_factor=1.0))
    before = chain.snapshot()
    target = hand_frame_target(solver.current_pose(), (0.005, 0.0, 0.0))

    result = solver.solve(target.position, target.quaternion)

    assert result.iterations <= 1
    assert result.success == (
        result.position_error <= solver.settings.position_tolerance
        and result.rotation_error <= solver.settings.rotation_tolerance
    )
    if not result:
        np.testing.assert_array_equal(chain.snapshot(), before)


def test_yaw_only_target_two_link(two_link_robot):
    solver = two_link_robot.solver
    start = solver.current_pose()
    target = hand_frame_target(start, (0.0, 0.0, 0.0), 0.03)

    result = solver.solve(target.position, target.quaternion)

    assert result.converged_strictly
    # Only j2 (about the tip's Z axis) contributes
    angles = two_link_robot.joint_angles()
    assert angles["j1"] == pytest.approx(0.0, abs=1e-12)
    assert 0.0 < angles["j2"] <= 0.03
    np.testing.assert_allclose(solver.current_pose().position, start.position, atol=1e-12)


def test_settings_defaults():
    settings = IKSettings()
    assert settings.max_iterations == 32
    assert settings.rotation_tolerance == pytest.approx(math.radians(1.5))
    assert settings.max_joint_delta == pytest.approx(math.radians(5))
