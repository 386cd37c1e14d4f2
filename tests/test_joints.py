"""Tests for joint clamping and the shared joint state."""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_teleop.builder import build_kinematic_tree
from jax_teleop.core import Joint
from jax_teleop.io import parse_urdf
from jax_teleop.joints import JointControl, JointState

MIXED_URDF = """
<robot name="mixed">
  <link name="l0"/><link name="l1"/><link name="l2"/><link name="l3"/><link name="l4"/>
  <joint name="limited" type="revolute">
    <parent link="l0"/><child link="l1"/><axis xyz="0 0 1"/>
    <limit lower="-1.0" upper="0.5"/>
  </joint>
  <joint name="spin" type="continuous">
    <parent link="l1"/><child link="l2"/><axis xyz="0 1 0"/>
    <limit lower="-0.1" upper="0.1"/>
  </joint>
  <joint name="lower_only" type="revolute">
    <parent link="l2"/><child link="l3"/><axis xyz="1 0 0"/>
    <limit lower="0.2"/>
  </joint>
  <joint name="free" type="revolute">
    <parent link="l3"/><child link="l4"/><axis xyz="1 0 0"/>
  </joint>
</robot>
"""

finite_angles = st.floats(min_value=-50.0, max_value=50.0, allow_nan=False)


@pytest.fixture
def state():
    return build_kinematic_tree(parse_urdf(MIXED_URDF)).state


def _control(joint_type, lower=None, upper=None):
    joint = Joint(name="j", type=joint_type, parent="a", child="b", lower=lower, upper=upper)
    return JointControl.from_joint(joint, node=None, index=0)


@given(finite_angles)
def test_clamp_limited(angle):
    control = _control("revolute", -1.0, 0.5)
    clamped = control.clamp(angle)
    assert -1.0 <= clamped <= 0.5
    # Idempotent
    assert control.clamp(clamped) == clamped


@given(finite_angles)
def test_continuous_passes_through(angle):
    control = _control("continuous", -0.1, 0.1)
    assert control.clamp(angle) == angle


def test_single_bound():
    control = _control("revolute", lower=0.2)
    assert control.clamp(-3.0) == 0.2
    assert control.clamp(30.0) == 30.0
    assert control.bounds == (0.2, np.inf)
    assert _control("revolute").clamp(-7.0) == -7.0


@given(st.lists(st.tuples(st.sampled_from(["limited", "spin", "lower_only", "free"]), finite_angles), max_size=30))
@settings(deadline=None)
def test_angles_stay_within_limits(assignments):
    state = build_kinematic_tree(parse_urdf(MIXED_URDF)).state
    for name, angle in assignments:
        state.set_angle(name, angle)

    angles = state.as_dict()
    assert -1.0 <= angles["limited"] <= 0.5
    assert angles["lower_only"] >= 0.2
    assert np.all(state.angles >= state.lower_bounds)
    assert np.all(state.angles <= state.upper_bounds)

    spins = [angle for name, angle in assignments if name == "spin"]
    if spins:
        assert angles["spin"] == spins[-1]


def test_set_angle_through_control(state):
    control = state.controls[0]
    control.angle = 2.0
    assert control.angle == 0.5
    assert state.as_dict()["limited"] == 0.5


def test_version_bumps(state):
    version = state.version
    state.set_angle("free", 0.3)
    state.set_angles({"limited": 0.1, "spin": 4.0})
    state.assign([0, 1], [9.0, 9.0])
    assert state.version == version + 3
    assert state.as_dict()["limited"] == 0.5
    assert state.as_dict()["spin"] == 9.0


@given(st.lists(finite_angles, min_size=4, max_size=4), st.lists(finite_angles, min_size=4, max_size=4))
@settings(deadline=None)
def test_snapshot_restore_roundtrip(first, second):
    state = build_kinematic_tree(parse_urdf(MIXED_URDF)).state
    state.set_angles(dict(zip(state.names, first)))
    saved = state.snapshot()

    state.set_angles(dict(zip(state.names, second)))
    state.restore(saved)

    np.testing.assert_array_equal(state.angles, saved)


def test_partial_snapshot(state):
    state.set_angles({"limited": -0.5, "spin": 2.0, "free": 1.0})
    saved = state.snapshot([3, 0])
    state.set_angles({"limited": 0.3, "free": -1.0})

    state.restore(saved, [3, 0])

    assert state.as_dict()["limited"] == -0.5
    assert state.as_dict()["free"] == 1.0


def test_restore_shape_mismatch(state):
    with pytest.raises(ValueError):
        state.restore(np.zeros(2))


def test_unknown_joint(state):
    with pytest.raises(KeyError):
        state.set_angle("nope", 0.0)
    with pytest.raises(IndexError):
        state.set_angle(17, 0.0)


def test_angles_view_is_read_only(state):
    with pytest.raises(ValueError):
        state.angles[0] = 1.0


def test_empty_state():
    state = JointState([])
    assert len(state) == 0
    assert state.as_dict() == {}
