"""Tests for chain resolution."""

import pytest

from jax_teleop.builder import build_kinematic_tree
from jax_teleop.core import ChainError
from jax_teleop.io import parse_urdf
from jax_teleop.resolver import find_path, resolve_chain


def test_find_path_fr3(fr3_tree):
    path = find_path(fr3_tree, "fr3_link0", "fr3_hand_tcp")
    assert [joint.name for joint in path] == [
        "fr3_joint1", "fr3_joint2", "fr3_joint3", "fr3_joint4", "fr3_joint5",
        "fr3_joint6", "fr3_joint7", "fr3_joint8", "fr3_hand_joint", "fr3_hand_tcp_joint",
    ]


def test_find_path_is_deterministic(fr3_tree):
    first = find_path(fr3_tree, "fr3_link2", "fr3_rightfinger")
    second = find_path(fr3_tree, "fr3_link2", "fr3_rightfinger")
    assert first == second
    assert first[-1].name == "fr3_finger_joint2"


def test_find_path_same_link(fr3_tree):
    assert find_path(fr3_tree, "fr3_link3", "fr3_link3") == ()


def test_find_path_unreachable(fr3_tree):
    # Target is an ancestor, a sibling branch, or not in the tree
    assert find_path(fr3_tree, "fr3_link5", "fr3_link1") is None
    assert find_path(fr3_tree, "fr3_leftfinger", "fr3_hand_tcp") is None
    assert find_path(fr3_tree, "fr3_link0", "nowhere") is None


def test_resolve_chain_filters_fixed_joints(fr3_tree):
    build = build_kinematic_tree(fr3_tree)
    chain = resolve_chain(fr3_tree, build, "fr3_hand_tcp")

    assert chain.names == tuple(f"fr3_joint{i}" for i in range(1, 8))
    assert chain.end_effector is build.link_node("fr3_hand_tcp")
    assert list(chain.indices) == list(range(7))
    assert len(chain) == 7


def test_two_link_chain(two_link_tree):
    build = build_kinematic_tree(two_link_tree)
    chain = resolve_chain(two_link_tree, build, "tip")
    assert chain.names == ("j1", "j2")


def test_chain_shares_state(fr3_tree):
    build = build_kinematic_tree(fr3_tree)
    chain = resolve_chain(fr3_tree, build, "fr3_hand_tcp")

    saved = chain.snapshot()
    chain.set_angles([0.1, -0.2, 0.3, -1.0, 0.5, 1.5, 9.0])
    assert build.state.as_dict()["fr3_joint2"] == -0.2
    # Clamped to the joint7 upper limit
    assert chain.angles[-1] == pytest.approx(3.0159)

    chain.restore(saved)
    assert list(chain.angles) == list(saved)


def test_missing_end_effector(fr3_tree):
    build = build_kinematic_tree(fr3_tree)
    with pytest.raises(ChainError) as excinfo:
        resolve_chain(fr3_tree, build, "gripper_tip")
    assert excinfo.value.end_effector == "gripper_tip"


def test_no_controllable_joints(fr3_tree):
    build = build_kinematic_tree(fr3_tree)
    with pytest.raises(ChainError):
        resolve_chain(fr3_tree, build, "fr3_link0")


def test_only_prismatic_on_path():
    tree = parse_urdf("""
        <robot name="slider">
          <link name="base"/><link name="carriage"/>
          <joint name="rail" type="prismatic">
            <parent link="base"/><child link="carriage"/><axis xyz="1 0 0"/>
          </joint>
        </robot>
    """)
    build = build_kinematic_tree(tree)
    with pytest.raises(ChainError):
        resolve_chain(tree, build, "carriage")
