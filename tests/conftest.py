"""Shared fixtures: robot descriptions under tests/fixtures and built robots."""

import math
from pathlib import Path

import pytest

from jax_teleop.io import load_urdf
from jax_teleop.loader import build_robot

FIXTURES = Path(__file__).parent / "fixtures"

LONG_REACH_HOME = {
    "lra_joint1": 0.0,
    "lra_joint2": -math.pi / 4,
    "lra_joint3": 0.0,
    "lra_joint4": -3 * math.pi / 4,
    "lra_joint5": 0.0,
    "lra_joint6": math.pi / 2,
    "lra_joint7": math.pi / 4,
}


@pytest.fixture
def fixtures_dir():
    return FIXTURES


@pytest.fixture
def fr3_tree():
    return load_urdf(FIXTURES / "fr3_with_hand.urdf")


@pytest.fixture
def two_link_tree():
    return load_urdf(FIXTURES / "two_link.urdf")


@pytest.fixture
def long_reach_robot():
    """Seven-axis arm at its home pose, with room to move in every direction."""
    tree = load_urdf(FIXTURES / "long_reach_arm.urdf")
    return build_robot(tree, "lra_tool_tcp", home_angles=LONG_REACH_HOME)


@pytest.fixture
def two_link_robot(two_link_tree):
    return build_robot(two_link_tree, "tip")
