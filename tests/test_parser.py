"""Tests for URDF parser functionality."""

import math

import pytest

from jax_teleop.core import KinematicTree, ParseError
from jax_teleop.io import load_urdf, parse_urdf


def test_load_fr3_urdf(fr3_tree):
    """Test loading the FR3 description and verify the tree structure."""
    assert isinstance(fr3_tree, KinematicTree)
    assert fr3_tree.root_link == "fr3_link0"

    for i in range(9):
        assert f"fr3_link{i}" in fr3_tree.links
    assert "fr3_hand_tcp" in fr3_tree.links

    joint_names = [joint.name for joint in fr3_tree.joints]
    for i in range(1, 8):
        assert f"fr3_joint{i}" in joint_names
    assert "fr3_finger_joint1" in joint_names

    # Joints are grouped by parent link, in declaration order
    hand_children = [joint.name for joint in fr3_tree.child_joints("fr3_hand")]
    assert hand_children == ["fr3_hand_tcp_joint", "fr3_finger_joint1", "fr3_finger_joint2"]


def test_joint_attributes(fr3_tree):
    joint4 = fr3_tree.joint("fr3_joint4")
    assert joint4.type == "revolute"
    assert joint4.parent == "fr3_link3"
    assert joint4.child == "fr3_link4"
    assert joint4.axis == (0.0, 0.0, 1.0)
    assert joint4.origin.xyz == (0.0825, 0.0, 0.0)
    assert joint4.origin.rpy[0] == pytest.approx(math.pi / 2)
    assert joint4.lower == pytest.approx(-3.0421)
    assert joint4.upper == pytest.approx(-0.1518)
    assert joint4.is_controllable

    finger = fr3_tree.joint("fr3_finger_joint1")
    assert finger.type == "prismatic"
    assert not finger.is_controllable

    tcp = fr3_tree.joint("fr3_hand_tcp_joint")
    assert tcp.type == "fixed"
    assert tcp.lower is None and tcp.upper is None


def test_visual_meshes(fr3_tree):
    visuals = fr3_tree.links["fr3_link1"].visuals
    assert len(visuals) == 1
    assert visuals[0].mesh_filename == "package://franka_description/meshes/robot_arms/fr3/visual/link1.dae"
    assert visuals[0].scale == (1.0, 1.0, 1.0)
    assert fr3_tree.links["fr3_hand_tcp"].visuals == ()


def test_joint_missing_child_is_skipped(fr3_tree):
    assert "fr3_camera_mount_joint" in fr3_tree.skipped_joints
    with pytest.raises(KeyError):
        fr3_tree.joint("fr3_camera_mount_joint")


def test_transmission_joints_are_ignored(fr3_tree):
    """<joint> elements nested in other blocks are not robot joints."""
    names = [joint.name for joint in fr3_tree.joints]
    assert names.count("fr3_joint1") == 1


def test_root_detection():
    """The only link never used as a child is the root, wherever it is declared."""
    tree = parse_urdf("""
        <robot name="r">
          <link name="a"/>
          <link name="b"/>
          <link name="Z"/>
          <joint name="za" type="revolute"><parent link="Z"/><child link="a"/></joint>
          <joint name="ab" type="fixed"><parent link="a"/><child link="b"/></joint>
        </robot>
    """)
    assert tree.root_link == "Z"


def test_defaults_and_malformed_values():
    tree = parse_urdf("""
        <robot name="r">
          <link name="base">
            <visual><geometry><box size="1 1 1"/></geometry></visual>
            <visual><geometry><mesh filename="meshes/a.stl" scale="2 2"/></geometry></visual>
          </link>
          <link name="tip"/>
          <joint name="j">
            <parent link="base"/>
            <child link="tip"/>
            <origin xyz="1 nan 0" rpy="0 0 0.5"/>
            <axis xyz="1 0"/>
            <limit lower="-inf" upper="abc"/>
          </joint>
        </robot>
    """)
    joint = tree.joint("j")
    assert joint.type == "fixed"
    assert joint.axis == (0.0, 0.0, 1.0)
    assert joint.origin.xyz == (0.0, 0.0, 0.0)
    assert joint.origin.rpy == (0.0, 0.0, 0.5)
    assert joint.lower is None and joint.upper is None

    # Visuals without a mesh are dropped; a malformed scale falls back to ones
    visuals = tree.links["base"].visuals
    assert len(visuals) == 1
    assert visuals[0].scale == (1.0, 1.0, 1.0)


@pytest.mark.parametrize("name,parent,child", [
    ("", "base", "tip"),
    ("j", None, "tip"),
    ("j", "base", None),
])
def test_incomplete_joints_are_skipped(name, parent, child):
    parent_elem = f'<parent link="{parent}"/>' if parent else ""
    child_elem = f'<child link="{child}"/>' if child else ""
    tree = parse_urdf(f"""
        <robot name="r">
          <link name="base"/>
          <link name="tip"/>
          <joint name="{name}" type="revolute">{parent_elem}{child_elem}</joint>
        </robot>
    """)
    assert tree.joints == ()
    assert len(tree.skipped_joints) == 1


def test_malformed_markup():
    with pytest.raises(ParseError):
        parse_urdf("<robot name='r'><link name='a'></robot>")


def test_missing_robot_element():
    with pytest.raises(ParseError):
        parse_urdf("<model><link name='a'/></model>")


def test_robot_must_be_document_root():
    with pytest.raises(ParseError) as excinfo:
        parse_urdf("""
            <wrapper>
              <robot name="r"><link name="a"/></robot>
            </wrapper>
        """)
    assert excinfo.value.details == {"root": "wrapper"}


def test_link_with_two_parent_joints():
    with pytest.raises(ParseError) as excinfo:
        parse_urdf("""
            <robot name="r">
              <link name="base"/>
              <link name="a"/>
              <link name="tip"/>
              <joint name="j1" type="fixed"><parent link="base"/><child link="tip"/></joint>
              <joint name="j2" type="fixed"><parent link="a"/><child link="tip"/></joint>
              <joint name="j3" type="fixed"><parent link="base"/><child link="a"/></joint>
            </robot>
        """)
    assert excinfo.value.details == {"joint": "j2", "link": "tip"}


def test_no_root_link():
    with pytest.raises(ParseError):
        parse_urdf("""
            <robot name="loop">
              <link name="a"/>
              <link name="b"/>
              <joint name="ab" type="fixed"><parent link="a"/><child link="b"/></joint>
              <joint name="ba" type="fixed"><parent link="b"/><child link="a"/></joint>
            </robot>
        """)


def test_cycle_below_root():
    with pytest.raises(ParseError):
        parse_urdf("""
            <robot name="loop">
              <link name="root"/>
              <link name="a"/>
              <link name="b"/>
              <joint name="ra" type="fixed"><parent link="root"/><child link="a"/></joint>
              <joint name="ab" type="fixed"><parent link="a"/><child link="b"/></joint>
              <joint name="ba" type="fixed"><parent link="b"/><child link="a"/></joint>
            </robot>
        """)


def test_load_missing_file(tmp_path):
    with pytest.raises(ParseError):
        load_urdf(tmp_path / "missing.urdf")
