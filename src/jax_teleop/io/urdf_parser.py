"""URDF parser producing the immutable ``KinematicTree`` description.

Only the subset needed for kinematics and display is read: links with their
visual meshes, and joints with type, parent, child, axis, origin and limits.
Everything else in the document is ignored.
"""

import math
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Union

from lxml import etree

from jax_teleop.core.exceptions import ParseError
from jax_teleop.core.logging import get_logger
from jax_teleop.core.robot_model import Joint, KinematicTree, Link, Origin, Visual

logger = get_logger(__name__)

_ZERO = (0.0, 0.0, 0.0)
_ONES = (1.0, 1.0, 1.0)
_Z_AXIS = (0.0, 0.0, 1.0)


def load_urdf(urdf_path: Union[str, Path]) -> KinematicTree:
    """Load a URDF file and parse it into a KinematicTree.

    Args:
        urdf_path: Path to the URDF file to load.

    Returns:
        KinematicTree: The parsed description.

    Raises:
        ParseError: If the file cannot be read or is not a valid description.
    """
    path = Path(urdf_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ParseError(f"Unable to read URDF file: {path}", details={"error": str(e)})
    return parse_urdf(text)


def parse_urdf(urdf_text: str) -> KinematicTree:
    """Parse URDF markup into a KinematicTree.

    Joints missing a name, parent or child are skipped, not rejected.
    Malformed vectors and limits fall back to their defaults.

    Args:
        urdf_text: The raw document.

    Returns:
        KinematicTree: Links, joints grouped by parent link, and the root link.

    Raises:
        ParseError: On malformed XML, a document root other than ``<robot>``,
            a link with two parent joints, no root link, or a cycle reachable
            from the root.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        document = etree.fromstring(urdf_text.encode("utf-8"), parser=parser)
    except etree.XMLSyntaxError as e:
        raise ParseError("Unable to parse URDF XML.", details={"error": str(e)})

    if document.tag != "robot":
        raise ParseError(
            "URDF document root must be a <robot> element.",
            details={"root": document.tag},
        )
    robot = document

    # First pass: links and their visual meshes
    links: Dict[str, Link] = {}
    for link_elem in robot.findall("link"):
        name = link_elem.get("name")
        if not name:
            continue
        links[name] = Link(name=name, visuals=tuple(_parse_visuals(link_elem)))

    # Second pass: joints grouped by parent link
    joints_by_parent: Dict[str, List[Joint]] = {}
    child_links: Set[str] = set()
    skipped: List[str] = []

    for position, joint_elem in enumerate(robot.findall("joint")):
        name = joint_elem.get("name")
        joint_type = joint_elem.get("type") or "fixed"
        parent = _child_attribute(joint_elem, "parent", "link")
        child = _child_attribute(joint_elem, "child", "link")

        if not name or not parent or not child:
            label = name or f"<joint #{position}>"
            skipped.append(label)
            logger.warning(
                "joint_skipped",
                joint=label,
                missing=[
                    key for key, value in (("name", name), ("parent", parent), ("child", child))
                    if not value
                ],
            )
            continue

        axis_elem = joint_elem.find("axis")
        limit_elem = joint_elem.find("limit")

        joint = Joint(
            name=name,
            type=joint_type,
            parent=parent,
            child=child,
            axis=_parse_vector(axis_elem.get("xyz") if axis_elem is not None else None, _Z_AXIS),
            origin=_parse_origin(joint_elem.find("origin")),
            lower=_parse_optional_float(limit_elem.get("lower") if limit_elem is not None else None),
            upper=_parse_optional_float(limit_elem.get("upper") if limit_elem is not None else None),
        )

        if child in child_links:
            raise ParseError(
                f"Link '{child}' is the child of more than one joint.",
                details={"joint": name, "link": child},
            )
        joints_by_parent.setdefault(parent, []).append(joint)
        child_links.add(child)

    # Find root link (first declared link that is not a child of any joint)
    root_candidates = [name for name in links if name not in child_links]
    if not root_candidates:
        raise ParseError("Could not find root link in URDF.")
    root_link = root_candidates[0]
    if len(root_candidates) > 1:
        logger.warning("multiple_root_candidates", root=root_link, candidates=root_candidates)

    frozen_joints = {parent: tuple(joints) for parent, joints in joints_by_parent.items()}
    _check_acyclic(root_link, frozen_joints)

    tree = KinematicTree(
        root_link=root_link,
        links=links,
        joints_by_parent=frozen_joints,
        skipped_joints=tuple(skipped),
    )
    logger.debug(
        "urdf_parsed",
        name=robot.get("name"),
        root=root_link,
        links=len(links),
        joints=len(tree.joints),
        skipped=len(skipped),
    )
    return tree


def _parse_visuals(link_elem: etree._Element) -> List[Visual]:
    visuals = []
    for visual_elem in link_elem.findall("visual"):
        mesh_elem = visual_elem.find("geometry/mesh")
        filename = mesh_elem.get("filename") if mesh_elem is not None else None
        if not filename:
            continue

        visuals.append(Visual(
            mesh_filename=filename,
            scale=_parse_vector(mesh_elem.get("scale"), _ONES),
            origin=_parse_origin(visual_elem.find("origin")),
        ))
    return visuals


def _child_attribute(elem: etree._Element, tag: str, attribute: str) -> Optional[str]:
    child = elem.find(tag)
    if child is None:
        return None
    return child.get(attribute) or None


def _parse_origin(origin_elem: Optional[etree._Element]) -> Origin:
    if origin_elem is None:
        return Origin()
    return Origin(
        xyz=_parse_vector(origin_elem.get("xyz"), _ZERO),
        rpy=_parse_vector(origin_elem.get("rpy"), _ZERO),
    )


def _parse_vector(raw: Optional[str], fallback: Tuple[float, float, float]) -> Tuple[float, float, float]:
    """Parse three whitespace-separated finite numbers, else ``fallback``."""
    if not raw:
        return fallback

    try:
        values = [float(x) for x in raw.split()]
    except ValueError:
        return fallback

    if len(values) != 3 or not all(math.isfinite(v) for v in values):
        return fallback
    return (values[0], values[1], values[2])


def _parse_optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _check_acyclic(root_link: str, joints_by_parent: Dict[str, Tuple[Joint, ...]]) -> None:
    """Reject descriptions where a link is its own ancestor."""
    # Iterative DFS keeping the links on the current path
    on_path: Set[str] = set()
    stack: List[Tuple[str, bool]] = [(root_link, False)]
    while stack:
        link, leaving = stack.pop()
        if leaving:
            on_path.discard(link)
            continue
        if link in on_path:
            raise ParseError("URDF joints form a cycle.", details={"link": link})
        on_path.add(link)
        stack.append((link, True))
        for joint in joints_by_parent.get(link, ()):
            stack.append((joint.child, False))
