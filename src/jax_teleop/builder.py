"""Kinematic tree builder.

Turns a parsed ``KinematicTree`` into a hierarchy of transform nodes and
compiles that hierarchy into the ``RobotModel`` arrays used by the jitted
forward kinematics.

Every link becomes a ``link`` node. Every joint becomes an ``origin`` node
(its static offset from the parent link) wrapping a ``motion`` node (rotation
about the joint axis by the current angle); the child link's whole subtree
hangs under the motion node.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jax.numpy as jnp
import numpy as np

from .core.logging import get_logger
from .core.robot_model import Joint, KinematicTree, Link, RobotModel, Visual
from .joints import JointControl, JointState
from .transforms import se3

logger = get_logger(__name__)

LINK = "link"
ORIGIN = "origin"
MOTION = "motion"


@dataclass
class VisualInstance:
    """A link visual awaiting (or holding) its loaded geometry."""
    visual: Visual
    geometry: Any = None


@dataclass(eq=False)
class TransformNode:
    """One node of the transform hierarchy.

    Attributes:
        name: Link name for link nodes, ``<joint>_origin`` / ``<joint>_motion``
              for joint nodes.
        kind: ``link``, ``origin`` or ``motion``.
        index: Position in depth-first pre-order (the ``RobotModel`` index).
        parent: Parent node, ``None`` for the root.
        link: The link, for link nodes.
        joint: The joint, for origin and motion nodes.
    """
    name: str
    kind: str
    index: int
    parent: Optional["TransformNode"] = None
    children: List["TransformNode"] = field(default_factory=list)
    link: Optional[Link] = None
    joint: Optional[Joint] = None
    visuals: List[VisualInstance] = field(default_factory=list)
    control: Optional[JointControl] = None

    def __repr__(self) -> str:
        return f"TransformNode({self.name!r}, kind={self.kind!r}, index={self.index})"


@dataclass(eq=False)
class KinematicBuild:
    """Everything produced from one parsed description.

    Attributes:
        root: The root link node.
        nodes: All nodes in depth-first pre-order.
        controls: Controllable joint name -> JointControl, in depth-first order.
        state: The shared joint angles.
        model: The compiled RobotModel.
    """
    root: TransformNode
    nodes: List[TransformNode]
    controls: Dict[str, JointControl]
    state: JointState
    model: RobotModel

    def node(self, name: str) -> TransformNode:
        for node in self.nodes:
            if node.name == name:
                return node
        raise KeyError(f"Node '{name}' not found in kinematic tree")

    def link_node(self, name: str) -> Optional[TransformNode]:
        """The node for link ``name``, or ``None`` if the link is not in the tree."""
        for node in self.nodes:
            if node.kind == LINK and node.name == name:
                return node
        return None

    def release(self) -> None:
        """Detach every node and drop loaded geometry."""
        for node in self.nodes:
            for visual in node.visuals:
                visual.geometry = None
            node.children = []
            node.parent = None
        self.nodes = []
        self.controls = {}


def build_kinematic_tree(tree: KinematicTree) -> KinematicBuild:
    """Build the transform hierarchy and joint registry for ``tree``.

    Args:
        tree: The parsed description.

    Returns:
        KinematicBuild: Nodes, controllable joints and the compiled model.
    """
    nodes: List[TransformNode] = []
    controls: List[JointControl] = []

    def add_node(name: str, kind: str, parent: Optional[TransformNode], **kwargs) -> TransformNode:
        node = TransformNode(name=name, kind=kind, index=len(nodes), parent=parent, **kwargs)
        nodes.append(node)
        if parent is not None:
            parent.children.append(node)
        return node

    def build_link(link_name: str, parent: Optional[TransformNode]) -> TransformNode:
        link = tree.links.get(link_name) or Link(name=link_name)
        link_node = add_node(
            link_name,
            LINK,
            parent,
            link=link,
            visuals=[VisualInstance(visual) for visual in link.visuals],
        )

        for joint in tree.child_joints(link_name):
            origin_node = add_node(f"{joint.name}_origin", ORIGIN, link_node, joint=joint)
            motion_node = add_node(f"{joint.name}_motion", MOTION, origin_node, joint=joint)
            if joint.is_controllable:
                control = JointControl.from_joint(joint, motion_node, index=len(controls))
                motion_node.control = control
                controls.append(control)

            # Whole child subtree before the next sibling joint
            build_link(joint.child, motion_node)

        return link_node

    root = build_link(tree.root_link, None)
    state = JointState(controls)
    model = compile_model(nodes)

    logger.debug(
        "kinematic_tree_built",
        root=root.name,
        nodes=len(nodes),
        controllable_joints=len(controls),
    )
    return KinematicBuild(
        root=root,
        nodes=nodes,
        controls={control.name: control for control in controls},
        state=state,
        model=model,
    )


def compile_model(nodes: List[TransformNode]) -> RobotModel:
    """Flatten pre-ordered nodes into ``RobotModel`` arrays."""
    num_nodes = len(nodes)
    parent_indices = np.zeros(num_nodes, dtype=np.int32)
    origin_xyz = np.zeros((num_nodes, 3), dtype=np.float64)
    origin_rpy = np.zeros((num_nodes, 3), dtype=np.float64)
    motion_axes = np.zeros((num_nodes, 3), dtype=np.float64)
    state_indices = np.full(num_nodes, -1, dtype=np.int32)

    for node in nodes:
        parent_indices[node.index] = node.parent.index if node.parent is not None else node.index
        if node.kind == ORIGIN:
            origin_xyz[node.index] = node.joint.origin.xyz
            origin_rpy[node.index] = node.joint.origin.rpy
        elif node.control is not None:
            motion_axes[node.index] = node.control.axis
            state_indices[node.index] = node.control.index

    return RobotModel(
        node_names=tuple(node.name for node in nodes),
        parent_indices=jnp.asarray(parent_indices),
        local_transforms=se3.from_origin(origin_xyz, origin_rpy),
        motion_axes=jnp.asarray(motion_axes),
        state_indices=jnp.asarray(state_indices),
    )
