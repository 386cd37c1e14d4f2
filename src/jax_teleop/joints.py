"""Live joint angles.

``JointState`` owns the single float64 array of joint angles that every later
stage reads and mutates. ``JointControl`` is the per-joint view onto one entry
of that array; it carries the joint's axis and limits and applies the clamp
rule on every write.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .core.robot_model import Joint


@dataclass(eq=False)
class JointControl:
    """Runtime counterpart of a controllable joint.

    Attributes:
        name: Joint name.
        type: ``revolute`` or ``continuous``.
        axis: Unit rotation axis in the joint frame.
        node: The motion transform node this joint drives.
        lower: Lower limit, ``None`` when unbounded.
        upper: Upper limit, ``None`` when unbounded.
        index: Position of this joint's angle in the shared state.
    """
    name: str
    type: str
    axis: np.ndarray
    node: Any
    lower: Optional[float] = None
    upper: Optional[float] = None
    index: int = -1
    state: Optional["JointState"] = field(default=None, repr=False)

    @classmethod
    def from_joint(cls, joint: Joint, node: Any, index: int) -> "JointControl":
        axis = np.asarray(joint.axis, dtype=np.float64)
        axis = axis / np.linalg.norm(axis)
        return cls(
            name=joint.name,
            type=joint.type,
            axis=axis,
            node=node,
            lower=joint.lower,
            upper=joint.upper,
            index=index,
        )

    @property
    def is_limited(self) -> bool:
        return self.type != "continuous" and (self.lower is not None or self.upper is not None)

    @property
    def bounds(self) -> tuple:
        """(lower, upper) as enforced by ``clamp``; infinite where unbounded."""
        if self.type == "continuous":
            return (-np.inf, np.inf)
        lower = -np.inf if self.lower is None else self.lower
        upper = np.inf if self.upper is None else self.upper
        return (lower, upper)

    def clamp(self, angle: float) -> float:
        """Clamp ``angle`` to whichever limits are present.

        Continuous joints pass through unmodified.
        """
        angle = float(angle)
        if not self.is_limited:
            return angle
        if self.lower is not None:
            angle = max(self.lower, angle)
        if self.upper is not None:
            angle = min(self.upper, angle)
        return angle

    @property
    def angle(self) -> float:
        return float(self.state.angles[self.index])

    @angle.setter
    def angle(self, value: float) -> None:
        self.state.set_angle(self.index, value)


class JointState:
    """The shared angle array for all controllable joints.

    Every write is clamped, so limited joints stay within their bounds after
    any mutation. ``version`` increases on every write and is what the
    forward-kinematics cache keys on.

    Example:
        >>> state = JointState(build.controls.values())
        >>> state.set_angles({"fr3_joint4": -2.35})
        >>> saved = state.snapshot()
        >>> state.restore(saved)
    """

    def __init__(self, controls: Iterable[JointControl]):
        self.controls: List[JointControl] = list(controls)
        self.names = tuple(control.name for control in self.controls)
        self._index = {name: i for i, name in enumerate(self.names)}
        self._angles = np.zeros(len(self.controls), dtype=np.float64)

        bounds = np.array([control.bounds for control in self.controls], dtype=np.float64).reshape(-1, 2)
        self.lower_bounds = bounds[:, 0]
        self.upper_bounds = bounds[:, 1]
        self.version = 0

        for i, control in enumerate(self.controls):
            control.index = i
            control.state = self
            self._angles[i] = control.clamp(0.0)

    def __len__(self) -> int:
        return len(self.controls)

    @property
    def angles(self) -> np.ndarray:
        """Read-only view of the current angles."""
        view = self._angles.view()
        view.flags.writeable = False
        return view

    def index(self, joint: Union[str, int]) -> int:
        if isinstance(joint, str):
            try:
                return self._index[joint]
            except KeyError:
                raise KeyError(f"Joint '{joint}' is not controllable")
        if not 0 <= joint < len(self.controls):
            raise IndexError(f"Joint index {joint} out of range")
        return joint

    def set_angle(self, joint: Union[str, int], angle: float) -> float:
        """Clamp and store one angle; returns the stored value."""
        i = self.index(joint)
        value = self.controls[i].clamp(angle)
        self._angles[i] = value
        self.version += 1
        return value

    def set_angles(self, angles: Mapping[str, float]) -> None:
        for name, angle in angles.items():
            i = self.index(name)
            self._angles[i] = self.controls[i].clamp(angle)
        self.version += 1

    def assign(self, indices: Sequence[int], values: Sequence[float]) -> None:
        """Vectorised clamped write of several entries at once."""
        indices = np.asarray(indices, dtype=np.int64)
        values = np.asarray(values, dtype=np.float64)
        self._angles[indices] = np.clip(values, self.lower_bounds[indices], self.upper_bounds[indices])
        self.version += 1

    def snapshot(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        if indices is None:
            return self._angles.copy()
        return self._angles[np.asarray(indices, dtype=np.int64)].copy()

    def restore(self, snapshot: np.ndarray, indices: Optional[Sequence[int]] = None) -> None:
        """Write back angles captured by ``snapshot`` with the same ``indices``."""
        snapshot = np.asarray(snapshot, dtype=np.float64)
        if indices is None:
            if snapshot.shape != self._angles.shape:
                raise ValueError(
                    f"Snapshot has shape {snapshot.shape}, expected {self._angles.shape}"
                )
            self._angles[:] = np.clip(snapshot, self.lower_bounds, self.upper_bounds)
        else:
            indices = np.asarray(indices, dtype=np.int64)
            self._angles[indices] = np.clip(snapshot, self.lower_bounds[indices], self.upper_bounds[indices])
        self.version += 1

    def as_dict(self) -> Dict[str, float]:
        return {name: float(angle) for name, angle in zip(self.names, self._angles)}
