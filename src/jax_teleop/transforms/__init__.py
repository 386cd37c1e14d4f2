"""
JAX transforms used by the kinematics core.

- SO(3) rotations (so3 module)
- SE(3) rigid body transforms (se3 module)
- Unit quaternion algebra (quaternion module)

All functions are pure, stateless, and JIT-compilable.
"""

from . import so3
from . import se3
from . import quaternion

__all__ = [
    "so3",
    "se3",
    "quaternion",
]
