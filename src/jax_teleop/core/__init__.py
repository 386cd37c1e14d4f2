"""Core data structures, configuration, errors and logging for jax_teleop."""

from .exceptions import (
    AssetError,
    ChainError,
    ConfigurationError,
    LoadError,
    ParseError,
    TeleopError,
)
from .robot_model import (
    Joint,
    KinematicTree,
    Link,
    Origin,
    Pose,
    RobotModel,
    Visual,
)

__all__ = [
    "AssetError",
    "ChainError",
    "ConfigurationError",
    "Joint",
    "KinematicTree",
    "Link",
    "LoadError",
    "Origin",
    "ParseError",
    "Pose",
    "RobotModel",
    "TeleopError",
    "Visual",
]
