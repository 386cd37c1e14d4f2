"""
Configuration for the solver, the control pad and the scripted trajectory.

Defaults reproduce the tuning of the FR3-with-hand preview. Any subset can be
overridden from a YAML file through ``TeleopConfig.from_yaml``.
"""

import math
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from jax_teleop.core.exceptions import ConfigurationError

FR3_HOME_ANGLES: Dict[str, float] = {
    "fr3_joint1": 0.0,
    "fr3_joint2": -math.pi / 4,
    "fr3_joint3": 0.0,
    "fr3_joint4": -3 * math.pi / 4,
    "fr3_joint5": 0.0,
    "fr3_joint6": math.pi / 2,
    "fr3_joint7": math.pi / 4,
}


def _check_retry_scales(scales: Tuple[float, ...]) -> Tuple[float, ...]:
    if not scales:
        raise ValueError("retry_scales must not be empty")
    if any(scale <= 0.0 or scale > 1.0 for scale in scales):
        raise ValueError("retry scales must lie in (0, 1]")
    if any(later >= earlier for earlier, later in zip(scales, scales[1:])):
        raise ValueError("retry scales must be strictly descending")
    return scales


class IKSettings(BaseModel):
    """Numeric constants of the damped transposed-Jacobian solver."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=32, ge=1)
    jacobian_epsilon: float = Field(default=1e-4, gt=0.0)
    position_tolerance: float = Field(default=1.2e-3, gt=0.0)
    rotation_tolerance: float = Field(default=math.radians(1.5), gt=0.0)
    rotation_weight: float = Field(default=0.3, gt=0.0, lt=1.0)
    gain: float = Field(default=0.22, gt=0.0)
    max_joint_delta: float = Field(default=math.radians(5), gt=0.0)
    relaxed_tolerance_factor: float = Field(default=2.0, ge=1.0)
    stagnation_threshold: float = Field(default=1e-8, ge=0.0)


class PadSettings(BaseModel):
    """Discrete and held directional commands."""

    model_config = ConfigDict(frozen=True)

    translation_step: float = Field(default=0.014, gt=0.0)
    yaw_step: float = Field(default=math.radians(6), gt=0.0)
    hold_repeat_interval: float = Field(default=0.06, gt=0.0)
    hold_step_scale: float = Field(default=0.45, gt=0.0, le=1.0)
    retry_scales: Tuple[float, ...] = (1.0, 0.65, 0.4)

    check_retry_scales = field_validator("retry_scales")(_check_retry_scales)


class TrajectorySettings(BaseModel):
    """Scripted periodic motion around a captured base pose."""

    model_config = ConfigDict(frozen=True)

    update_interval: float = Field(default=0.05, gt=0.0)
    period: float = Field(default=9.0, gt=0.0)
    amplitude_x: float = 0.022
    amplitude_y: float = 0.016
    amplitude_z: float = 0.01
    amplitude_yaw: float = math.radians(8)
    retry_scales: Tuple[float, ...] = (1.0, 0.7, 0.45)
    max_consecutive_failures: int = Field(default=14, ge=1)

    check_retry_scales = field_validator("retry_scales")(_check_retry_scales)


class TeleopConfig(BaseModel):
    """Top-level configuration for loading and driving a robot."""

    model_config = ConfigDict(frozen=True)

    urdf_path: Optional[str] = None
    end_effector_link: str = "fr3_hand_tcp"
    package_map: Dict[str, str] = Field(default_factory=dict)
    home_angles: Dict[str, float] = Field(default_factory=lambda: dict(FR3_HOME_ANGLES))
    ik: IKSettings = Field(default_factory=IKSettings)
    pad: PadSettings = Field(default_factory=PadSettings)
    trajectory: TrajectorySettings = Field(default_factory=TrajectorySettings)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TeleopConfig":
        """
        Load a configuration file.

        Relative ``urdf_path`` and ``package_map`` entries are resolved
        against the directory holding the file.

        Raises:
            ConfigurationError: If the file is missing, not valid YAML, or
                fails validation.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to read configuration: {path}",
                details={"error": str(e)},
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {path}",
                details={"type": type(data).__name__},
            )

        base_dir = path.parent
        if data.get("urdf_path"):
            data["urdf_path"] = str(base_dir / data["urdf_path"])
        if isinstance(data.get("package_map"), dict):
            data["package_map"] = {
                name: value if "://" in value else str(base_dir / value)
                for name, value in data["package_map"].items()
            }

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {path}",
                details={"error": str(e)},
            )
