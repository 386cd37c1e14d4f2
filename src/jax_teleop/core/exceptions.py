"""Exception hierarchy for jax_teleop.

All library errors inherit from TeleopError so callers can catch the whole
family at the top of a load flow.
"""

from typing import Any, Dict, Optional


class TeleopError(Exception):
    """Base exception for all jax_teleop errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ParseError(TeleopError):
    """Raised when a robot description cannot be parsed."""

    pass


class ChainError(TeleopError):
    """Raised when no controllable chain reaches the end-effector link."""

    def __init__(
        self,
        message: str,
        end_effector: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.end_effector = end_effector


class LoadError(TeleopError):
    """Raised when the robot description document cannot be fetched."""

    pass


class AssetError(TeleopError):
    """Raised when a mesh reference cannot be resolved or loaded."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


class ConfigurationError(TeleopError):
    """Raised when configuration is invalid or missing."""

    pass
