"""Exception hierarchy shared by the todolens pipeline and its services."""

from __future__ import annotations

__all__ = [
    "ConfigError",
    "MissingInputError",
    "ServiceError",
    "ServiceResponseError",
    "TodoLensError",
]


class TodoLensError(RuntimeError):
    """Base error raised for todolens failures."""


class MissingInputError(TodoLensError, ValueError):
    """Raised when a required request parameter is missing or blank."""


class ConfigError(TodoLensError):
    """Raised when the YAML configuration cannot be loaded."""


class ServiceError(TodoLensError):
    """Raised when an external capability (packer, search, symbols) fails."""


class ServiceResponseError(ServiceError):
    """Raised when a capability returns a payload that does not match its contract."""
