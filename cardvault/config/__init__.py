"""Configuration loading and validation."""

from .models import (
    SystemConfig,
    ImportConfig,
    ImportLimitsConfig,
)
from .loader import ConfigLoader, ConfigLoadError, ConfigValidationError

__all__ = [
    "SystemConfig",
    "ImportConfig",
    "ImportLimitsConfig",
    "ConfigLoader",
    "ConfigLoadError",
    "ConfigValidationError",
]
