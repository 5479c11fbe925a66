"""Configuration management for the provisioning engine."""

from .models import (
    PollConfig,
    KindConfig,
    AWSConfig,
    EngineConfig,
    DEFAULT_KINDS,
)
from .parser import load_config, ConfigValidationError

__all__ = [
    "PollConfig",
    "KindConfig",
    "AWSConfig",
    "EngineConfig",
    "DEFAULT_KINDS",
    "load_config",
    "ConfigValidationError",
]
