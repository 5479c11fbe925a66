"""YAML configuration loader."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from cloud_actions.utils.errors import ConfigurationError
from .models import EngineConfig


class ConfigValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        super().__init__(message)
        self.errors = errors or []

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML file; built-in defaults if None

    Returns:
        Validated EngineConfig

    Raises:
        ConfigValidationError: If configuration is invalid
        FileNotFoundError: If configuration file doesn't exist
    """
    if config_path is None:
        return EngineConfig()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Failed to parse YAML: {e}")

    if not isinstance(data, dict):
        raise ConfigValidationError("Configuration root must be a mapping")

    try:
        return EngineConfig(**data)
    except ValidationError as e:
        errors = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in e.errors()]
        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s)", errors
        )
