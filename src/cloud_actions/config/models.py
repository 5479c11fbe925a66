"""Pydantic models for engine configuration."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

from cloud_actions.engine.batch import AggregationMode
from cloud_actions.engine.poller import ConvergenceTarget, PollPolicy
from cloud_actions.utils.errors import ConfigurationError


class PollConfig(BaseModel):
    """Fixed-interval polling budget."""

    interval: float = Field(10.0, ge=0, description="Seconds between state queries")
    max_attempts: int = Field(20, ge=1, le=1000, description="Maximum number of state queries")

    def policy(self, target: ConvergenceTarget) -> PollPolicy:
        """Build a poll policy for one wait."""
        return PollPolicy(target=target, interval=self.interval, max_attempts=self.max_attempts)


class KindConfig(BaseModel):
    """Per resource kind engine behaviour."""

    aggregation: AggregationMode
    poll: PollConfig = Field(default_factory=PollConfig)


class AWSConfig(BaseModel):
    """boto3 client settings."""

    endpoint_url: Optional[str] = Field(None, description="Override endpoint (e.g. a local emulator)")
    connect_timeout: int = Field(10, ge=1)
    read_timeout: int = Field(60, ge=1)
    max_attempts: int = Field(3, ge=1, le=10, description="botocore transport retry budget")


DEFAULT_KINDS: Dict[str, Dict[str, Any]] = {
    "nat_gateway": {
        "aggregation": AggregationMode.ABORT_ON_FIRST_FAILURE,
        "poll": {"interval": 10.0, "max_attempts": 20},
    },
    "redis": {
        "aggregation": AggregationMode.ABORT_ON_FIRST_FAILURE,
        "poll": {"interval": 10.0, "max_attempts": 20},
    },
    "storage": {
        "aggregation": AggregationMode.COLLECT_ALL,
        "poll": {"interval": 5.0, "max_attempts": 20},
    },
}


class EngineConfig(BaseModel):
    """Top-level configuration."""

    kinds: Dict[str, KindConfig] = Field(default_factory=dict, validate_default=True)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    log_level: str = Field("info", pattern="^(debug|info|warning|error)$")
    log_dir: Optional[str] = None

    @field_validator("kinds", mode="before")
    @classmethod
    def merge_defaults(cls, v: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Overlay user settings on the built-in per-kind defaults."""
        merged = {
            name: {"aggregation": spec["aggregation"], "poll": dict(spec["poll"])}
            for name, spec in DEFAULT_KINDS.items()
        }
        for name, overrides in (v or {}).items():
            if isinstance(overrides, KindConfig):
                overrides = overrides.model_dump()
            if not isinstance(overrides, dict):
                raise ValueError(f"Settings for kind '{name}' must be a mapping")
            entry = merged.setdefault(name, {})
            for key, value in overrides.items():
                if key == "poll" and isinstance(value, dict):
                    entry.setdefault("poll", {}).update(value)
                else:
                    entry[key] = value
        return merged

    def kind(self, name: str) -> KindConfig:
        """Get the settings for a resource kind.

        Raises:
            ConfigurationError: If the kind is not configured
        """
        try:
            return self.kinds[name]
        except KeyError:
            raise ConfigurationError(f"No configuration for resource kind '{name}'")
