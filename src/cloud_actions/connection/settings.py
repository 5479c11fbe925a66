"""Parsing of the provider_params connection blob."""

from dataclasses import dataclass, field
from typing import Dict, Optional

from cloud_actions.utils.errors import ValidationError

KEY_REGION = "Region"
KEY_SECRET_ID = "SecretID"
KEY_SECRET_KEY = "SecretKey"
KEY_ZONE = "AvailableZone"


@dataclass(frozen=True)
class ConnectionSettings:
    """Control plane connection settings for one request."""
    region: str
    secret_id: Optional[str] = None
    secret_key: Optional[str] = None
    zone: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    @property
    def cache_key(self) -> tuple:
        return (self.region, self.secret_id, self.secret_key)


def parse_provider_params(raw: str) -> ConnectionSettings:
    """Parse ``Key=Value`` pairs separated by ``;``.

    Example: ``Region=eu-west-1;SecretID=AKIA...;SecretKey=...;AvailableZone=eu-west-1a``

    Raises:
        ValidationError: If the blob is malformed or lacks required keys
    """
    if not raw or not raw.strip():
        raise ValidationError("provider_params is empty")

    values: Dict[str, str] = {}
    for pair in raw.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            raise ValidationError(f"provider_params entry '{pair}' is not in Key=Value form")
        key, value = pair.split("=", 1)
        values[key.strip()] = value.strip()

    region = values.pop(KEY_REGION, "")
    if not region:
        raise ValidationError("provider_params has no Region")

    secret_id = values.pop(KEY_SECRET_ID, None) or None
    secret_key = values.pop(KEY_SECRET_KEY, None) or None
    if bool(secret_id) != bool(secret_key):
        raise ValidationError("provider_params needs both SecretID and SecretKey, or neither")

    zone = None
    if KEY_ZONE in values:
        zone = values.pop(KEY_ZONE)
        if not zone:
            raise ValidationError("wrong AvailableZone value")

    return ConnectionSettings(
        region=region,
        secret_id=secret_id,
        secret_key=secret_key,
        zone=zone,
        extra=values,
    )
