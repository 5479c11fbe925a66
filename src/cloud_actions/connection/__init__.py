"""Connection settings and remote client resolution."""

from .settings import ConnectionSettings, parse_provider_params
from .resolver import ConnectionResolver, Boto3ConnectionResolver

__all__ = [
    'ConnectionSettings',
    'parse_provider_params',
    'ConnectionResolver',
    'Boto3ConnectionResolver',
]
