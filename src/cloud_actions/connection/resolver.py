"""Resolution of connection settings into remote resource clients."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from cloud_actions.config.models import AWSConfig
from cloud_actions.utils.aws_client import AWSClientManager
from cloud_actions.utils.errors import ConfigurationError
from cloud_actions.utils.logging import get_logger
from .settings import ConnectionSettings, parse_provider_params

logger = get_logger(__name__)

ClientFactory = Callable[[AWSClientManager, ConnectionSettings], Any]


class ConnectionResolver(ABC):
    """Turns connection settings into a remote client for a resource kind."""

    @abstractmethod
    def resolve(self, kind: str, settings: ConnectionSettings) -> Any:
        """Return the remote resource client for ``kind``."""
        pass

    def settings(self, provider_params: str) -> ConnectionSettings:
        return parse_provider_params(provider_params)


class Boto3ConnectionResolver(ConnectionResolver):
    """Builds boto3-backed clients, one session per credential set."""

    def __init__(
        self,
        factories: Dict[str, ClientFactory],
        aws_config: Optional[AWSConfig] = None
    ):
        """Initialize resolver.

        Args:
            factories: Client factory per resource kind
            aws_config: boto3 timeouts, retry budget and endpoint override
        """
        self.factories = dict(factories)
        self.aws_config = aws_config or AWSConfig()
        self._managers: Dict[tuple, AWSClientManager] = {}

    def resolve(self, kind: str, settings: ConnectionSettings) -> Any:
        factory = self.factories.get(kind)
        if factory is None:
            raise ConfigurationError(f"No client factory registered for resource kind '{kind}'")
        return factory(self._manager(settings), settings)

    def _manager(self, settings: ConnectionSettings) -> AWSClientManager:
        manager = self._managers.get(settings.cache_key)
        if manager is None:
            manager = AWSClientManager(
                region=settings.region,
                access_key_id=settings.secret_id,
                secret_access_key=settings.secret_key,
                endpoint_url=self.aws_config.endpoint_url,
                connect_timeout=self.aws_config.connect_timeout,
                read_timeout=self.aws_config.read_timeout,
                max_attempts=self.aws_config.max_attempts,
            )
            self._managers[settings.cache_key] = manager
            logger.debug(f"Created client manager for region {settings.region}")
        return manager
