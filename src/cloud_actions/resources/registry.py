"""Lookup table from (kind, operation) to action."""

import time
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Type

from cloud_actions.config.models import EngineConfig
from cloud_actions.connection.resolver import Boto3ConnectionResolver, ClientFactory, ConnectionResolver
from cloud_actions.utils.errors import ActionNotFoundError
from cloud_actions.utils.logging import get_logger
from .base import Action, ResourceHandler
from . import nat_gateway, redis, storage

logger = get_logger(__name__)

HANDLERS: Dict[str, Type[ResourceHandler]] = {
    nat_gateway.KIND: nat_gateway.NatGatewayHandler,
    redis.KIND: redis.RedisHandler,
    storage.KIND: storage.StorageHandler,
}

ACTIONS: Dict[str, Tuple[Type[Action], ...]] = {
    nat_gateway.KIND: (nat_gateway.NatGatewayCreateAction, nat_gateway.NatGatewayTerminateAction),
    redis.KIND: (redis.RedisCreateAction, redis.RedisTerminateAction),
    storage.KIND: (storage.StorageCreateAction, storage.StorageTerminateAction),
}


def default_client_factories() -> Dict[str, ClientFactory]:
    """boto3-backed remote client factory for every kind."""
    return {
        nat_gateway.KIND: nat_gateway.Boto3NatGatewayClient.from_manager,
        redis.KIND: redis.Boto3RedisClient.from_manager,
        storage.KIND: storage.Boto3VolumeClient.from_manager,
    }


class ActionRegistry:
    """Read-only table of actions, built once at process start."""

    def __init__(self, actions: Mapping[Tuple[str, str], Action]):
        self._actions = MappingProxyType(dict(actions))

    def get(self, kind: str, operation: str) -> Action:
        """Look up the action for a kind and operation.

        Raises:
            ActionNotFoundError: If nothing is registered for the pair
        """
        action = self._actions.get((kind, operation))
        if action is None:
            kinds = sorted({k for k, _ in self._actions})
            if kind not in kinds:
                raise ActionNotFoundError(
                    f"resource kind '{kind}' not found",
                    suggestions=[f"Known kinds: {', '.join(kinds)}"],
                )
            raise ActionNotFoundError(f"{kind} plugin, action = {operation} not found")
        return action

    def kinds(self) -> List[str]:
        return sorted({kind for kind, _ in self._actions})

    def describe(self) -> List[Tuple[str, str, str]]:
        """List (kind, operation, aggregation) for every registered action."""
        return [
            (kind, operation, action.aggregation.value)
            for (kind, operation), action in sorted(self._actions.items())
        ]

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._actions

    def __len__(self) -> int:
        return len(self._actions)


def build_registry(
    config: Optional[EngineConfig] = None,
    resolver: Optional[ConnectionResolver] = None,
    sleep: Callable[[float], None] = time.sleep
) -> ActionRegistry:
    """Build the registry of every kind and operation.

    Args:
        config: Engine configuration; built-in defaults if None
        resolver: Connection resolver; boto3-backed if None
        sleep: Blocking sleep handed to every handler's poller

    Returns:
        ActionRegistry
    """
    config = config or EngineConfig()
    resolver = resolver or Boto3ConnectionResolver(default_client_factories(), config.aws)

    actions: Dict[Tuple[str, str], Action] = {}
    for kind, handler_class in HANDLERS.items():
        handler = handler_class(resolver, config.kind(kind), sleep=sleep)
        for action_class in ACTIONS[kind]:
            actions[(kind, action_class.operation)] = action_class(handler)

    logger.debug(f"Registered {len(actions)} actions for {len(HANDLERS)} resource kinds")
    return ActionRegistry(actions)
