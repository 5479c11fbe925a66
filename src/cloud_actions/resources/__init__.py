"""Resource lifecycle handlers, actions and the action registry."""

from .base import Action, ItemInput, ResourceHandler
from .nat_gateway import (
    NatGatewayInput,
    NatGatewayInputs,
    NatGatewayOutput,
    NatGatewayClient,
    Boto3NatGatewayClient,
    NatGatewayHandler,
    NatGatewayCreateAction,
    NatGatewayTerminateAction,
)
from .redis import (
    RedisInput,
    RedisInputs,
    RedisOutput,
    RedisClient,
    Boto3RedisClient,
    RedisHandler,
    RedisCreateAction,
    RedisTerminateAction,
)
from .storage import (
    StorageInput,
    StorageInputs,
    StorageOutput,
    VolumeClient,
    Boto3VolumeClient,
    StorageHandler,
    StorageCreateAction,
    StorageTerminateAction,
)
from .registry import ActionRegistry, build_registry, default_client_factories

__all__ = [
    'Action',
    'ItemInput',
    'ResourceHandler',
    'NatGatewayInput',
    'NatGatewayInputs',
    'NatGatewayOutput',
    'NatGatewayClient',
    'Boto3NatGatewayClient',
    'NatGatewayHandler',
    'NatGatewayCreateAction',
    'NatGatewayTerminateAction',
    'RedisInput',
    'RedisInputs',
    'RedisOutput',
    'RedisClient',
    'Boto3RedisClient',
    'RedisHandler',
    'RedisCreateAction',
    'RedisTerminateAction',
    'StorageInput',
    'StorageInputs',
    'StorageOutput',
    'VolumeClient',
    'Boto3VolumeClient',
    'StorageHandler',
    'StorageCreateAction',
    'StorageTerminateAction',
    'ActionRegistry',
    'build_registry',
    'default_client_factories',
]
