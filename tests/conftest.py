"""Shared fixtures: fake control planes wired into a registry, and a recording sleep."""

import pytest

from cloud_actions.config.models import EngineConfig
from cloud_actions.resources.registry import build_registry
from fakes import (
    FakeNatGatewayClient,
    FakeRedisClient,
    FakeResolver,
    FakeVolumeClient,
    SleepRecorder,
)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def nat_client():
    return FakeNatGatewayClient()


@pytest.fixture
def redis_client():
    return FakeRedisClient()


@pytest.fixture
def volume_client():
    return FakeVolumeClient()


@pytest.fixture
def resolver(nat_client, redis_client, volume_client):
    return FakeResolver({
        'nat_gateway': nat_client,
        'redis': redis_client,
        'storage': volume_client,
    })


@pytest.fixture
def registry(resolver, sleeper):
    return build_registry(EngineConfig(), resolver=resolver, sleep=sleeper)
