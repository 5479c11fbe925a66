"""Tests for provider_params parsing and client resolution."""

import pytest

from cloud_actions.config.models import AWSConfig
from cloud_actions.connection import Boto3ConnectionResolver, parse_provider_params
from cloud_actions.resources.registry import default_client_factories
from cloud_actions.resources.nat_gateway import Boto3NatGatewayClient
from cloud_actions.resources.redis import Boto3RedisClient
from cloud_actions.resources.storage import Boto3VolumeClient, StorageInput
from cloud_actions.utils.aws_client import AWSClientManager
from cloud_actions.utils.errors import ConfigurationError, ValidationError
from fakes import PROVIDER_PARAMS


class TestParseProviderParams:

    def test_full_blob(self):
        settings = parse_provider_params(PROVIDER_PARAMS)

        assert settings.region == "eu-west-1"
        assert settings.secret_id == "AKIDTEST"
        assert settings.secret_key == "secret"
        assert settings.zone == "eu-west-1a"
        assert settings.extra == {}

    def test_unknown_keys_are_kept(self):
        settings = parse_provider_params("Region=us-east-1;Profile=ops;")

        assert settings.zone is None
        assert settings.secret_id is None
        assert settings.extra == {"Profile": "ops"}

    def test_value_may_contain_equals(self):
        settings = parse_provider_params("Region=us-east-1;SecretID=a;SecretKey=abc==")

        assert settings.secret_key == "abc=="

    @pytest.mark.parametrize("raw, message", [
        ("", "provider_params is empty"),
        ("   ", "provider_params is empty"),
        ("Region", "not in Key=Value form"),
        ("SecretID=a;SecretKey=b", "no Region"),
        ("Region=us-east-1;SecretID=a", "both SecretID and SecretKey"),
        ("Region=us-east-1;AvailableZone=", "wrong AvailableZone value"),
    ])
    def test_invalid_blobs(self, raw, message):
        with pytest.raises(ValidationError, match=message):
            parse_provider_params(raw)

    def test_cache_key_ignores_zone(self):
        a = parse_provider_params("Region=r;SecretID=a;SecretKey=b;AvailableZone=r-1a")
        b = parse_provider_params("Region=r;SecretID=a;SecretKey=b;AvailableZone=r-1b")

        assert a.cache_key == b.cache_key


class TestStorageConnectionParams:

    def test_location_and_secret_override_provider_params(self):
        item = StorageInput(
            provider_params="Region=ignored",
            location="Region=eu-west-1;AvailableZone=eu-west-1b",
            api_secret="SecretID=a;SecretKey=b",
        )

        settings = parse_provider_params(item.connection_params())

        assert settings.region == "eu-west-1"
        assert settings.zone == "eu-west-1b"
        assert settings.secret_id == "a"

    def test_falls_back_to_provider_params(self):
        item = StorageInput(provider_params=PROVIDER_PARAMS, location="Region=other")

        assert item.connection_params() == PROVIDER_PARAMS


class TestBoto3ConnectionResolver:

    def _resolver(self):
        return Boto3ConnectionResolver(default_client_factories(), AWSConfig())

    def test_builds_client_per_kind(self):
        resolver = self._resolver()
        settings = resolver.settings(PROVIDER_PARAMS)

        assert isinstance(resolver.resolve("nat_gateway", settings), Boto3NatGatewayClient)
        assert isinstance(resolver.resolve("redis", settings), Boto3RedisClient)
        volumes = resolver.resolve("storage", settings)
        assert isinstance(volumes, Boto3VolumeClient)
        assert volumes.zone == "eu-west-1a"

    def test_reuses_session_for_same_credentials(self):
        resolver = self._resolver()
        settings = resolver.settings(PROVIDER_PARAMS)

        first = resolver.resolve("nat_gateway", settings)
        second = resolver.resolve("storage", settings)

        assert first.ec2_client is second.ec2_client

    def test_unknown_kind(self):
        resolver = self._resolver()

        with pytest.raises(ConfigurationError):
            resolver.resolve("queue", resolver.settings(PROVIDER_PARAMS))


class TestAWSClientManager:

    def test_clients_are_cached_per_service(self):
        manager = AWSClientManager(region='eu-west-1', access_key_id='a', secret_access_key='b')

        assert manager.get_client('ec2') is manager.get_client('ec2')
        assert manager.get_client('ec2') is not manager.get_client('elasticache')

    def test_endpoint_and_retry_settings(self):
        manager = AWSClientManager(
            region='eu-west-1', access_key_id='a', secret_access_key='b',
            endpoint_url='http://localhost:4566', max_attempts=5,
        )

        client = manager.get_client('ec2')

        assert client.meta.endpoint_url == 'http://localhost:4566'
        assert client.meta.region_name == 'eu-west-1'
        assert manager.boto_config.retries == {'mode': 'standard', 'max_attempts': 5}

    def test_request_credentials_are_used(self):
        manager = AWSClientManager(region='eu-west-1', access_key_id='AKIDTEST', secret_access_key='secret')

        credentials = manager.session.get_credentials()

        assert credentials.access_key == 'AKIDTEST'
