"""Managed redis cache lifecycle."""

from abc import ABC, abstractmethod
from typing import List, Optional, Set, Tuple

from botocore.exceptions import ClientError
from pydantic import BaseModel, Field

from cloud_actions.connection.settings import ConnectionSettings
from cloud_actions.engine.guard import ensure_state
from cloud_actions.engine.models import ItemOutput, MutationAck, ResourceSnapshot, ResourceState
from cloud_actions.engine.poller import ExistenceEquals, StateEquals
from cloud_actions.utils.aws_client import AWSClientManager
from cloud_actions.utils.errors import (
    ErrorContext,
    Phase,
    RemoteQueryError,
    RemoteRejectionError,
    ResourceNotFoundError,
    ValidationError,
    error_handler,
)
from cloud_actions.utils.logging import get_logger
from .base import Action, ItemInput, ResourceHandler

logger = get_logger(__name__)

KIND = "redis"

BILLING_MODE_POSTPAID = 0
BILLING_MODE_PREPAID = 1

NOT_FOUND_CODES = {"ReplicationGroupNotFoundFault", "ReplicationGroupNotFound"}

REDIS_STATES = {
    "creating": ResourceState.PENDING,
    "modifying": ResourceState.PENDING,
    "snapshotting": ResourceState.PENDING,
    "available": ResourceState.AVAILABLE,
    "deleting": ResourceState.DELETING,
    "create-failed": ResourceState.FAILED,
}


class RedisInput(ItemInput):
    name: str = ""
    node_type: str = ""
    node_count: int = 0
    period: int = 0
    password: str = ""
    billing_mode: int = BILLING_MODE_POSTPAID
    subnet_group: str = ""
    security_group_ids: List[str] = Field(default_factory=list)

    @property
    def replication_group_id(self) -> str:
        return self.id or self.name


class RedisInputs(BaseModel):
    inputs: List[RedisInput] = Field(default_factory=list)


class RedisOutput(ItemOutput):
    instance_ids: Optional[str] = None


class RedisClient(ABC):
    """Remote operations on managed redis replication groups."""

    @abstractmethod
    def available_zones(self) -> Set[str]:
        """Names of the zones the control plane reports as available."""
        pass

    @abstractmethod
    def describe(self, group_id: str) -> ResourceSnapshot:
        pass

    @abstractmethod
    def create(self, request: RedisInput, zone: str) -> MutationAck:
        pass

    @abstractmethod
    def delete(self, group_id: str) -> MutationAck:
        pass


class Boto3RedisClient(RedisClient):
    """Redis replication groups through the ElastiCache API."""

    def __init__(self, elasticache_client, ec2_client):
        self.elasticache_client = elasticache_client
        self.ec2_client = ec2_client

    @classmethod
    def from_manager(cls, manager: AWSClientManager, settings: ConnectionSettings) -> "Boto3RedisClient":
        return cls(manager.get_client('elasticache'), manager.get_client('ec2'))

    def available_zones(self) -> Set[str]:
        try:
            response = self.ec2_client.describe_availability_zones()
        except ClientError as e:
            raise error_handler.handle_exception(e, ErrorContext(kind=KIND), Phase.QUERY)

        zones = response.get('AvailabilityZones', [])
        if not zones:
            raise RemoteQueryError("availability zone count is zero", context=ErrorContext(kind=KIND))
        return {zone['ZoneName'] for zone in zones if zone.get('State') == 'available'}

    def describe(self, group_id: str) -> ResourceSnapshot:
        try:
            response = self.elasticache_client.describe_replication_groups(ReplicationGroupId=group_id)
        except ClientError as e:
            if e.response['Error']['Code'] in NOT_FOUND_CODES:
                return ResourceSnapshot.absent(group_id)
            raise error_handler.handle_exception(
                e, ErrorContext(kind=KIND, resource_id=group_id), Phase.QUERY
            )

        groups = response.get('ReplicationGroups', [])
        if not groups:
            return ResourceSnapshot.absent(group_id)

        group = groups[0]
        return ResourceSnapshot(
            resource_id=group_id,
            exists=True,
            state=REDIS_STATES.get(group['Status'], ResourceState.UNKNOWN),
            raw_state=group['Status'],
            details={'member_clusters': list(group.get('MemberClusters', []))},
        )

    def create(self, request: RedisInput, zone: str) -> MutationAck:
        tags = [{'Key': 'Guid', 'Value': request.guid}]
        if request.billing_mode == BILLING_MODE_PREPAID:
            tags.append({'Key': 'BillingMode', 'Value': 'PREPAID'})
            tags.append({'Key': 'Period', 'Value': str(request.period)})
        else:
            tags.append({'Key': 'BillingMode', 'Value': 'POSTPAID'})

        params = {
            'ReplicationGroupId': request.replication_group_id,
            'ReplicationGroupDescription': f"redis {request.name} ({request.guid})",
            'Engine': 'redis',
            'CacheNodeType': request.node_type,
            'NumCacheClusters': request.node_count,
            'PreferredCacheClusterAZs': [zone] * request.node_count,
            'AuthToken': request.password,
            'TransitEncryptionEnabled': True,
            'Tags': tags,
        }
        if request.subnet_group:
            params['CacheSubnetGroupName'] = request.subnet_group
        if request.security_group_ids:
            params['SecurityGroupIds'] = list(request.security_group_ids)

        context = ErrorContext(guid=request.guid or None, kind=KIND, operation='create')
        try:
            response = self.elasticache_client.create_replication_group(**params)
        except ClientError as e:
            raise error_handler.handle_exception(e, context, Phase.MUTATION)

        group = response.get('ReplicationGroup') or {}
        if not group.get('ReplicationGroupId'):
            raise RemoteRejectionError("no redis replication group is created", context=context)

        return MutationAck(
            resource_id=group['ReplicationGroupId'],
            request_id=response.get('ResponseMetadata', {}).get('RequestId'),
        )

    def delete(self, group_id: str) -> MutationAck:
        try:
            response = self.elasticache_client.delete_replication_group(ReplicationGroupId=group_id)
        except ClientError as e:
            raise error_handler.handle_exception(
                e, ErrorContext(kind=KIND, operation='terminate', resource_id=group_id), Phase.MUTATION
            )
        return MutationAck(
            resource_id=group_id,
            request_id=response.get('ResponseMetadata', {}).get('RequestId'),
        )


class RedisHandler(ResourceHandler):
    """Create and terminate redis replication groups."""

    kind = KIND

    def create(self, item: RedisInput) -> Tuple[MutationAck, ResourceSnapshot]:
        """Create a replication group and wait for it to run.

        Returns:
            Tuple of (MutationAck, converged snapshot)
        """
        settings = self.settings_for(item)
        client = self.client_for(settings)
        group_id = item.replication_group_id
        context = self.context(item, 'create', group_id)
        running = StateEquals(ResourceState.AVAILABLE)

        guard = ensure_state(group_id, client.describe, desired_state=ResourceState.AVAILABLE, context=context)
        if guard.converged:
            return MutationAck(resource_id=group_id), guard.snapshot
        if guard.snapshot.exists:
            return MutationAck(resource_id=group_id), self.wait_for(client.describe, group_id, running, context)

        if not settings.zone or settings.zone not in client.available_zones():
            raise ResourceNotFoundError(
                f"not found available zone info for '{settings.zone}'",
                context=context,
                suggestions=['Set AvailableZone in provider_params to an available zone'],
            )

        ack = client.create(item, settings.zone)
        logger.info(f"Creating redis replication group {ack.resource_id}")
        snapshot = self.wait_for(client.describe, ack.resource_id, running, context)
        return ack, snapshot

    def terminate(self, item: RedisInput) -> MutationAck:
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'terminate')

        guard = ensure_state(item.id, client.describe, desired_exists=False, context=context)
        if guard.converged:
            return MutationAck(resource_id=item.id)

        ack = MutationAck(resource_id=item.id)
        if guard.snapshot.state is not ResourceState.DELETING:
            ack = client.delete(item.id)
            logger.info(f"Deleting redis replication group {item.id}")
        self.wait_for(client.describe, item.id, ExistenceEquals(False), context)
        return ack


class RedisCreateAction(Action):
    operation = "create"
    input_model = RedisInputs

    def validate_item(self, item: RedisInput) -> None:
        if item.node_count <= 0:
            raise ValidationError("redis create: node_count is invalid")
        if not item.password:
            raise ValidationError("redis create: password is empty")
        if item.billing_mode not in (BILLING_MODE_POSTPAID, BILLING_MODE_PREPAID):
            raise ValidationError(f"redis create: billing_mode {item.billing_mode} is invalid")
        if item.billing_mode == BILLING_MODE_PREPAID and item.period <= 0:
            raise ValidationError("redis create: period must be positive for prepaid billing")
        if not item.node_type:
            raise ValidationError("redis create: node_type is empty")
        if not item.replication_group_id:
            raise ValidationError("redis create: name is empty")

    def new_output(self, item: RedisInput) -> RedisOutput:
        return RedisOutput(guid=item.guid or None)

    def process(self, item: RedisInput, output: RedisOutput) -> None:
        ack, snapshot = self.handler.create(item)
        output.id = ack.resource_id
        output.request_id = ack.request_id
        output.instance_ids = ",".join(snapshot.details.get("member_clusters", [])) or None


class RedisTerminateAction(Action):
    operation = "terminate"
    input_model = RedisInputs

    def validate_item(self, item: RedisInput) -> None:
        if not item.id:
            raise ValidationError("redis terminate: id is empty")

    def new_output(self, item: RedisInput) -> RedisOutput:
        return RedisOutput(guid=item.guid or None, id=item.id or None)

    def process(self, item: RedisInput, output: RedisOutput) -> None:
        ack = self.handler.terminate(item)
        output.request_id = ack.request_id
