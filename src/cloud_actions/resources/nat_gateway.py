"""NAT gateway lifecycle."""

from abc import ABC, abstractmethod
from typing import List, Optional

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
    ValidationError,
    error_handler,
)
from cloud_actions.utils.logging import get_logger
from .base import Action, ItemInput, ResourceHandler

logger = get_logger(__name__)

KIND = "nat_gateway"

CONNECTIVITY_PUBLIC = "public"
CONNECTIVITY_PRIVATE = "private"

NOT_FOUND_CODES = {"NatGatewayNotFound", "InvalidNatGatewayID.NotFound"}

# Marks elastic IPs allocated on behalf of a gateway, released with it
AUTO_ALLOCATED_TAG = "cloud-actions:auto-allocated"

NAT_STATES = {
    "pending": ResourceState.PENDING,
    "available": ResourceState.AVAILABLE,
    "deleting": ResourceState.DELETING,
    "failed": ResourceState.FAILED,
}


class NatGatewayInput(ItemInput):
    name: str = ""
    vpc_id: str = ""
    subnet_id: str = ""
    connectivity_type: str = CONNECTIVITY_PUBLIC
    allocation_id: str = ""
    auto_allocate_eip: bool = False


class NatGatewayInputs(BaseModel):
    inputs: List[NatGatewayInput] = Field(default_factory=list)


class NatGatewayOutput(ItemOutput):
    pass


class NatGatewayClient(ABC):
    """Remote operations on NAT gateways."""

    @abstractmethod
    def describe(self, gateway_id: str) -> ResourceSnapshot:
        pass

    @abstractmethod
    def create(self, request: NatGatewayInput) -> MutationAck:
        pass

    @abstractmethod
    def delete(self, gateway_id: str) -> MutationAck:
        pass

    @abstractmethod
    def release_addresses(self, allocation_ids: List[str]) -> List[str]:
        """Release the auto-allocated addresses among ``allocation_ids``."""
        pass


class Boto3NatGatewayClient(NatGatewayClient):
    """NAT gateways through the EC2 API."""

    def __init__(self, ec2_client):
        self.ec2_client = ec2_client

    @classmethod
    def from_manager(cls, manager: AWSClientManager, settings: ConnectionSettings) -> "Boto3NatGatewayClient":
        return cls(manager.get_client('ec2'))

    def describe(self, gateway_id: str) -> ResourceSnapshot:
        try:
            response = self.ec2_client.describe_nat_gateways(NatGatewayIds=[gateway_id])
        except ClientError as e:
            if e.response['Error']['Code'] in NOT_FOUND_CODES:
                return ResourceSnapshot.absent(gateway_id)
            raise error_handler.handle_exception(
                e, ErrorContext(kind=KIND, resource_id=gateway_id), Phase.QUERY
            )

        gateways = response.get('NatGateways', [])
        if len(gateways) > 1:
            raise RemoteQueryError(
                f"describe nat gateway {gateway_id} returned {len(gateways)} gateways",
                context=ErrorContext(kind=KIND, resource_id=gateway_id),
            )
        if not gateways or gateways[0]['State'] == 'deleted':
            return ResourceSnapshot.absent(gateway_id)

        gateway = gateways[0]
        return ResourceSnapshot(
            resource_id=gateway_id,
            exists=True,
            state=NAT_STATES.get(gateway['State'], ResourceState.UNKNOWN),
            raw_state=gateway['State'],
            details={
                'vpc_id': gateway.get('VpcId'),
                'subnet_id': gateway.get('SubnetId'),
                'failure_message': gateway.get('FailureMessage'),
                'allocation_ids': [
                    address['AllocationId'] for address in gateway.get('NatGatewayAddresses', [])
                    if address.get('AllocationId')
                ],
            },
        )

    def create(self, request: NatGatewayInput) -> MutationAck:
        context = ErrorContext(guid=request.guid or None, kind=KIND, operation='create')
        params = {
            'SubnetId': request.subnet_id,
            'ConnectivityType': request.connectivity_type,
            'TagSpecifications': [{
                'ResourceType': 'natgateway',
                'Tags': [{'Key': 'Name', 'Value': request.name}],
            }],
        }
        if request.guid:
            params['ClientToken'] = request.guid

        allocated = None
        try:
            if request.connectivity_type == CONNECTIVITY_PUBLIC:
                if not request.allocation_id:
                    allocated = self._allocate_address(request)
                params['AllocationId'] = request.allocation_id or allocated
            response = self.ec2_client.create_nat_gateway(**params)
        except ClientError as e:
            if allocated:
                self._release_unused(allocated)
            raise error_handler.handle_exception(e, context, Phase.MUTATION)

        gateway = response.get('NatGateway') or {}
        if not gateway.get('NatGatewayId'):
            if allocated:
                self._release_unused(allocated)
            raise RemoteRejectionError("no nat gateway is created", context=context)

        if gateway.get('VpcId') and gateway['VpcId'] != request.vpc_id:
            logger.warning(
                f"nat gateway {gateway['NatGatewayId']} landed in {gateway['VpcId']}, "
                f"requested {request.vpc_id}"
            )

        return MutationAck(
            resource_id=gateway['NatGatewayId'],
            request_id=response.get('ResponseMetadata', {}).get('RequestId'),
        )

    def delete(self, gateway_id: str) -> MutationAck:
        try:
            response = self.ec2_client.delete_nat_gateway(NatGatewayId=gateway_id)
        except ClientError as e:
            raise error_handler.handle_exception(
                e, ErrorContext(kind=KIND, operation='terminate', resource_id=gateway_id), Phase.MUTATION
            )
        return MutationAck(
            resource_id=response.get('NatGatewayId', gateway_id),
            request_id=response.get('ResponseMetadata', {}).get('RequestId'),
        )

    def release_addresses(self, allocation_ids: List[str]) -> List[str]:
        if not allocation_ids:
            return []
        context = ErrorContext(kind=KIND, operation='terminate')
        try:
            response = self.ec2_client.describe_addresses(
                AllocationIds=list(allocation_ids),
                Filters=[{'Name': f"tag:{AUTO_ALLOCATED_TAG}", 'Values': ['true']}],
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'InvalidAllocationID.NotFound':
                return []
            raise error_handler.handle_exception(e, context, Phase.QUERY)

        released = []
        for address in response.get('Addresses', []):
            try:
                self.ec2_client.release_address(AllocationId=address['AllocationId'])
            except ClientError as e:
                raise error_handler.handle_exception(e, context, Phase.MUTATION)
            released.append(address['AllocationId'])
        return released

    def _allocate_address(self, request: NatGatewayInput) -> str:
        response = self.ec2_client.allocate_address(
            Domain='vpc',
            TagSpecifications=[{
                'ResourceType': 'elastic-ip',
                'Tags': [
                    {'Key': 'Name', 'Value': f"nat-{request.name}"},
                    {'Key': AUTO_ALLOCATED_TAG, 'Value': 'true'},
                ],
            }],
        )
        logger.info(f"Allocated elastic ip {response['AllocationId']} for nat gateway {request.name}")
        return response['AllocationId']

    def _release_unused(self, allocation_id: str) -> None:
        """Give back an address whose gateway was never created.

        The create error is the one reported; a failed release is only logged.
        """
        try:
            self.ec2_client.release_address(AllocationId=allocation_id)
            logger.info(f"Released elastic ip {allocation_id} after failed create")
        except ClientError as e:
            logger.error(f"Could not release elastic ip {allocation_id}: {e}")


class NatGatewayHandler(ResourceHandler):
    """Create and terminate NAT gateways."""

    kind = KIND

    def create(self, item: NatGatewayInput) -> MutationAck:
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'create')

        if item.id:
            guard = ensure_state(
                item.id, client.describe, desired_state=ResourceState.AVAILABLE, context=context
            )
            if guard.converged:
                return MutationAck(resource_id=item.id)
            if guard.snapshot.exists:
                self.wait_for(client.describe, item.id, StateEquals(ResourceState.AVAILABLE), context)
                return MutationAck(resource_id=item.id)

        ack = client.create(item)
        logger.info(f"Created nat gateway {ack.resource_id} ({item.name}) in {item.vpc_id}")
        self.wait_for(client.describe, ack.resource_id, StateEquals(ResourceState.AVAILABLE), context)
        return ack

    def terminate(self, item: NatGatewayInput) -> MutationAck:
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'terminate')

        guard = ensure_state(item.id, client.describe, desired_exists=False, context=context)
        if guard.converged:
            return MutationAck(resource_id=item.id)

        ack = MutationAck(resource_id=item.id)
        if guard.snapshot.state is not ResourceState.DELETING:
            ack = client.delete(item.id)
            logger.info(f"Deleting nat gateway {item.id}")
        self.wait_for(client.describe, item.id, ExistenceEquals(False), context)

        # addresses stay associated until the gateway is gone
        allocation_ids = guard.snapshot.details.get('allocation_ids') or []
        if allocation_ids:
            released = client.release_addresses(allocation_ids)
            if released:
                logger.info(f"Released elastic ip(s) {', '.join(released)} of nat gateway {item.id}")
        return ack


class NatGatewayCreateAction(Action):
    operation = "create"
    input_model = NatGatewayInputs

    def validate_item(self, item: NatGatewayInput) -> None:
        if not item.vpc_id:
            raise ValidationError("nat gateway create: vpc_id is empty")
        if not item.name:
            raise ValidationError("nat gateway create: name is empty")
        if not item.subnet_id:
            raise ValidationError("nat gateway create: subnet_id is empty")
        if item.connectivity_type not in (CONNECTIVITY_PUBLIC, CONNECTIVITY_PRIVATE):
            raise ValidationError(
                f"nat gateway create: connectivity_type '{item.connectivity_type}' is invalid"
            )
        if (item.connectivity_type == CONNECTIVITY_PUBLIC
                and not item.allocation_id and not item.auto_allocate_eip):
            raise ValidationError(
                "nat gateway create: a public gateway needs allocation_id or auto_allocate_eip"
            )

    def new_output(self, item: NatGatewayInput) -> NatGatewayOutput:
        return NatGatewayOutput(guid=item.guid or None)

    def process(self, item: NatGatewayInput, output: NatGatewayOutput) -> None:
        ack = self.handler.create(item)
        output.id = ack.resource_id
        output.request_id = ack.request_id


class NatGatewayTerminateAction(Action):
    operation = "terminate"
    input_model = NatGatewayInputs

    def validate_item(self, item: NatGatewayInput) -> None:
        if not item.id:
            raise ValidationError("nat gateway terminate: id is empty")

    def new_output(self, item: NatGatewayInput) -> NatGatewayOutput:
        return NatGatewayOutput(guid=item.guid or None, id=item.id or None)

    def process(self, item: NatGatewayInput, output: NatGatewayOutput) -> None:
        ack = self.handler.terminate(item)
        output.request_id = ack.request_id
