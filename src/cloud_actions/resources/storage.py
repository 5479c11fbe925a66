"""Block storage volume lifecycle: create, attach, detach, terminate."""

from abc import ABC, abstractmethod
from typing import List, Optional

from botocore.exceptions import ClientError
from pydantic import BaseModel, Field

from cloud_actions.connection.settings import ConnectionSettings
from cloud_actions.engine.guard import ensure_state
from cloud_actions.engine.models import MutationAck, ResourceSnapshot, ResourceState, ResultItemOutput
from cloud_actions.engine.poller import ExistenceEquals, StateEquals
from cloud_actions.utils.aws_client import AWSClientManager
from cloud_actions.utils.errors import (
    ErrorContext,
    ExplicitFailureError,
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

KIND = "storage"

CHARGE_TYPE_PREPAID = "PREPAID"
CHARGE_TYPE_POSTPAID = "POSTPAID_BY_HOUR"
CHARGE_TYPES = (CHARGE_TYPE_PREPAID, CHARGE_TYPE_POSTPAID)
RENEW_FLAG = "NOTIFY_AND_AUTO_RENEW"

# Device names tried, in order, when a request names none
DEVICE_CANDIDATES = tuple(f"/dev/sd{letter}" for letter in "fghijklmnop")

NOT_FOUND_CODES = {"InvalidVolume.NotFound"}

ATTACHMENT_STATES = {
    "attaching": ResourceState.ATTACHING,
    "attached": ResourceState.ATTACHED,
    "detaching": ResourceState.DETACHING,
    "busy": ResourceState.ATTACHED,
}

VOLUME_STATES = {
    "creating": ResourceState.PENDING,
    "available": ResourceState.UNATTACHED,
    "deleting": ResourceState.DELETING,
    "error": ResourceState.FAILED,
}


def _positive_int(value: str) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class StorageInput(ItemInput):
    disk_type: str = ""
    disk_size: str = ""
    disk_name: str = ""
    disk_charge_type: str = ""
    disk_charge_period: str = ""
    instance_id: str = ""
    device: str = ""
    location: str = ""
    api_secret: str = ""
    callback_parameter: str = ""

    def connection_params(self) -> str:
        if self.location and self.api_secret:
            return f"{self.location};{self.api_secret}"
        return self.provider_params


class StorageInputs(BaseModel):
    inputs: List[StorageInput] = Field(default_factory=list)


class StorageOutput(ResultItemOutput):
    callback_parameter: Optional[str] = None


class VolumeClient(ABC):
    """Remote operations on block storage volumes."""

    @abstractmethod
    def describe(self, volume_id: str) -> ResourceSnapshot:
        pass

    @abstractmethod
    def create(self, request: StorageInput) -> MutationAck:
        pass

    @abstractmethod
    def attach(self, volume_id: str, instance_id: str, device: str) -> MutationAck:
        pass

    @abstractmethod
    def detach(self, volume_id: str) -> MutationAck:
        pass

    @abstractmethod
    def delete(self, volume_id: str) -> MutationAck:
        pass


class Boto3VolumeClient(VolumeClient):
    """EBS volumes through the EC2 API."""

    def __init__(self, ec2_client, zone: Optional[str] = None):
        self.ec2_client = ec2_client
        self.zone = zone

    @classmethod
    def from_manager(cls, manager: AWSClientManager, settings: ConnectionSettings) -> "Boto3VolumeClient":
        return cls(manager.get_client('ec2'), settings.zone)

    def describe(self, volume_id: str) -> ResourceSnapshot:
        try:
            response = self.ec2_client.describe_volumes(VolumeIds=[volume_id])
        except ClientError as e:
            if e.response['Error']['Code'] in NOT_FOUND_CODES:
                return ResourceSnapshot.absent(volume_id)
            raise error_handler.handle_exception(
                e, ErrorContext(kind=KIND, resource_id=volume_id), Phase.QUERY
            )

        volumes = response.get('Volumes', [])
        if len(volumes) > 1:
            raise RemoteQueryError(
                f"describe disk[diskId={volume_id}], the response disks more than 1",
                context=ErrorContext(kind=KIND, resource_id=volume_id),
            )
        if not volumes or volumes[0]['State'] == 'deleted':
            return ResourceSnapshot.absent(volume_id)

        volume = volumes[0]
        state = VOLUME_STATES.get(volume['State'], ResourceState.UNKNOWN)
        attached_to = None

        if volume['State'] == 'in-use':
            state = ResourceState.UNATTACHED
            attachments = [a for a in volume.get('Attachments', []) if a.get('State') != 'detached']
            if attachments:
                attached_to = attachments[0].get('InstanceId')
                state = ATTACHMENT_STATES.get(attachments[0].get('State'), ResourceState.UNKNOWN)

        return ResourceSnapshot(
            resource_id=volume_id,
            exists=True,
            state=state,
            attached_to=attached_to,
            raw_state=volume['State'],
            details={'size': volume.get('Size'), 'zone': volume.get('AvailabilityZone')},
        )

    def create(self, request: StorageInput) -> MutationAck:
        context = ErrorContext(guid=request.guid or None, kind=KIND, operation='create')
        if not self.zone:
            raise ValidationError("AvailableZone is required to create a disk", context=context)

        tags = [{'Key': 'ChargeType', 'Value': request.disk_charge_type}]
        if request.disk_name:
            tags.append({'Key': 'Name', 'Value': request.disk_name})
        if request.disk_charge_type == CHARGE_TYPE_PREPAID:
            tags.append({'Key': 'ChargePeriod', 'Value': request.disk_charge_period})
            tags.append({'Key': 'RenewFlag', 'Value': RENEW_FLAG})

        params = {
            'AvailabilityZone': self.zone,
            'Size': int(request.disk_size),
            'VolumeType': request.disk_type,
            'TagSpecifications': [{'ResourceType': 'volume', 'Tags': tags}],
        }
        if request.guid:
            params['ClientToken'] = request.guid

        try:
            response = self.ec2_client.create_volume(**params)
        except ClientError as e:
            raise error_handler.handle_exception(e, context, Phase.MUTATION)

        if not response.get('VolumeId'):
            raise RemoteRejectionError("no storage is created", context=context)

        return MutationAck(
            resource_id=response['VolumeId'],
            request_id=response.get('ResponseMetadata', {}).get('RequestId'),
        )

    def attach(self, volume_id: str, instance_id: str, device: str) -> MutationAck:
        """Attach a volume; an empty ``device`` picks the instance's first free name."""
        device = device or self._free_device(instance_id, volume_id)
        logger.debug(f"Attaching {volume_id} to {instance_id} at {device}")
        return self._mutate(
            'attach', volume_id,
            self.ec2_client.attach_volume, VolumeId=volume_id, InstanceId=instance_id, Device=device,
        )

    def _free_device(self, instance_id: str, volume_id: str) -> str:
        context = ErrorContext(kind=KIND, operation='attach', resource_id=volume_id)
        try:
            response = self.ec2_client.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            raise error_handler.handle_exception(e, context, Phase.QUERY)

        instances = [i for r in response.get('Reservations', []) for i in r.get('Instances', [])]
        if not instances:
            raise ResourceNotFoundError(f"instance {instance_id} not found", context=context)

        # /dev/xvdf and /dev/sdf name the same slot
        used = {
            mapping['DeviceName'].replace('/dev/xvd', '/dev/sd')
            for mapping in instances[0].get('BlockDeviceMappings', [])
            if mapping.get('DeviceName')
        }
        for device in DEVICE_CANDIDATES:
            if device not in used:
                return device
        raise RemoteRejectionError(
            f"instance {instance_id} has no free device name in "
            f"{DEVICE_CANDIDATES[0]}..{DEVICE_CANDIDATES[-1]}",
            context=context,
            suggestions=['Detach an unused volume or pass device explicitly'],
        )

    def detach(self, volume_id: str) -> MutationAck:
        return self._mutate('detach', volume_id, self.ec2_client.detach_volume, VolumeId=volume_id)

    def delete(self, volume_id: str) -> MutationAck:
        return self._mutate('terminate', volume_id, self.ec2_client.delete_volume, VolumeId=volume_id)

    def _mutate(self, operation: str, volume_id: str, call, **params) -> MutationAck:
        try:
            response = call(**params)
        except ClientError as e:
            raise error_handler.handle_exception(
                e, ErrorContext(kind=KIND, operation=operation, resource_id=volume_id), Phase.MUTATION
            )
        return MutationAck(
            resource_id=volume_id,
            request_id=response.get('ResponseMetadata', {}).get('RequestId'),
        )


class StorageHandler(ResourceHandler):
    """Volume lifecycle: create -> attach -> detach -> terminate."""

    kind = KIND

    def create(self, item: StorageInput) -> MutationAck:
        """Create a volume (or reuse ``item.id``) and wait until it is unattached."""
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'create')
        unattached = StateEquals(ResourceState.UNATTACHED)

        if item.id:
            guard = ensure_state(item.id, client.describe, context=context)
            if guard.snapshot.failed:
                raise ExplicitFailureError(
                    f"disk[{item.id}] is in state {guard.snapshot.describe()}",
                    context=context,
                    suggestions=['Terminate the failed disk and resubmit without id'],
                )
            if guard.snapshot.exists:
                if guard.snapshot.state is ResourceState.PENDING:
                    self.wait_for(client.describe, item.id, unattached, context)
                return MutationAck(resource_id=item.id)

        ack = client.create(item)
        logger.info(f"create disk response: diskId={ack.resource_id}")
        self.wait_for(client.describe, ack.resource_id, unattached, context)
        return ack

    def attach(self, item: StorageInput, volume_id: str) -> MutationAck:
        """Attach a volume to ``item.instance_id``.

        Raises:
            ConflictError: The volume is attached to another instance
            ResourceNotFoundError: The volume does not exist
        """
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'attach', volume_id)
        attached = StateEquals(ResourceState.ATTACHED)

        guard = ensure_state(
            volume_id, client.describe,
            desired_state=ResourceState.ATTACHED,
            target=item.instance_id,
            must_exist=True,
            context=context,
        )
        if guard.converged:
            return MutationAck(resource_id=volume_id)

        ack = MutationAck(resource_id=volume_id)
        if guard.snapshot.attached_to != item.instance_id:
            ack = client.attach(volume_id, item.instance_id, item.device)
            logger.info(f"Attaching disk {volume_id} to {item.instance_id}")
        self.wait_for(client.describe, volume_id, attached, context)
        return ack

    def detach(self, item: StorageInput, volume_id: str) -> MutationAck:
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'detach', volume_id)

        guard = ensure_state(
            volume_id, client.describe,
            desired_state=ResourceState.UNATTACHED,
            must_exist=True,
            context=context,
        )
        if guard.converged:
            return MutationAck(resource_id=volume_id)

        ack = MutationAck(resource_id=volume_id)
        if guard.snapshot.state is not ResourceState.DETACHING:
            ack = client.detach(volume_id)
            logger.info(f"Detaching disk {volume_id} from {guard.snapshot.attached_to}")
        self.wait_for(client.describe, volume_id, StateEquals(ResourceState.UNATTACHED), context)
        return ack

    def terminate(self, item: StorageInput) -> MutationAck:
        """Detach the volume if needed, delete it and wait until it is gone."""
        client = self.client_for(self.settings_for(item))
        context = self.context(item, 'terminate')

        guard = ensure_state(item.id, client.describe, desired_exists=False, context=context)
        if guard.converged:
            logger.info(f"disk[{item.id}] does not exist, nothing to terminate")
            return MutationAck(resource_id=item.id)

        if guard.snapshot.state in (ResourceState.ATTACHED, ResourceState.ATTACHING, ResourceState.DETACHING):
            self.detach(item, item.id)

        ack = MutationAck(resource_id=item.id)
        if guard.snapshot.state is not ResourceState.DELETING:
            ack = client.delete(item.id)
            logger.info(f"Deleting disk {item.id}")
        self.wait_for(client.describe, item.id, ExistenceEquals(False), context)
        return ack


class StorageCreateAction(Action):
    operation = "create"
    input_model = StorageInputs

    def validate_item(self, item: StorageInput) -> None:
        if not item.guid:
            raise ValidationError("Guid is empty")
        if not item.provider_params:
            if not item.api_secret:
                raise ValidationError("APISecret is empty")
            if not item.location:
                raise ValidationError("Location is empty")
        if not item.disk_type:
            raise ValidationError("DiskType is empty")
        if not item.disk_size:
            raise ValidationError("DiskSize is empty")
        if _positive_int(item.disk_size) is None:
            raise ValidationError(f"wrong DiskSize string '{item.disk_size}'")
        if not item.disk_charge_type:
            raise ValidationError("DiskChargeType is empty")
        if item.disk_charge_type not in CHARGE_TYPES:
            raise ValidationError(
                f"DiskChargeType '{item.disk_charge_type}' is invalid, expected one of {', '.join(CHARGE_TYPES)}"
            )
        if item.disk_charge_type == CHARGE_TYPE_PREPAID and _positive_int(item.disk_charge_period) is None:
            raise ValidationError(f"wrong DiskChargePeriod string '{item.disk_charge_period}'")
        if not item.instance_id:
            raise ValidationError("InstanceId is empty")

    def new_output(self, item: StorageInput) -> StorageOutput:
        return StorageOutput(
            guid=item.guid or None,
            callback_parameter=item.callback_parameter or None,
        )

    def process(self, item: StorageInput, output: StorageOutput) -> None:
        ack = self.handler.create(item)
        output.id = ack.resource_id
        output.request_id = ack.request_id
        self.handler.attach(item, ack.resource_id)


class StorageTerminateAction(Action):
    operation = "terminate"
    input_model = StorageInputs

    def validate_item(self, item: StorageInput) -> None:
        if not item.guid:
            raise ValidationError("Guid is empty")
        if not item.provider_params:
            if not item.api_secret:
                raise ValidationError("APISecret is empty")
            if not item.location:
                raise ValidationError("Location is empty")
        if not item.id:
            raise ValidationError("Id is empty")

    def new_output(self, item: StorageInput) -> StorageOutput:
        return StorageOutput(
            guid=item.guid or None,
            id=item.id or None,
            callback_parameter=item.callback_parameter or None,
        )

    def process(self, item: StorageInput, output: StorageOutput) -> None:
        ack = self.handler.terminate(item)
        output.request_id = ack.request_id
