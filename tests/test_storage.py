"""Tests for the storage volume lifecycle: create, attach, detach, terminate."""

import pytest

from cloud_actions.engine.models import ResourceState, ResultCode
from cloud_actions.resources.storage import StorageInput
from cloud_actions.utils.errors import ConflictError, ConvergenceTimeoutError, ResourceNotFoundError
from fakes import PROVIDER_PARAMS, snap


def _disk(**overrides):
    item = {
        'guid': 'g-1',
        'provider_params': PROVIDER_PARAMS,
        'disk_type': 'gp3',
        'disk_size': '20',
        'disk_name': 'data',
        'disk_charge_type': 'POSTPAID_BY_HOUR',
        'instance_id': 'i-1',
        'callback_parameter': 'cb-1',
    }
    item.update(overrides)
    return item


def _terminate(volume_id, **overrides):
    item = {'guid': 'g-1', 'provider_params': PROVIDER_PARAMS, 'id': volume_id}
    item.update(overrides)
    return item


# ---------------------------------------------------------------------------
# Create (create + attach)
# ---------------------------------------------------------------------------


class TestCreate:

    def test_creates_then_attaches(self, registry, volume_client, sleeper):
        result = registry.get('storage', 'create').run({'inputs': [_disk()]})

        assert result.to_payload() == {
            'outputs': [{
                'guid': 'g-1',
                'id': 'vol-0001',
                'request_id': 'req-1',
                'code': '0',
                'callback_parameter': 'cb-1',
            }]
        }
        assert volume_client.mutations == [('create', 'g-1'), ('attach', 'vol-0001', 'i-1')]
        assert sleeper.calls == [5.0, 5.0]

    def test_invalid_middle_item_does_not_stop_batch(self, registry, volume_client):
        result = registry.get('storage', 'create').run({'inputs': [
            _disk(guid='g-1'),
            _disk(guid='g-2', disk_type=''),
            _disk(guid='g-3', instance_id='i-3'),
        ]})

        assert [o.guid for o in result.outputs] == ['g-1', 'g-2', 'g-3']
        assert [o.code for o in result.outputs] == [ResultCode.SUCCESS, ResultCode.ERROR, ResultCode.SUCCESS]
        assert result.outputs[1].message == "DiskType is empty"
        assert result.outputs[1].id is None
        assert [o.id for o in result.outputs] == ['vol-0001', None, 'vol-0002']
        assert ('create', 'g-2') not in volume_client.mutations
        assert not result.ok

    def test_volume_attached_elsewhere_is_reported_per_item(self, registry, volume_client):
        volume_client.script('vol-5', snap('vol-5', ResourceState.ATTACHED, 'i-other'))

        result = registry.get('storage', 'create').run({'inputs': [_disk(id='vol-5'), _disk(guid='g-2')]})

        first, second = result.outputs
        assert first.code is ResultCode.ERROR
        assert first.id == 'vol-5'
        assert "has been bound with i-other" in first.message
        assert second.code is ResultCode.SUCCESS
        assert ('attach', 'vol-5', 'i-1') not in volume_client.mutations

    def test_already_attached_to_requested_instance(self, registry, volume_client):
        volume_client.script('vol-5', snap('vol-5', ResourceState.ATTACHED, 'i-1'))

        result = registry.get('storage', 'create').run({'inputs': [_disk(id='vol-5')]})

        assert result.ok
        assert volume_client.mutations == []

    def test_failed_volume_is_reported_not_attached(self, registry, volume_client):
        volume_client.script('vol-5', snap('vol-5', ResourceState.FAILED))

        result = registry.get('storage', 'create').run({'inputs': [_disk(id='vol-5')]})

        assert result.outputs[0].code is ResultCode.ERROR
        assert "FAILED" in result.outputs[0].message
        assert volume_client.mutations == []

    def test_location_and_api_secret_drive_the_connection(self, registry, resolver):
        result = registry.get('storage', 'create').run({'inputs': [_disk(
            provider_params='',
            location='Region=eu-west-1;AvailableZone=eu-west-1c',
            api_secret='SecretID=a;SecretKey=b',
        )]})

        assert result.ok
        kind, settings = resolver.resolved[0]
        assert kind == 'storage'
        assert settings.zone == 'eu-west-1c'

    @pytest.mark.parametrize("overrides, message", [
        ({'guid': ''}, "Guid is empty"),
        ({'provider_params': ''}, "APISecret is empty"),
        ({'provider_params': '', 'api_secret': 'SecretID=a;SecretKey=b'}, "Location is empty"),
        ({'disk_size': ''}, "DiskSize is empty"),
        ({'disk_size': 'big'}, "wrong DiskSize string 'big'"),
        ({'disk_size': '0'}, "wrong DiskSize string '0'"),
        ({'disk_charge_type': ''}, "DiskChargeType is empty"),
        ({'disk_charge_type': 'MONTHLY'}, "DiskChargeType 'MONTHLY' is invalid"),
        ({'disk_charge_type': 'PREPAID'}, "wrong DiskChargePeriod string ''"),
        ({'instance_id': ''}, "InstanceId is empty"),
    ])
    def test_validation_is_recorded_on_the_item(self, registry, volume_client, overrides, message):
        result = registry.get('storage', 'create').run({'inputs': [_disk(**overrides)]})

        assert result.outputs[0].code is ResultCode.ERROR
        assert message in result.outputs[0].message
        assert volume_client.calls == []

    def test_prepaid_with_period(self, registry):
        result = registry.get('storage', 'create').run(
            {'inputs': [_disk(disk_charge_type='PREPAID', disk_charge_period='12')]}
        )

        assert result.ok


# ---------------------------------------------------------------------------
# Attach / detach
# ---------------------------------------------------------------------------


class TestAttachDetach:

    def _handler(self, registry):
        return registry.get('storage', 'create').handler

    def test_attach_in_flight_is_awaited_not_reissued(self, registry, volume_client, sleeper):
        volume_client.script('vol-5', snap('vol-5', ResourceState.ATTACHING, 'i-1'))

        with pytest.raises(ConvergenceTimeoutError):
            self._handler(registry).attach(StorageInput(**_disk()), 'vol-5')

        assert volume_client.mutations == []
        assert len(volume_client.queries('vol-5')) == 1 + 20
        assert len(sleeper.calls) == 19

    def test_attach_missing_volume(self, registry):
        with pytest.raises(ResourceNotFoundError):
            self._handler(registry).attach(StorageInput(**_disk()), 'vol-404')

    def test_attach_to_other_instance_is_conflict(self, registry, volume_client):
        volume_client.script('vol-5', snap('vol-5', ResourceState.ATTACHED, 'i-other'))

        with pytest.raises(ConflictError):
            self._handler(registry).attach(StorageInput(**_disk()), 'vol-5')

        assert volume_client.mutations == []

    def test_detach_unattached_volume_is_a_noop(self, registry, volume_client):
        volume_client.script('vol-5', snap('vol-5', ResourceState.UNATTACHED))

        self._handler(registry).detach(StorageInput(**_disk()), 'vol-5')

        assert volume_client.mutations == []

    def test_detach_waits_until_unattached(self, registry, volume_client, sleeper):
        volume_client.script('vol-5', snap('vol-5', ResourceState.ATTACHED, 'i-1'))

        self._handler(registry).detach(StorageInput(**_disk()), 'vol-5')

        assert volume_client.mutations == [('detach', 'vol-5')]
        assert sleeper.calls == [5.0]


# ---------------------------------------------------------------------------
# Terminate
# ---------------------------------------------------------------------------


class TestTerminate:

    def test_attached_volume_is_detached_then_deleted(self, registry, volume_client, sleeper):
        volume_client.script('vol-5', snap('vol-5', ResourceState.ATTACHED, 'i-1'))

        result = registry.get('storage', 'terminate').run({'inputs': [_terminate('vol-5')]})

        assert result.to_payload() == {
            'outputs': [{'guid': 'g-1', 'id': 'vol-5', 'request_id': 'req-delete-vol-5', 'code': '0'}]
        }
        assert volume_client.mutations == [('detach', 'vol-5'), ('delete', 'vol-5')]
        assert sleeper.calls == [5.0, 5.0]

    def test_unattached_volume_is_deleted(self, registry, volume_client):
        volume_client.script('vol-5', snap('vol-5', ResourceState.UNATTACHED))

        result = registry.get('storage', 'terminate').run({'inputs': [_terminate('vol-5')]})

        assert result.ok
        assert volume_client.mutations == [('delete', 'vol-5')]

    def test_absent_volume_is_success(self, registry, volume_client):
        result = registry.get('storage', 'terminate').run(
            {'inputs': [_terminate('vol-404', callback_parameter='cb-9')]}
        )

        assert result.to_payload() == {
            'outputs': [{'guid': 'g-1', 'id': 'vol-404', 'code': '0', 'callback_parameter': 'cb-9'}]
        }
        assert volume_client.mutations == []

    def test_each_item_reports_its_own_outcome(self, registry, volume_client):
        volume_client.script('vol-1', snap('vol-1', ResourceState.UNATTACHED))

        result = registry.get('storage', 'terminate').run({'inputs': [
            _terminate('vol-1'),
            _terminate('', guid='g-2'),
        ]})

        assert [o.code for o in result.outputs] == [ResultCode.SUCCESS, ResultCode.ERROR]
        assert result.outputs[1].message == "Id is empty"
