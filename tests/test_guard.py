"""Tests for the idempotent mutation guard."""

import pytest

from cloud_actions.engine.guard import ensure_state
from cloud_actions.engine.models import ResourceState
from cloud_actions.utils.errors import ConflictError, ResourceNotFoundError
from fakes import FakeVolumeClient, absent, snap


def _client_with(snapshot):
    client = FakeVolumeClient()
    client.script(snapshot.resource_id, snapshot)
    return client


class TestEnsureState:

    def test_already_in_desired_state_short_circuits(self):
        client = _client_with(snap("vol-1", ResourceState.ATTACHED, "i-1"))

        result = ensure_state(
            "vol-1", client.describe, desired_state=ResourceState.ATTACHED, target="i-1"
        )

        assert result.converged
        assert client.mutations == []
        assert len(client.queries()) == 1

    def test_attached_elsewhere_is_conflict(self):
        client = _client_with(snap("vol-1", ResourceState.ATTACHED, "i-other"))

        with pytest.raises(ConflictError) as exc_info:
            ensure_state("vol-1", client.describe, desired_state=ResourceState.ATTACHED, target="i-1")

        assert "has been bound with i-other" in str(exc_info.value)
        assert exc_info.value.context.last_state == "ATTACHED on i-other"
        assert client.mutations == []

    def test_unattached_proceeds(self):
        client = _client_with(snap("vol-1", ResourceState.UNATTACHED))

        result = ensure_state("vol-1", client.describe, desired_state=ResourceState.ATTACHED, target="i-1")

        assert result.proceed
        assert result.snapshot.state is ResourceState.UNATTACHED

    def test_absent_proceeds_when_creating(self):
        client = FakeVolumeClient()

        result = ensure_state("vol-1", client.describe, desired_state=ResourceState.UNATTACHED)

        assert result.proceed
        assert result.snapshot.exists is False

    def test_absent_raises_when_resource_must_exist(self):
        client = FakeVolumeClient()

        with pytest.raises(ResourceNotFoundError):
            ensure_state("vol-1", client.describe, must_exist=True)

    def test_absent_is_converged_for_terminate(self):
        client = FakeVolumeClient()

        result = ensure_state("vol-1", client.describe, desired_exists=False)

        assert result.converged

    def test_existing_proceeds_for_terminate(self):
        client = _client_with(snap("vol-1", ResourceState.DELETING))

        result = ensure_state("vol-1", client.describe, desired_exists=False)

        assert result.proceed
        assert result.snapshot.state is ResourceState.DELETING

    def test_deleting_resource_is_conflict_for_create(self):
        client = _client_with(snap("nat-1", ResourceState.DELETING))

        with pytest.raises(ConflictError):
            ensure_state("nat-1", client.describe, desired_state=ResourceState.AVAILABLE)

    def test_existence_alone_satisfies_no_desired_state(self):
        client = _client_with(snap("vol-1", ResourceState.PENDING))

        result = ensure_state("vol-1", client.describe)

        assert result.converged

    def test_snapshot_describe_of_absent(self):
        assert absent("vol-1").describe() == "absent"
